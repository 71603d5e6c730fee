"""Explicit handle on a real-time subscription."""

import threading
from collections.abc import Callable


class Subscription:
    """Releases a channel subscription exactly once.

    ``close()`` may be called any number of times, from any thread.
    """

    def __init__(self, key: str, release: Callable[[], None] | None = None):
        self.key = key
        self._release = release
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            release, self._release = self._release, None
        if release is not None:
            release()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Subscription {self.key} {state}>"
