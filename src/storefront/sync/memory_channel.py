"""In-process real-time channel.

Keeps the latest snapshot per payment and fans every published snapshot out
to the subscribers of that payment. Subscriber callbacks that raise are
logged and never affect the publisher or the other subscribers.

Test helpers (``fail``, ``subscriber_count``) let tests simulate a broken
connection and check that sessions release their subscriptions.
"""

import threading
from dataclasses import dataclass

import structlog

from storefront.sync.port import (
    ChangeCallback,
    ErrorCallback,
    PaymentSnapshot,
    PublishingChannel,
    StatusStore,
)
from storefront.sync.subscription import Subscription

logger = structlog.get_logger(__name__)


@dataclass(eq=False)
class _Subscriber:
    on_change: ChangeCallback
    on_error: ErrorCallback | None


class InMemoryChannel(PublishingChannel):
    """Real-time channel backed by process memory.

    When a ``store`` is given, a subscription to a payment that has not been
    published yet is primed with the payment read from the store.
    """

    def __init__(self, store: StatusStore | None = None) -> None:
        self.store = store
        self._latest: dict[str, PaymentSnapshot] = {}
        self._subscribers: dict[str, list[_Subscriber]] = {}
        self._lock = threading.Lock()

    async def subscribe(
        self,
        payment_id: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        subscriber = _Subscriber(on_change=on_change, on_error=on_error)
        with self._lock:
            self._subscribers.setdefault(payment_id, []).append(subscriber)
            current = self._latest.get(payment_id)

        subscription = Subscription(payment_id, release=lambda: self._unsubscribe(payment_id, subscriber))

        if current is None and self.store is not None:
            try:
                current = await self.store.get_payment(payment_id)
            except Exception:
                subscription.close()
                raise
        if current is not None and not subscription.closed:
            self._deliver(subscriber, current)
        return subscription

    def _unsubscribe(self, payment_id: str, subscriber: _Subscriber) -> None:
        with self._lock:
            subscribers = self._subscribers.get(payment_id, [])
            if subscriber in subscribers:
                subscribers.remove(subscriber)
            if not subscribers:
                self._subscribers.pop(payment_id, None)

    def publish(self, snapshot: PaymentSnapshot) -> int:
        """Record ``snapshot`` as current and deliver it. Returns the number of subscribers notified."""
        with self._lock:
            self._latest[snapshot.payment_id] = snapshot
            subscribers = list(self._subscribers.get(snapshot.payment_id, []))

        for subscriber in subscribers:
            self._deliver(subscriber, snapshot)
        return len(subscribers)

    def fail(self, payment_id: str, error: BaseException) -> int:
        """Report a channel error to every subscriber of ``payment_id``."""
        with self._lock:
            subscribers = list(self._subscribers.get(payment_id, []))

        notified = 0
        for subscriber in subscribers:
            if subscriber.on_error is None:
                continue
            try:
                subscriber.on_error(error)
                notified += 1
            except Exception:
                logger.exception("Subscriber error callback raised", payment_id=payment_id)
        return notified

    def latest(self, payment_id: str) -> PaymentSnapshot | None:
        with self._lock:
            return self._latest.get(payment_id)

    def subscriber_count(self, payment_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(payment_id, []))

    def _deliver(self, subscriber: _Subscriber, snapshot: PaymentSnapshot) -> None:
        try:
            subscriber.on_change(snapshot)
        except Exception:
            logger.exception("Subscriber change callback raised", payment_id=snapshot.payment_id)
