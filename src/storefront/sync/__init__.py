"""Real-time channel registry.

Provides get_channel() / set_channel() to swap implementations:
- InMemoryChannel for development and testing (default)
- any other ``RealtimeChannel`` adapter in deployment
"""

from storefront.sync.memory_channel import InMemoryChannel
from storefront.sync.port import RealtimeChannel

_current_channel: RealtimeChannel | None = None


def get_channel() -> RealtimeChannel:
    """Return the current real-time channel. Defaults to InMemoryChannel."""
    global _current_channel
    if _current_channel is None:
        _current_channel = InMemoryChannel()
    return _current_channel


def set_channel(channel: RealtimeChannel) -> None:
    """Override the active real-time channel (useful for tests)."""
    global _current_channel
    _current_channel = channel


def reset_channel() -> None:
    """Reset to the default channel."""
    global _current_channel
    _current_channel = None
