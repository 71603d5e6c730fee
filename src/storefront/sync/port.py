"""Status observation ports (abstract interfaces).

A payment session watches two records through two mechanisms: the Order is
read on demand from a ``StatusStore`` (polling), and the Payment is pushed
through a ``RealtimeChannel`` subscription. Adapters implement these
contracts so the coordinator never depends on a concrete store or transport.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from storefront.sync.subscription import Subscription


@dataclass(frozen=True)
class OrderSnapshot:
    """The order fields a payment session cares about."""

    order_id: str
    status: str
    payment_status: str
    payment_id: str | None = None


@dataclass(frozen=True)
class PaymentSnapshot:
    """The payment fields a payment session cares about."""

    payment_id: str
    order_id: str
    status: str
    message: str | None = None


ChangeCallback = Callable[[PaymentSnapshot], None]
ErrorCallback = Callable[[BaseException], None]


class StatusStore(ABC):
    """Read access to the durable order and payment records."""

    @abstractmethod
    async def get_order(self, order_id: str) -> OrderSnapshot | None:
        """Current order, or None when no such order exists."""
        ...

    @abstractmethod
    async def get_payment(self, payment_id: str) -> PaymentSnapshot | None:
        """Current payment, or None when no such payment exists."""
        ...


class RealtimeChannel(ABC):
    """Push notifications of payment changes, keyed by payment id.

    A subscription receives the current payment immediately and again on
    every write. Deliveries may repeat and may arrive on any thread.
    """

    @abstractmethod
    async def subscribe(
        self,
        payment_id: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Start receiving changes for ``payment_id`` until the subscription is closed."""
        ...


class PublishingChannel(RealtimeChannel):
    """A channel that this process feeds itself with payment writes."""

    @abstractmethod
    def publish(self, snapshot: PaymentSnapshot) -> int:
        """Deliver ``snapshot`` to its subscribers. Returns how many were notified."""
        ...
