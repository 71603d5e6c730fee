"""Purchaser payment session — wires a coordinator to the storefront.

``open_payment_session`` is what the payment-processing view calls once the
purchaser has an order and a payment reference. It connects a
``SyncCoordinator`` to the repositories, the registered real-time channel and
a settle action that clears the purchaser's cart through ``ClearCart``, and
optionally runs the payment's session timer alongside it.
"""

from collections.abc import Callable

import structlog

from storefront.cart.management import ClearCart
from storefront.exceptions import SyncUnavailable
from storefront.payment.expiry import PaymentSessionTimer
from storefront.sync import get_channel
from storefront.sync.coordinator import SyncCoordinator, SyncOutcome, SyncSettings
from storefront.sync.domain_store import DomainStatusStore
from storefront.sync.port import RealtimeChannel, StatusStore
from storefront.utils.logging import bind_session_context, clear_session_context

logger = structlog.get_logger(__name__)


class PaymentSession:
    """A running coordinator plus, optionally, the payment's expiry timer."""

    def __init__(self, coordinator: SyncCoordinator, timer: PaymentSessionTimer | None = None):
        self.coordinator = coordinator
        self.timer = timer

    @property
    def completed(self) -> bool:
        return self.coordinator.completed

    @property
    def outcome(self) -> SyncOutcome | None:
        return self.coordinator.outcome

    def close(self) -> None:
        """Stop watching and stop the timer. Idempotent."""
        self.coordinator.close()
        if self.timer is not None:
            self.timer.cancel()
        clear_session_context()

    async def aclose(self) -> None:
        await self.coordinator.aclose()
        if self.timer is not None:
            self.timer.cancel()
            await self.timer.wait()
        clear_session_context()

    async def __aenter__(self) -> "PaymentSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def cart_clearer(domain, cart_id: str) -> Callable[[], None]:
    """Settle action that empties ``cart_id`` through the domain."""

    def clear_cart() -> None:
        with domain.domain_context():
            domain.process(ClearCart(cart_id=cart_id), asynchronous=False)

    return clear_cart


async def open_payment_session(
    domain,
    order_id: str,
    payment_id: str,
    cart_id: str,
    redirect: Callable[[str], None] | None = None,
    on_failure: Callable[[SyncOutcome], None] | None = None,
    on_unavailable: Callable[[SyncUnavailable], None] | None = None,
    settings: SyncSettings | None = None,
    store: StatusStore | None = None,
    channel: RealtimeChannel | None = None,
    run_timer: bool = True,
) -> PaymentSession:
    """Start watching a checkout's payment and return the running session."""
    bind_session_context(order_id=order_id, payment_id=payment_id)

    coordinator = SyncCoordinator(
        order_id=order_id,
        payment_id=payment_id,
        store=store or DomainStatusStore(domain),
        channel=channel or get_channel(),
        clear_cart=cart_clearer(domain, cart_id),
        redirect=redirect,
        on_failure=on_failure,
        on_unavailable=on_unavailable,
        settings=settings or SyncSettings.from_env(),
    )

    timer = PaymentSessionTimer.for_payment(domain, payment_id).start() if run_timer else None
    await coordinator.start()

    logger.info("Payment session opened", cart_id=cart_id, timer=run_timer)
    return PaymentSession(coordinator, timer)
