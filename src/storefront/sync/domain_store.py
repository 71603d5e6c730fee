"""``StatusStore`` backed by the storefront repositories."""

from protean.exceptions import ObjectNotFoundError

from storefront.order.order import Order
from storefront.payment.payment import Payment
from storefront.sync.port import OrderSnapshot, PaymentSnapshot, StatusStore


class DomainStatusStore(StatusStore):
    """Reads orders and payments through the domain's repositories.

    Each read opens its own domain context, so the store can be used from
    tasks that run outside any request.
    """

    def __init__(self, domain) -> None:
        self.domain = domain

    async def get_order(self, order_id: str) -> OrderSnapshot | None:
        with self.domain.domain_context():
            try:
                order = self.domain.repository_for(Order).get(order_id)
            except ObjectNotFoundError:
                return None
            return OrderSnapshot(
                order_id=str(order.id),
                status=order.status,
                payment_status=order.payment_status,
                payment_id=order.payment_id,
            )

    async def get_payment(self, payment_id: str) -> PaymentSnapshot | None:
        with self.domain.domain_context():
            try:
                payment = self.domain.repository_for(Payment).get(payment_id)
            except ObjectNotFoundError:
                return None
            return PaymentSnapshot(
                payment_id=str(payment.id),
                order_id=payment.order_id,
                status=payment.status,
                message=payment.message,
            )
