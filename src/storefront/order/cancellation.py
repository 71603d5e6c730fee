"""Order cancellation by the purchaser — command and handler.

Purchasers may only withdraw an order that is still pending and unpaid.
Operators cancel through ``SetOrderStatus`` instead.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order, OrderStatus
from storefront.payment.payment import PaymentStatus


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@storefront.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if OrderStatus(order.status) != OrderStatus.PENDING:
            raise ValidationError({"status": [f"Order can no longer be cancelled (status: {order.status})"]})
        if PaymentStatus(order.payment_status) == PaymentStatus.COMPLETED:
            raise ValidationError({"payment_status": ["A paid order cannot be cancelled"]})

        order.cancel(reason=command.reason or "Cancelled by customer")
        repo.add(order)
