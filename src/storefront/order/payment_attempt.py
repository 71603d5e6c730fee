"""New payment attempt on an existing order — command and handler.

After a failed or expired payment, the purchaser retries on the same order:
its lines and shipping address are kept, a fresh payment reference replaces
the old one, and a new payment session opens for it.
"""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order
from storefront.payment.initiation import StartPayment, new_payment_reference
from storefront.payment.payment import SESSION_WINDOW_SECONDS


@storefront.command(part_of="Order")
class AttachPayment:
    order_id = Identifier(required=True)
    payment_id = String(max_length=255)  # Optional: generated when absent
    session_seconds = Integer(default=SESSION_WINDOW_SECONDS, min_value=1)


@storefront.command_handler(part_of=Order)
class AttachPaymentHandler:
    @handle(AttachPayment)
    def attach_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        payment_id = command.payment_id or new_payment_reference()
        order.attach_payment(payment_id)
        repo.add(order)

        current_domain.process(
            StartPayment(
                payment_id=payment_id,
                order_id=str(order.id),
                user_id=str(order.user_id),
                amount=order.pricing.total,
                currency=order.pricing.currency,
                session_seconds=command.session_seconds or SESSION_WINDOW_SECONDS,
            ),
            asynchronous=False,
        )
        return payment_id
