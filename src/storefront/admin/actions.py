"""Operator console actions — the only writers of terminal lifecycle states.

Operators confirm or reject manual payments, move orders through fulfillment,
and (through the older console screen) write an order's payment status
directly. Each action applies the relevant lifecycle rules and returns the
record's resulting status so the console can echo it back.

``SetOrderPaymentStatus`` writes only the order's mirror and leaves the
Payment record alone, so it is the one path through which the two records
can drift apart.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order, OrderStatus
from storefront.payment.payment import Payment, PaymentStatus

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Payment")
class SetPaymentStatus:
    payment_id = String(required=True, max_length=255)
    status = String(required=True, choices=PaymentStatus)
    message = String(max_length=500)


@storefront.command(part_of="Order")
class SetOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    reason = String(max_length=500)


@storefront.command(part_of="Order")
class SetOrderPaymentStatus:
    order_id = Identifier(required=True)
    payment_status = String(required=True, choices=PaymentStatus)


@storefront.command_handler(part_of=Payment)
class PaymentStatusActionHandler:
    @handle(SetPaymentStatus)
    def set_payment_status(self, command):
        payment_repo = current_domain.repository_for(Payment)
        payment = payment_repo.get(command.payment_id)

        applied = payment.apply_status(command.status, message=command.message)
        if not applied:
            logger.info(
                "Payment status write ignored",
                payment_id=command.payment_id,
                current_status=payment.status,
                requested_status=command.status,
            )
            return payment.status

        payment_repo.add(payment)
        logger.info("Payment status updated", payment_id=command.payment_id, status=payment.status)

        if payment.has_real_order:
            self._mirror_onto_order(payment)

        return payment.status

    def _mirror_onto_order(self, payment):
        order_repo = current_domain.repository_for(Order)
        try:
            order = order_repo.get(payment.order_id)
        except ObjectNotFoundError:
            logger.warning("Payment refers to a missing order", payment_id=str(payment.id), order_id=payment.order_id)
            return

        if order.payment_id != str(payment.id):
            logger.warning(
                "Payment no longer attached to its order; order left unchanged",
                payment_id=str(payment.id),
                order_id=payment.order_id,
                attached_payment_id=order.payment_id,
            )
            return

        order.record_payment_status(payment.status)
        if PaymentStatus(payment.status) == PaymentStatus.COMPLETED and OrderStatus(order.status) == OrderStatus.PENDING:
            order.mark_paid()
        order_repo.add(order)


@storefront.command_handler(part_of=Order)
class OrderStatusActionHandler:
    @handle(SetOrderStatus)
    def set_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if order.transition_to(command.status, reason=command.reason):
            repo.add(order)
            logger.info("Order status updated", order_id=str(command.order_id), status=order.status)
        return order.status

    @handle(SetOrderPaymentStatus)
    def set_order_payment_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if order.record_payment_status(command.payment_status):
            repo.add(order)
            logger.info(
                "Order payment status written directly",
                order_id=str(command.order_id),
                payment_status=order.payment_status,
            )
        return order.payment_status
