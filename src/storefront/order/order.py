"""Order aggregate (CQRS) — a frozen cart snapshot moving through fulfillment.

State Machine:
    PENDING → PAID → PREPARING → OUT_FOR_DELIVERY → DELIVERED
    FAILED, CANCELLED (from any non-terminal state)

DELIVERED, FAILED and CANCELLED are terminal. Forward moves follow the listed
order with no skipping. The order never moves itself in response to payment
events; operators drive it through the admin actions.

The order also carries ``payment_status``, a mirror of the payment record
written by the admin actions. It can disagree with the Payment it refers to,
and readers must tolerate that.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from storefront.domain import storefront
from storefront.exceptions import InvalidTransition
from storefront.order.events import (
    OrderPaymentStatusChanged,
    OrderPlaced,
    OrderStatusChanged,
    PaymentAttached,
)
from storefront.payment.payment import TERMINAL_PAYMENT_STATES, PaymentStatus


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


FULFILLMENT_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.PAID,
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]

TERMINAL_ORDER_STATES = {
    OrderStatus.DELIVERED,
    OrderStatus.FAILED,
    OrderStatus.CANCELLED,
}

_OVERRIDE_STATES = {OrderStatus.FAILED, OrderStatus.CANCELLED}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether the order lifecycle allows moving from ``current`` to ``target``."""
    if current in TERMINAL_ORDER_STATES:
        return False
    if target in _OVERRIDE_STATES:
        return True
    position = FULFILLMENT_FLOW.index(current)
    return position + 1 < len(FULFILLMENT_FLOW) and FULFILLMENT_FLOW[position + 1] == target


DEFAULT_CURRENCY = "INR"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class ShippingAddress:
    """Where the order is delivered.

    Captured at checkout and kept when a new payment attempt is attached, so
    a purchaser retrying a failed payment does not re-enter it.
    """

    full_name = String(required=True, max_length=255)
    phone = String(max_length=20)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")


@storefront.value_object(part_of="Order")
class OrderPricing:
    """Totals frozen from the cart at checkout."""

    subtotal = Float(default=0.0)
    tax = Float(default=0.0)
    shipping = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderLine:
    product_id = Identifier(required=True)
    title = String(max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    user_id = Identifier(required=True)
    lines = HasMany(OrderLine)
    shipping_address = ValueObject(ShippingAddress)
    pricing = ValueObject(OrderPricing)
    payment_id = String(max_length=255)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, user_id, lines_data, shipping_address, totals, payment_id, currency=DEFAULT_CURRENCY):
        """Create an order from a cart snapshot.

        Args:
            user_id: The purchaser placing the order.
            lines_data: List of dicts with product_id, title, unit_price, quantity.
            shipping_address: Dict of ShippingAddress fields.
            totals: ``CartTotals`` computed from the same lines.
            payment_id: The caller-generated payment reference.
        """
        if not lines_data:
            raise ValidationError({"lines": ["Cannot place an order for an empty cart"]})

        now = datetime.now(UTC)
        order = cls(
            user_id=user_id,
            shipping_address=ShippingAddress(**shipping_address),
            pricing=OrderPricing(
                subtotal=totals.subtotal,
                tax=totals.tax,
                shipping=totals.shipping,
                total=totals.total,
                currency=currency,
            ),
            payment_id=payment_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for line in lines_data:
            order.add_lines(OrderLine(**line))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                user_id=str(user_id),
                payment_id=payment_id,
                lines=json.dumps(lines_data),
                subtotal=totals.subtotal,
                tax=totals.tax,
                shipping=totals.shipping,
                total=totals.total,
                currency=currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_ORDER_STATES

    def transition_to(self, target, reason=None) -> bool:
        """Move the order to ``target``.

        Returns False when the order is already in ``target``. Raises
        ``InvalidTransition`` for any move the lifecycle does not allow.
        """
        current = OrderStatus(self.status)
        target = OrderStatus(target)

        if current == target:
            return False
        if not can_transition(current, target):
            raise InvalidTransition(current.value, target.value)

        now = datetime.now(UTC)
        self.status = target.value
        if target == OrderStatus.CANCELLED:
            self.cancellation_reason = reason
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=current.value,
                new_status=target.value,
                reason=reason,
                changed_at=now,
            )
        )
        return True

    def mark_paid(self) -> bool:
        return self.transition_to(OrderStatus.PAID)

    def cancel(self, reason=None) -> bool:
        return self.transition_to(OrderStatus.CANCELLED, reason=reason)

    # -------------------------------------------------------------------
    # Payment mirror
    # -------------------------------------------------------------------
    def record_payment_status(self, payment_status) -> bool:
        """Write the payment-status mirror.

        Once the mirror holds a terminal payment state it is no longer
        overwritten. Returns whether the mirror changed.
        """
        current = PaymentStatus(self.payment_status)
        target = PaymentStatus(payment_status)

        if current == target or current in TERMINAL_PAYMENT_STATES:
            return False

        now = datetime.now(UTC)
        self.payment_status = target.value
        self.updated_at = now

        self.raise_(
            OrderPaymentStatusChanged(
                order_id=str(self.id),
                payment_id=self.payment_id,
                previous_payment_status=current.value,
                new_payment_status=target.value,
                changed_at=now,
            )
        )
        return True

    def attach_payment(self, payment_id):
        """Start a new payment attempt on this order, keeping its shipping address."""
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"status": ["Payments can only be attached to a pending order"]})
        if PaymentStatus(self.payment_status) == PaymentStatus.COMPLETED:
            raise ValidationError({"payment_status": ["Order has already been paid"]})

        now = datetime.now(UTC)
        previous_payment_id = self.payment_id
        self.payment_id = payment_id
        self.payment_status = PaymentStatus.PENDING.value
        self.updated_at = now

        self.raise_(
            PaymentAttached(
                order_id=str(self.id),
                previous_payment_id=previous_payment_id,
                payment_id=payment_id,
                attached_at=now,
            )
        )

    def to_snapshot(self) -> dict:
        return {
            "order_id": str(self.id),
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_id": self.payment_id,
        }
