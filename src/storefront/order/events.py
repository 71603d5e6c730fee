"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A purchaser submitted checkout and an order was created from their cart."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    payment_id = String(required=True)
    lines = Text(required=True)  # JSON: list of line dicts
    subtotal = Float(required=True)
    tax = Float(required=True)
    shipping = Float(required=True)
    total = Float(required=True)
    currency = String(max_length=3)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    """The fulfillment status of an order moved to a new state."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    reason = String()
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentStatusChanged:
    """The payment-status mirror held on the order was written."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()
    previous_payment_status = String(required=True)
    new_payment_status = String(required=True)
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentAttached:
    """A new payment attempt was attached to an existing order."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_payment_id = String()
    payment_id = String(required=True)
    attached_at = DateTime(required=True)
