"""Domain events for the Payment aggregate.

Every Payment event carries the full status snapshot so that subscribers on
the real-time channel can be fed from the event alone.
"""

from protean.fields import DateTime, Float, String

from storefront.domain import storefront


@storefront.event(part_of="Payment")
class PaymentStarted:
    """A payment reference was issued and the payment session opened."""

    __version__ = 1

    payment_id = String(required=True)
    order_id = String(required=True)
    user_id = String()
    amount = Float(required=True)
    currency = String(max_length=3)
    status = String(required=True)
    expires_at = DateTime(required=True)
    started_at = DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentStatusChanged:
    """The payment moved to a new status (operator action or session expiry)."""

    __version__ = 1

    payment_id = String(required=True)
    order_id = String(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    message = String()
    changed_at = DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentLinked:
    """A payment started before its order existed was linked to the real order."""

    __version__ = 1

    payment_id = String(required=True)
    order_id = String(required=True)
    status = String(required=True)
    message = String()
    linked_at = DateTime(required=True)
