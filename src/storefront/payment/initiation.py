"""Payment initiation — reference generation, command and handler.

The purchaser is shown the payment reference and pays out of band; an
operator later confirms the payment against that reference. References are
generated on the caller side, never by the store, so the reference is known
before the payment record exists.
"""

import secrets
import string
import time

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.payment.payment import (
    DEFAULT_CURRENCY,
    PLACEHOLDER_ORDER_ID,
    SESSION_WINDOW_SECONDS,
    Payment,
)

logger = structlog.get_logger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def new_payment_reference() -> str:
    """``PAY_<epoch-ms>_<9 base36 chars>``, e.g. ``PAY_1718000000000_k3j9x0a2b``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"PAY_{int(time.time() * 1000)}_{suffix}"


def ensure_reference_available(payment_id: str) -> None:
    """Raise ``ValidationError`` if a payment already exists under ``payment_id``."""
    try:
        current_domain.repository_for(Payment).get(payment_id)
    except ObjectNotFoundError:
        return
    raise ValidationError({"payment_id": [f"Payment reference {payment_id} is already in use"]})


@storefront.command(part_of="Payment")
class StartPayment:
    """Open a payment session under a caller-supplied reference."""

    payment_id = String(required=True, max_length=255)
    order_id = String(max_length=255, default=PLACEHOLDER_ORDER_ID)
    user_id = String(max_length=255)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    session_seconds = Integer(default=SESSION_WINDOW_SECONDS, min_value=1)


@storefront.command(part_of="Payment")
class LinkPaymentToOrder:
    """Replace a payment's placeholder order id with the real order id."""

    payment_id = String(required=True, max_length=255)
    order_id = String(required=True, max_length=255)


@storefront.command_handler(part_of=Payment)
class PaymentInitiationHandler:
    @handle(StartPayment)
    def start_payment(self, command):
        ensure_reference_available(command.payment_id)

        repo = current_domain.repository_for(Payment)
        payment = Payment.start(
            payment_id=command.payment_id,
            amount=command.amount,
            order_id=command.order_id,
            user_id=command.user_id,
            currency=command.currency,
            session_seconds=command.session_seconds or SESSION_WINDOW_SECONDS,
        )
        repo.add(payment)

        logger.info(
            "Payment session started",
            payment_id=command.payment_id,
            order_id=payment.order_id,
            amount=command.amount,
            expires_at=str(payment.expires_at),
        )
        return str(payment.id)

    @handle(LinkPaymentToOrder)
    def link_payment_to_order(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.link_order(command.order_id)
        repo.add(payment)
