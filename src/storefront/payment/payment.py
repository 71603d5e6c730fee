"""Payment aggregate (CQRS) — a manually confirmed payment session.

State Machine:
    PENDING → PROCESSING → COMPLETED | FAILED
    PENDING → COMPLETED | FAILED
    PENDING | PROCESSING → EXPIRED (session timer only)

COMPLETED, FAILED and EXPIRED are terminal. Writes to a terminal payment and
repeated writes of the current status are ignored, so duplicate operator
clicks and duplicate deliveries are harmless. Any other illegal move raises
``InvalidTransition``.

The payment id is the reference shown to the purchaser and is always supplied
by the caller. A payment may be started before its order exists, in which
case its order id holds ``PLACEHOLDER_ORDER_ID`` until it is linked.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, String

from storefront.domain import storefront
from storefront.exceptions import InvalidTransition
from storefront.payment.events import PaymentLinked, PaymentStarted, PaymentStatusChanged

PLACEHOLDER_ORDER_ID = "temp"
DEFAULT_CURRENCY = "INR"
SESSION_WINDOW_SECONDS = 300
EXPIRED_MESSAGE = "Payment session expired before confirmation"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"


TERMINAL_PAYMENT_STATES = {
    PaymentStatus.COMPLETED,
    PaymentStatus.FAILED,
    PaymentStatus.EXPIRED,
}

# Operator-driven moves. EXPIRED is only ever entered through ``expire()``.
_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.PROCESSING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: set(),
    PaymentStatus.FAILED: set(),
    PaymentStatus.EXPIRED: set(),
}


def _as_utc(value):
    """Stored datetimes may come back naive; they are always UTC."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def default_status_message(status) -> str:
    return f"Payment status updated to {PaymentStatus(status).value} by admin"


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Payment:
    order_id = String(required=True, max_length=255, default=PLACEHOLDER_ORDER_ID)
    user_id = String(max_length=255)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    message = String(max_length=500)
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def start(
        cls,
        payment_id,
        amount,
        order_id=None,
        user_id=None,
        currency=DEFAULT_CURRENCY,
        session_seconds=SESSION_WINDOW_SECONDS,
    ):
        """Open a payment session under a caller-supplied reference."""
        if not payment_id:
            raise ValidationError({"payment_id": ["A payment reference is required"]})

        now = datetime.now(UTC)
        payment = cls(
            id=payment_id,
            order_id=order_id or PLACEHOLDER_ORDER_ID,
            user_id=user_id,
            amount=amount,
            currency=currency or DEFAULT_CURRENCY,
            status=PaymentStatus.PENDING.value,
            expires_at=now + timedelta(seconds=session_seconds),
            created_at=now,
            updated_at=now,
        )

        payment.raise_(
            PaymentStarted(
                payment_id=str(payment.id),
                order_id=payment.order_id,
                user_id=user_id,
                amount=amount,
                currency=payment.currency,
                status=payment.status,
                expires_at=payment.expires_at,
                started_at=now,
            )
        )
        return payment

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return PaymentStatus(self.status) in TERMINAL_PAYMENT_STATES

    @property
    def has_real_order(self) -> bool:
        return bool(self.order_id) and self.order_id != PLACEHOLDER_ORDER_ID

    def is_overdue(self, as_of=None) -> bool:
        as_of = as_of or datetime.now(UTC)
        return not self.is_terminal and self.expires_at is not None and _as_utc(self.expires_at) <= as_of

    def seconds_remaining(self, as_of=None) -> float:
        as_of = as_of or datetime.now(UTC)
        if self.expires_at is None:
            return 0.0
        return max((_as_utc(self.expires_at) - as_of).total_seconds(), 0.0)

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def _change_status(self, target: PaymentStatus, message):
        previous = self.status
        now = datetime.now(UTC)
        self.status = target.value
        self.message = message
        self.updated_at = now

        self.raise_(
            PaymentStatusChanged(
                payment_id=str(self.id),
                order_id=self.order_id,
                previous_status=previous,
                status=target.value,
                message=message,
                changed_at=now,
            )
        )

    def apply_status(self, status, message=None) -> bool:
        """Apply an operator status change.

        Returns False when the write is ignored (payment already terminal, or
        already in ``status``).
        """
        current = PaymentStatus(self.status)
        target = PaymentStatus(status)

        if current in TERMINAL_PAYMENT_STATES or current == target:
            return False
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        self._change_status(target, message or default_status_message(target))
        return True

    def expire(self) -> bool:
        """End the session. Ignored once the payment is terminal."""
        if self.is_terminal:
            return False

        self._change_status(PaymentStatus.EXPIRED, EXPIRED_MESSAGE)
        return True

    def link_order(self, order_id):
        """Replace the placeholder order id with the real one."""
        if str(self.order_id) == str(order_id):
            return
        if self.has_real_order:
            raise ValidationError({"order_id": ["Payment is already linked to an order"]})

        now = datetime.now(UTC)
        self.order_id = str(order_id)
        self.updated_at = now

        self.raise_(
            PaymentLinked(
                payment_id=str(self.id),
                order_id=self.order_id,
                status=self.status,
                message=self.message,
                linked_at=now,
            )
        )

    def to_snapshot(self) -> dict:
        return {
            "payment_id": str(self.id),
            "order_id": self.order_id,
            "status": self.status,
            "message": self.message,
        }
