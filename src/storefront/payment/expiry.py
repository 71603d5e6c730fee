"""Payment session expiry.

A payment session lasts a fixed window. ``PaymentSessionTimer`` expires a
single payment at the end of its window while the purchaser is waiting;
``ExpireOverduePayments`` is the sweep for sessions whose timer never ran
(process restart, purchaser closed the page), meant to be triggered
periodically by an external scheduler.
"""

import asyncio
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.payment.payment import Payment, PaymentStatus

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Payment")
class ExpirePayment:
    payment_id = String(required=True, max_length=255)


@storefront.command(part_of="Payment")
class ExpireOverduePayments:
    """Expire every pending or processing payment whose window has elapsed."""

    as_of = DateTime()  # Optional: defaults to now


@storefront.command_handler(part_of=Payment)
class PaymentExpiryHandler:
    @handle(ExpirePayment)
    def expire_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        expired = payment.expire()
        if expired:
            repo.add(payment)
            logger.info("Payment session expired", payment_id=command.payment_id, order_id=payment.order_id)
        return expired

    @handle(ExpireOverduePayments)
    def expire_overdue_payments(self, command):
        as_of = command.as_of or datetime.now(UTC)
        if as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=UTC)

        repo = current_domain.repository_for(Payment)
        open_payments = [
            payment
            for status in (PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value)
            for payment in repo._dao.query.filter(status=status).all().items
        ]
        overdue = [payment for payment in open_payments if payment.is_overdue(as_of)]

        if not overdue:
            logger.info("No overdue payment sessions found")
            return 0

        expired_count = 0
        for payment in overdue:
            try:
                if current_domain.process(ExpirePayment(payment_id=str(payment.id)), asynchronous=False):
                    expired_count += 1
            except ValidationError as exc:
                logger.warning("Failed to expire payment", payment_id=str(payment.id), error=str(exc))

        logger.info("Overdue payment sweep complete", expired_count=expired_count)
        return expired_count


class PaymentSessionTimer:
    """Expires one payment when its session window elapses.

    The timer runs as a task on the current event loop and processes
    ``ExpirePayment`` inside a fresh domain context. Cancelling it (because
    the session settled or the purchaser left) leaves the payment untouched.
    """

    def __init__(self, domain, payment_id: str, window_seconds: float):
        self.domain = domain
        self.payment_id = payment_id
        self.window_seconds = window_seconds
        self._task: asyncio.Task | None = None

    @classmethod
    def for_payment(cls, domain, payment_id: str) -> "PaymentSessionTimer":
        """Timer for the remaining window of a stored payment."""
        with domain.domain_context():
            payment = domain.repository_for(Payment).get(payment_id)
            remaining = payment.seconds_remaining()
        return cls(domain, payment_id, remaining)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PaymentSessionTimer":
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    def cancel(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> bool | None:
        """Wait for the timer to finish. Returns whether the payment was expired."""
        if self._task is None:
            return None
        try:
            return await self._task
        except asyncio.CancelledError:
            return None

    async def _run(self) -> bool:
        await asyncio.sleep(self.window_seconds)
        try:
            with self.domain.domain_context():
                return self.domain.process(ExpirePayment(payment_id=self.payment_id), asynchronous=False)
        except ObjectNotFoundError:
            logger.warning("Payment vanished before its session expired", payment_id=self.payment_id)
            return False
