"""Republishes Payment events on the real-time channel.

Every payment write raises an event carrying the resulting status; this
handler turns it into a ``PaymentSnapshot`` so that sessions subscribed to
the payment see the change without polling.
"""

import structlog
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.payment.events import PaymentLinked, PaymentStarted, PaymentStatusChanged
from storefront.payment.payment import Payment
from storefront.sync import get_channel
from storefront.sync.port import PaymentSnapshot, PublishingChannel

logger = structlog.get_logger(__name__)


def _publish(snapshot: PaymentSnapshot) -> None:
    channel = get_channel()
    if not isinstance(channel, PublishingChannel):
        return
    notified = channel.publish(snapshot)
    logger.debug(
        "Published payment snapshot",
        payment_id=snapshot.payment_id,
        status=snapshot.status,
        subscribers=notified,
    )


@storefront.event_handler(part_of=Payment)
class PaymentChannelPublisher:
    @handle(PaymentStarted)
    def on_payment_started(self, event: PaymentStarted) -> None:
        _publish(PaymentSnapshot(payment_id=event.payment_id, order_id=event.order_id, status=event.status))

    @handle(PaymentStatusChanged)
    def on_payment_status_changed(self, event: PaymentStatusChanged) -> None:
        _publish(
            PaymentSnapshot(
                payment_id=event.payment_id,
                order_id=event.order_id,
                status=event.status,
                message=event.message,
            )
        )

    @handle(PaymentLinked)
    def on_payment_linked(self, event: PaymentLinked) -> None:
        _publish(
            PaymentSnapshot(
                payment_id=event.payment_id,
                order_id=event.order_id,
                status=event.status,
                message=event.message,
            )
        )
