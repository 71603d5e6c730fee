"""Payment session coordinator — settles a checkout exactly once.

While the purchaser waits on the payment page, the outcome of their payment
can become visible through two independent sources:

- push: a real-time subscription to the Payment, keyed by payment id, which
  delivers the current payment on subscribe and again on every write;
- poll: a periodic read of the Order, whose ``payment_status`` mirrors the
  payment (first read immediately, then every ``poll_interval`` seconds).

Either source reporting ``completed`` settles the session: the completed flag
is set under a lock, then, outside the lock, the purchaser's cart is cleared
and a redirect is scheduled after ``redirect_delay`` seconds. The flag is set
once and never cleared, so a second report (from the other source, in the
same tick, or from another thread) is read and discarded.

``failed`` and ``expired`` are reported to ``on_failure`` once per status and
leave the session open; the purchaser may retry. Expiry carries
``SessionExpired``.

Read failures are absorbed. The poll retries on its normal schedule and the
push channel is re-subscribed from the poll loop. When both sources have been
failing for more than ``max_consecutive_failures`` reads, ``on_unavailable``
receives ``SyncUnavailable``; a source counts as failing while it is inactive
(no subscription, or polling disabled because the order id is still the
placeholder). The next successful read clears the condition.

Push deliveries may arrive on any thread. They are marshalled onto the event
loop the session was started on, and no callback supplied by the caller is
allowed to raise into the channel that invoked it.
"""

import asyncio
import contextvars
import os
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

from storefront.exceptions import SessionExpired, SyncUnavailable
from storefront.payment.payment import PLACEHOLDER_ORDER_ID, PaymentStatus
from storefront.sync.port import PaymentSnapshot, RealtimeChannel, StatusStore
from storefront.sync.subscription import Subscription

logger = structlog.get_logger(__name__)

_FAILURE_STATES = {PaymentStatus.FAILED.value, PaymentStatus.EXPIRED.value}


@dataclass(frozen=True)
class SyncSettings:
    poll_interval: float = 10.0
    redirect_delay: float = 2.0
    max_consecutive_failures: int = 3

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Defaults, overridden by ``STOREFRONT_POLL_INTERVAL``, ``STOREFRONT_REDIRECT_DELAY``
        and ``STOREFRONT_MAX_SYNC_FAILURES`` when set."""
        defaults = cls()
        return cls(
            poll_interval=float(os.getenv("STOREFRONT_POLL_INTERVAL", defaults.poll_interval)),
            redirect_delay=float(os.getenv("STOREFRONT_REDIRECT_DELAY", defaults.redirect_delay)),
            max_consecutive_failures=int(
                os.getenv("STOREFRONT_MAX_SYNC_FAILURES", defaults.max_consecutive_failures)
            ),
        )


class SessionState(Enum):
    IDLE = "idle"
    WATCHING = "watching"
    SETTLED = "settled"
    CLOSED = "closed"


class Source(Enum):
    PUSH = "push"
    POLL = "poll"


@dataclass(frozen=True)
class SyncOutcome:
    """What a session observed: a settle, or a retryable failure."""

    status: str
    source: Source
    message: str | None = None
    error: Exception | None = None

    @property
    def settled(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value

    @property
    def retryable(self) -> bool:
        return not self.settled


class SyncCoordinator:
    """Watches one order/payment pair and settles it at most once."""

    def __init__(
        self,
        order_id: str,
        payment_id: str,
        store: StatusStore,
        channel: RealtimeChannel,
        clear_cart: Callable[[], None],
        redirect: Callable[[str], None] | None = None,
        on_failure: Callable[[SyncOutcome], None] | None = None,
        on_unavailable: Callable[[SyncUnavailable], None] | None = None,
        settings: SyncSettings | None = None,
    ):
        self.order_id = order_id
        self.payment_id = payment_id
        self.store = store
        self.channel = channel
        self.clear_cart = clear_cart
        self.redirect = redirect
        self.on_failure = on_failure
        self.on_unavailable = on_unavailable
        self.settings = settings or SyncSettings()

        self.outcome: SyncOutcome | None = None
        self.failures: list[SyncOutcome] = []
        self.redirected = False

        self._lock = threading.Lock()
        self._completed = False
        self._closed = False
        self._started = False
        self._last_failure: str | None = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._context: contextvars.Context | None = None
        self._subscription: Subscription | None = None
        self._poll_task: asyncio.Task | None = None
        self._redirect_handle: asyncio.TimerHandle | None = None

        self._push_failures = 0
        self._poll_failures = 0
        self._unavailable = False

        self._log = logger.bind(order_id=order_id, payment_id=payment_id)

    # -------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------
    @property
    def polling_enabled(self) -> bool:
        return bool(self.order_id) and self.order_id != PLACEHOLDER_ORDER_ID

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def unavailable(self) -> bool:
        return self._unavailable

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    @property
    def state(self) -> SessionState:
        if self._closed:
            return SessionState.CLOSED
        if self._completed:
            return SessionState.SETTLED
        if self._started:
            return SessionState.WATCHING
        return SessionState.IDLE

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def start(self) -> "SyncCoordinator":
        """Subscribe to the payment and start polling the order."""
        if self._closed:
            raise RuntimeError("Cannot start a closed payment session")
        if self._started:
            return self

        self._loop = asyncio.get_running_loop()
        # Loop callbacks run in the context captured here, never the publisher's
        self._context = contextvars.copy_context()
        self._started = True
        self._log.info("Payment session started", polling=self.polling_enabled)

        await self._subscribe()

        if self.polling_enabled and not (self._closed or self._completed):
            self._poll_task = self._loop.create_task(self._poll_loop())
        else:
            self._check_availability()
        return self

    def close(self) -> None:
        """Release the subscription and cancel the poll and any pending redirect.

        Safe to call any number of times, before or after settling.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._stop_watching()
        if self._redirect_handle is not None:
            self._redirect_handle.cancel()
            self._redirect_handle = None
        self._log.info("Payment session closed", settled=self._completed)

    async def aclose(self) -> None:
        """``close()``, then wait for the poll task to wind down."""
        self.close()
        task = self._poll_task
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> "SyncCoordinator":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # -------------------------------------------------------------------
    # Decision
    # -------------------------------------------------------------------
    def observe(self, status: str, source: Source, message: str | None = None) -> bool:
        """Feed one observed payment status into the session.

        Returns True only for the observation that settled the session.
        """
        if status == PaymentStatus.COMPLETED.value:
            with self._lock:
                if self._closed or self._completed:
                    return False
                self._completed = True
            self._settle(source, message)
            return True

        if status in _FAILURE_STATES:
            with self._lock:
                if self._closed or self._completed or self._last_failure == status:
                    return False
                self._last_failure = status
            self._report_failure(status, source, message)

        return False

    def _settle(self, source: Source, message: str | None) -> None:
        self.outcome = SyncOutcome(status=PaymentStatus.COMPLETED.value, source=source, message=message)
        self._log.info("Payment session settled", source=source.value)

        self._stop_watching()
        self._invoke("clear_cart", self.clear_cart)
        self._call_on_loop(self._schedule_redirect)

    def _report_failure(self, status: str, source: Source, message: str | None) -> None:
        error = SessionExpired(self.payment_id, message) if status == PaymentStatus.EXPIRED.value else None
        outcome = SyncOutcome(status=status, source=source, message=message, error=error)
        self.failures.append(outcome)
        self._log.warning("Payment did not complete", status=status, source=source.value)
        if self.on_failure is not None:
            self._invoke("on_failure", self.on_failure, outcome)

    def _schedule_redirect(self) -> None:
        if self._closed or self._loop is None:
            return
        self._redirect_handle = self._loop.call_later(
            self.settings.redirect_delay, self._fire_redirect, context=self._context
        )

    def _fire_redirect(self) -> None:
        self._redirect_handle = None
        if self._closed:
            return
        self.redirected = True
        if self.redirect is not None:
            self._invoke("redirect", self.redirect, self.order_id)

    # -------------------------------------------------------------------
    # Push
    # -------------------------------------------------------------------
    async def _subscribe(self) -> None:
        try:
            subscription = await self.channel.subscribe(self.payment_id, self._on_push, self._on_push_error)
        except Exception as exc:
            self._log.warning("Subscription to payment updates failed", error=str(exc))
            return

        if self._closed or self._completed:
            subscription.close()
            return
        self._subscription = subscription
        self._push_failures = 0
        self._check_availability()

    def _on_push(self, snapshot: PaymentSnapshot) -> None:
        if self._closed or self._completed:
            return
        self._call_on_loop(self._handle_push, snapshot)

    def _on_push_error(self, error: BaseException) -> None:
        if self._closed or self._completed:
            return
        self._call_on_loop(self._handle_push_error, error)

    def _handle_push(self, snapshot: PaymentSnapshot) -> None:
        if self._closed or snapshot.payment_id != self.payment_id:
            return
        self._push_failures = 0
        self._check_availability()
        self.observe(snapshot.status, Source.PUSH, snapshot.message)

    def _handle_push_error(self, error: BaseException) -> None:
        if self._closed or self._completed:
            return
        self._push_failures += 1
        self._log.warning("Payment update channel error", error=str(error), consecutive=self._push_failures)
        self._check_availability()

    # -------------------------------------------------------------------
    # Poll
    # -------------------------------------------------------------------
    async def _poll_loop(self) -> None:
        while not (self._closed or self._completed):
            if self._subscription is None:
                await self._subscribe()
            await self.poll_once()
            if self._closed or self._completed:
                break
            await asyncio.sleep(self.settings.poll_interval)

    async def poll_once(self) -> bool:
        """Read the order once and observe its payment status.

        Returns whether the read succeeded.
        """
        if self._closed or self._completed:
            return False

        try:
            order = await self.store.get_order(self.order_id)
        except Exception as exc:
            self._record_poll_failure(str(exc))
            return False
        if order is None:
            self._record_poll_failure("order not found")
            return False

        self._poll_failures = 0
        self._check_availability()
        self.observe(order.payment_status, Source.POLL)
        return True

    def _record_poll_failure(self, reason: str) -> None:
        self._poll_failures += 1
        self._log.warning("Order status read failed", error=reason, consecutive=self._poll_failures)
        self._check_availability()

    # -------------------------------------------------------------------
    # Availability
    # -------------------------------------------------------------------
    def _push_failing(self) -> bool:
        return self._subscription is None or self._push_failures > self.settings.max_consecutive_failures

    def _poll_failing(self) -> bool:
        return not self.polling_enabled or self._poll_failures > self.settings.max_consecutive_failures

    def _check_availability(self) -> None:
        failing = self._push_failing() and self._poll_failing()
        if failing and not self._unavailable:
            self._unavailable = True
            error = SyncUnavailable(self._push_failures, self._poll_failures)
            self._log.error("Payment status updates unavailable", error=str(error))
            if self.on_unavailable is not None:
                self._invoke("on_unavailable", self.on_unavailable, error)
        elif not failing and self._unavailable:
            self._unavailable = False
            self._log.info("Payment status updates restored")

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _stop_watching(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.close()

        task = self._poll_task
        if task is None or task.done():
            return
        if self._on_loop_thread():
            if task is not asyncio.current_task():
                task.cancel()
        elif self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(task.cancel, context=self._context)

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _call_on_loop(self, callback, *args) -> None:
        if self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(callback, *args, context=self._context)
        except RuntimeError:
            self._log.debug("Event loop closed; dropping callback", callback=getattr(callback, "__name__", None))

    def _invoke(self, name: str, callback, *args) -> None:
        try:
            callback(*args)
        except Exception:
            self._log.exception("Payment session callback raised", callback=name)
