"""Fixtures for payment session coordinator tests.

The coordinator is exercised against an in-memory ``StatusStore`` whose
records and failures are set directly by the test, and a real
``InMemoryChannel``.
"""

import asyncio

import pytest
from storefront.sync.coordinator import SyncCoordinator, SyncSettings
from storefront.sync.memory_channel import InMemoryChannel
from storefront.sync.port import OrderSnapshot, PaymentSnapshot, StatusStore

ORDER_ID = "ord-001"
PAYMENT_ID = "PAY_1718000000000_abc123xyz"


class FakeStatusStore(StatusStore):
    def __init__(self):
        self.orders: dict[str, OrderSnapshot] = {}
        self.payments: dict[str, PaymentSnapshot] = {}
        self.order_reads = 0
        self.fail_reads = 0  # number of upcoming order reads that raise

    def set_order(self, order_id=ORDER_ID, status="pending", payment_status="pending"):
        self.orders[order_id] = OrderSnapshot(
            order_id=order_id, status=status, payment_status=payment_status, payment_id=PAYMENT_ID
        )

    async def get_order(self, order_id):
        self.order_reads += 1
        if self.fail_reads:
            self.fail_reads -= 1
            raise ConnectionError("store unreachable")
        return self.orders.get(order_id)

    async def get_payment(self, payment_id):
        return self.payments.get(payment_id)


class Recorder:
    """Collects everything a session reports back to its caller."""

    def __init__(self):
        self.cart_clears = 0
        self.redirects: list[str] = []
        self.failures = []
        self.unavailable = []

    def clear_cart(self):
        self.cart_clears += 1

    def redirect(self, order_id):
        self.redirects.append(order_id)

    def on_failure(self, outcome):
        self.failures.append(outcome)

    def on_unavailable(self, error):
        self.unavailable.append(error)


def payment(status, payment_id=PAYMENT_ID, order_id=ORDER_ID, message=None):
    return PaymentSnapshot(payment_id=payment_id, order_id=order_id, status=status, message=message)


async def settle_loop(rounds=5):
    """Let callbacks marshalled onto the loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def store():
    fake = FakeStatusStore()
    fake.set_order()
    return fake


@pytest.fixture()
def channel():
    return InMemoryChannel()


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def fast_settings():
    return SyncSettings(poll_interval=0.01, redirect_delay=0.0, max_consecutive_failures=3)


@pytest.fixture()
def make_session(store, channel, recorder, fast_settings):
    """Build (not start) a coordinator wired to the fake store, channel and recorder."""
    created = []

    def _make(order_id=ORDER_ID, payment_id=PAYMENT_ID, settings=None, **overrides):
        options = {
            "store": store,
            "channel": channel,
            "clear_cart": recorder.clear_cart,
            "redirect": recorder.redirect,
            "on_failure": recorder.on_failure,
            "on_unavailable": recorder.on_unavailable,
            "settings": settings or fast_settings,
        }
        options.update(overrides)
        coordinator = SyncCoordinator(order_id=order_id, payment_id=payment_id, **options)
        created.append(coordinator)
        return coordinator

    yield _make

    for coordinator in created:
        coordinator.close()


@pytest.fixture()
def snapshot():
    """Factory for pushed payment snapshots."""
    return payment


@pytest.fixture()
def drain():
    """Coroutine function that lets marshalled callbacks run."""
    return settle_loop


@pytest.fixture()
def ids():
    return {"order_id": ORDER_ID, "payment_id": PAYMENT_ID}
