"""BDD tests for the payment lifecycle."""

from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, then, when
from storefront.payment.payment import Payment

scenarios("features/payment_lifecycle.feature")

PAYMENT_ID = "PAY_1718000000000_abc123xyz"


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a payment was started for order "{order_id}"'), target_fixture="payment")
def started_payment(order_id):
    payment = Payment.start(payment_id=PAYMENT_ID, amount=45.92, order_id=order_id, user_id="user-001")
    payment._events.clear()
    return payment


@given("a payment was started before its order existed", target_fixture="payment")
def placeholder_payment():
    payment = Payment.start(payment_id="PAY_1718000000000_early0001", amount=45.92)
    payment._events.clear()
    return payment


@given("the payment was completed", target_fixture="payment")
def completed_payment(payment):
    payment.apply_status("completed")
    payment._events.clear()
    return payment


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the operator sets the payment to "{status}"'))
def operator_sets_status(payment, result, error, status):
    try:
        result["value"] = payment.apply_status(status)
    except ValidationError as exc:
        error["exc"] = exc


@when("the payment session expires")
def session_expires(payment, result):
    result["value"] = payment.expire()


@when(parsers.cfparse('the payment is linked to order "{order_id}"'))
def link_payment(payment, order_id):
    payment.link_order(order_id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the payment status is "{status}"'))
def payment_status_is(payment, status):
    assert payment.status == status


@then(parsers.cfparse('the payment message is "{message}"'))
def payment_message_is(payment, message):
    assert payment.message == message


@then("the write is ignored")
def write_ignored(payment, result):
    assert result["value"] is False
    assert payment._events == []


@then(parsers.cfparse('the payment belongs to order "{order_id}"'))
def payment_belongs_to(payment, order_id):
    assert payment.order_id == order_id
    assert payment.has_real_order
