"""Storefront error types.

Domain rule violations use protean's ``ValidationError`` (message dicts keyed
by field) so that the HTTP layer maps them to 400 responses. The session
errors are not validation failures; they are reported to the purchaser's
failure and availability callbacks rather than raised.
"""

from protean.exceptions import ValidationError


class InvalidTransition(ValidationError):
    """A lifecycle move that the state machine does not allow."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__({"status": [f"Cannot transition from {current} to {target}"]})


class SessionExpired(Exception):
    """The payment session window elapsed before the payment completed."""

    def __init__(self, payment_id: str, message: str | None = None):
        self.payment_id = payment_id
        super().__init__(message or f"Payment session {payment_id} expired")


class SyncUnavailable(Exception):
    """Both status channels failed more times in a row than allowed."""

    def __init__(self, push_failures: int, poll_failures: int):
        self.push_failures = push_failures
        self.poll_failures = poll_failures
        super().__init__(
            f"Status updates unavailable (push failures: {push_failures}, poll failures: {poll_failures})"
        )
