"""Storefront bounded context — Cart, Order, Payment and payment status sync.

Handles cart pricing, the order fulfillment lifecycle, out-of-band payment
confirmation by an operator, and the purchaser-side session that reconciles
push and poll signals into a single settle action.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
