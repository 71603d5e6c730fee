"""Cart management — commands and handler.

Handles cart creation and clearing. Clearing is also the settle action of a
payment session: once payment is confirmed, the purchaser's cart is emptied.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Cart")
class CreateCart:
    """Create a new cart for a user or guest session."""

    owner_id = String(max_length=255)


@storefront.command(part_of="Cart")
class ClearCart:
    """Remove every line from a cart."""

    cart_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = Cart.create(owner_id=command.owner_id)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.clear()
        repo.add(cart)
        logger.info("Cart cleared", cart_id=str(command.cart_id))
