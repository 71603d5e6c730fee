"""Cart line management — commands and handler."""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront


@storefront.command(part_of="Cart")
class AddCartLine:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    title = String(max_length=255)
    unit_price = Float(required=True)
    quantity = Integer(default=1)


@storefront.command(part_of="Cart")
class SetCartLineQuantity:
    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    quantity = Integer(required=True)  # zero or less removes the line


@storefront.command(part_of="Cart")
class RemoveCartLine:
    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class ManageCartLinesHandler:
    @handle(AddCartLine)
    def add_cart_line(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        line_id = cart.add_line(
            product_id=command.product_id,
            unit_price=command.unit_price,
            quantity=command.quantity,
            title=command.title,
        )
        repo.add(cart)
        return line_id

    @handle(SetCartLineQuantity)
    def set_cart_line_quantity(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.set_quantity(line_id=command.line_id, quantity=command.quantity)
        repo.add(cart)

    @handle(RemoveCartLine)
    def remove_cart_line(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.remove_line(line_id=command.line_id)
        repo.add(cart)
