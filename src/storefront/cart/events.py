"""Domain events for the Cart aggregate."""

from protean.fields import Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Cart")
class CartLineAdded:
    """A product was added to the cart (or its quantity increased)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    unit_price = Float(required=True)
    quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartLineQuantityChanged:
    """The quantity of a cart line was set to a new positive value."""

    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartLineRemoved:
    """A line was removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class CartCleared:
    """All lines were removed from the cart (after payment settled, or on request)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    owner_id = String()
    lines_removed = Integer(required=True)
