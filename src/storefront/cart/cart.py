"""Cart aggregate (CQRS) — the purchaser's line items and their derived totals.

The cart holds lines only. Subtotal, tax, shipping and total are recomputed by
``totals()`` on every read and are never stored, so
``total == subtotal + tax + shipping`` holds for every observable state.

Quantities are enforced at the mutation boundary: adding a non-positive
quantity is rejected, and setting a line's quantity to zero or less removes
the line instead of storing it.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from storefront.cart.events import (
    CartCleared,
    CartLineAdded,
    CartLineQuantityChanged,
    CartLineRemoved,
)
from storefront.cart.pricing import CartTotals, price_lines, remaining_for_free_shipping
from storefront.domain import storefront


@storefront.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    title = String(max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@storefront.aggregate
class Cart:
    owner_id = String(max_length=255)  # user id, or guest session id
    lines = HasMany(CartLine)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def lines_must_have_positive_quantities(self):
        if any(line.quantity is None or line.quantity < 1 for line in self.lines):
            raise ValidationError({"lines": ["Cart lines must have a positive quantity"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner_id=None):
        now = datetime.now(UTC)
        return cls(owner_id=owner_id, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def _find_line(self, line_id):
        line = next((line for line in self.lines if str(line.id) == str(line_id)), None)
        if line is None:
            raise ValidationError({"line_id": ["Line not found in cart"]})
        return line

    def add_line(self, product_id, unit_price, quantity=1, title=None):
        """Add a product, or increase the quantity of the line already holding it.

        A repeated product is re-priced at the latest ``unit_price``, and takes
        the new ``title`` when one is given.
        """
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be a positive integer"]})
        if unit_price is None or unit_price < 0:
            raise ValidationError({"unit_price": ["Unit price cannot be negative"]})

        now = datetime.now(UTC)
        existing = next((line for line in self.lines if str(line.product_id) == str(product_id)), None)

        if existing:
            existing.quantity += quantity
            existing.unit_price = unit_price
            if title:
                existing.title = title
            line_id = str(existing.id)
        else:
            line = CartLine(
                product_id=product_id,
                title=title,
                unit_price=unit_price,
                quantity=quantity,
                added_at=now,
            )
            self.add_lines(line)
            line_id = str(line.id)

        self.updated_at = now

        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                line_id=line_id,
                product_id=str(product_id),
                unit_price=unit_price,
                quantity=quantity,
            )
        )
        return line_id

    def set_quantity(self, line_id, quantity):
        """Set a line's quantity. Zero or less removes the line."""
        if quantity is None or quantity <= 0:
            self.remove_line(line_id)
            return

        line = self._find_line(line_id)
        previous_quantity = line.quantity
        line.quantity = quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartLineQuantityChanged(
                cart_id=str(self.id),
                line_id=str(line_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_line(self, line_id):
        line = self._find_line(line_id)
        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartLineRemoved(
                cart_id=str(self.id),
                line_id=str(line_id),
                product_id=str(line.product_id),
            )
        )

    def clear(self):
        """Remove every line. Clearing an empty cart is a no-op."""
        removed = list(self.lines)
        if not removed:
            return

        for line in removed:
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                owner_id=self.owner_id,
                lines_removed=len(removed),
            )
        )

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    def totals(self) -> CartTotals:
        return price_lines(self.lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def contains(self, product_id) -> bool:
        return any(str(line.product_id) == str(product_id) for line in self.lines)

    def quantity_of(self, product_id) -> int:
        line = next((line for line in self.lines if str(line.product_id) == str(product_id)), None)
        return line.quantity if line else 0

    def remaining_for_free_shipping(self) -> float:
        return remaining_for_free_shipping(self.totals().subtotal)

    def snapshot_lines(self) -> list[dict]:
        """Plain copies of the current lines, used to freeze an order."""
        return [
            {
                "product_id": str(line.product_id),
                "title": line.title,
                "unit_price": line.unit_price,
                "quantity": line.quantity,
            }
            for line in self.lines
        ]
