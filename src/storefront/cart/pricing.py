"""Cart pricing — subtotal, tax, shipping and total for a set of lines.

Pure computation with no I/O. Totals are always derived from the current
lines and never stored on the cart.
"""

from collections.abc import Iterable
from dataclasses import dataclass

TAX_RATE = 0.08
FREE_SHIPPING_THRESHOLD = 50.0
FLAT_SHIPPING_COST = 5.99


@dataclass(frozen=True)
class CartTotals:
    """Derived monetary summary of a cart."""

    subtotal: float
    tax: float
    shipping: float
    total: float
    item_count: int

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "tax": self.tax,
            "shipping": self.shipping,
            "total": self.total,
            "item_count": self.item_count,
        }


def shipping_for(subtotal: float) -> float:
    """Flat shipping below the free-shipping threshold, free at or above it."""
    return 0.0 if subtotal >= FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_COST


def price_lines(lines: Iterable) -> CartTotals:
    """Price lines exposing ``unit_price`` and ``quantity``."""
    lines = list(lines)
    subtotal = float(sum(line.unit_price * line.quantity for line in lines))
    tax = subtotal * TAX_RATE
    shipping = shipping_for(subtotal)
    return CartTotals(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        total=subtotal + tax + shipping,
        item_count=sum(line.quantity for line in lines),
    )


def remaining_for_free_shipping(subtotal: float) -> float:
    """Amount still needed to reach free shipping (0 once reached)."""
    return max(FREE_SHIPPING_THRESHOLD - subtotal, 0.0)
