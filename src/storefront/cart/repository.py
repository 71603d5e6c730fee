"""Repository for the Cart aggregate."""

from storefront.cart.cart import Cart
from storefront.domain import storefront


@storefront.repository(part_of=Cart)
class CartRepository:
    def for_owner(self, owner_id: str) -> Cart | None:
        """Most recently created cart belonging to a user or guest session."""
        carts = self._dao.query.filter(owner_id=owner_id).order_by("-created_at").all().items
        return carts[0] if carts else None
