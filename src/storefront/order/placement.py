"""Order placement — command and handler.

Checkout freezes the purchaser's cart into an order. The cart is left intact
here; it is cleared only once the payment session settles.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront
from storefront.order.order import DEFAULT_CURRENCY, Order
from storefront.payment.initiation import new_payment_reference

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class PlaceOrder:
    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    shipping_address = Text(required=True)  # JSON: address dict
    payment_id = String(max_length=255)  # Optional: generated when absent
    currency = String(max_length=3, default=DEFAULT_CURRENCY)


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart = current_domain.repository_for(Cart).get(command.cart_id)
        shipping_address = (
            json.loads(command.shipping_address)
            if isinstance(command.shipping_address, str)
            else command.shipping_address
        )

        order = Order.place(
            user_id=command.user_id,
            lines_data=cart.snapshot_lines(),
            shipping_address=shipping_address,
            totals=cart.totals(),
            payment_id=command.payment_id or new_payment_reference(),
            currency=command.currency or DEFAULT_CURRENCY,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            cart_id=str(command.cart_id),
            payment_id=order.payment_id,
            total=order.pricing.total,
        )
        return str(order.id)
