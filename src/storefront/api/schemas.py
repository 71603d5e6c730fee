"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the internal Protean
commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str
    phone: str | None = None
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str = "India"


class CartLineSchema(BaseModel):
    line_id: str
    product_id: str
    title: str | None = None
    unit_price: float
    quantity: int


class TotalsSchema(BaseModel):
    subtotal: float
    tax: float
    shipping: float
    total: float
    item_count: int


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class CreateCartRequest(BaseModel):
    owner_id: str | None = None

    model_config = {"json_schema_extra": {"examples": [{"owner_id": "user-001"}]}}


class AddCartLineRequest(BaseModel):
    product_id: str
    title: str | None = None
    unit_price: float
    quantity: int = 1


class SetQuantityRequest(BaseModel):
    quantity: int


class CartIdResponse(BaseModel):
    cart_id: str


class LineIdResponse(BaseModel):
    line_id: str


class CartResponse(BaseModel):
    cart_id: str
    owner_id: str | None = None
    lines: list[CartLineSchema]
    totals: TotalsSchema
    remaining_for_free_shipping: float


# ---------------------------------------------------------------------------
# Checkout, orders and payments
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    cart_id: str
    user_id: str
    shipping_address: AddressSchema
    payment_id: str | None = None
    session_seconds: int = Field(default=300, ge=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "cart_id": "cart-001",
                    "user_id": "user-001",
                    "shipping_address": {
                        "full_name": "Asha Rao",
                        "street": "12 MG Road",
                        "city": "Bengaluru",
                        "postal_code": "560001",
                    },
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    order_id: str
    payment_id: str
    amount: float
    currency: str
    expires_at: datetime | None = None


class RetryPaymentRequest(BaseModel):
    payment_id: str | None = None
    session_seconds: int = Field(default=300, ge=1)


class PaymentIdResponse(BaseModel):
    payment_id: str


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    user_id: str
    status: str
    payment_status: str
    payment_id: str | None = None
    lines: list[dict]
    shipping_address: AddressSchema | None = None
    totals: dict
    cancellation_reason: str | None = None


class PaymentResponse(BaseModel):
    payment_id: str
    order_id: str
    amount: float
    currency: str
    status: str
    message: str | None = None
    expires_at: datetime | None = None


# ---------------------------------------------------------------------------
# Admin console
# ---------------------------------------------------------------------------
class SetPaymentStatusRequest(BaseModel):
    status: str
    message: str | None = None


class SetOrderStatusRequest(BaseModel):
    status: str
    reason: str | None = None


class SetOrderPaymentStatusRequest(BaseModel):
    payment_status: str


class StatusResponse(BaseModel):
    status: str = "ok"


class StartPaymentRequest(BaseModel):
    amount: float
    user_id: str | None = None
    currency: str = "INR"
    payment_id: str | None = None
    session_seconds: int = Field(default=300, ge=1)


class LinkPaymentRequest(BaseModel):
    order_id: str
