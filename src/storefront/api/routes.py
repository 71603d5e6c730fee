"""FastAPI routes for the Storefront — carts, checkout and the admin console."""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from storefront.admin.actions import SetOrderPaymentStatus, SetOrderStatus, SetPaymentStatus
from storefront.api.schemas import (
    AddCartLineRequest,
    CancelOrderRequest,
    CartIdResponse,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    CreateCartRequest,
    LineIdResponse,
    LinkPaymentRequest,
    OrderResponse,
    PaymentIdResponse,
    PaymentResponse,
    RetryPaymentRequest,
    SetOrderPaymentStatusRequest,
    SetOrderStatusRequest,
    SetPaymentStatusRequest,
    SetQuantityRequest,
    StartPaymentRequest,
    StatusResponse,
)
from storefront.cart.cart import Cart
from storefront.cart.lines import AddCartLine, RemoveCartLine, SetCartLineQuantity
from storefront.cart.management import ClearCart, CreateCart
from storefront.order.cancellation import CancelOrder
from storefront.order.order import Order
from storefront.order.payment_attempt import AttachPayment
from storefront.order.placement import PlaceOrder
from storefront.payment.initiation import (
    LinkPaymentToOrder,
    StartPayment,
    ensure_reference_available,
    new_payment_reference,
)
from storefront.payment.payment import Payment


def _cart_response(cart: Cart) -> CartResponse:
    return CartResponse(
        cart_id=str(cart.id),
        owner_id=cart.owner_id,
        lines=[
            {
                "line_id": str(line.id),
                "product_id": str(line.product_id),
                "title": line.title,
                "unit_price": line.unit_price,
                "quantity": line.quantity,
            }
            for line in cart.lines
        ],
        totals=cart.totals().to_dict(),
        remaining_for_free_shipping=cart.remaining_for_free_shipping(),
    )


def _payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=str(payment.id),
        order_id=payment.order_id,
        amount=payment.amount,
        currency=payment.currency,
        status=payment.status,
        message=payment.message,
        expires_at=payment.expires_at,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=CartIdResponse)
async def create_cart(body: CreateCartRequest) -> CartIdResponse:
    result = current_domain.process(CreateCart(owner_id=body.owner_id), asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.get("/{cart_id}", response_model=CartResponse)
async def get_cart(cart_id: str) -> CartResponse:
    cart = current_domain.repository_for(Cart).get(cart_id)
    return _cart_response(cart)


@cart_router.post("/{cart_id}/lines", status_code=201, response_model=LineIdResponse)
async def add_cart_line(cart_id: str, body: AddCartLineRequest) -> LineIdResponse:
    command = AddCartLine(
        cart_id=cart_id,
        product_id=body.product_id,
        title=body.title,
        unit_price=body.unit_price,
        quantity=body.quantity,
    )
    line_id = current_domain.process(command, asynchronous=False)
    return LineIdResponse(line_id=line_id)


@cart_router.put("/{cart_id}/lines/{line_id}", response_model=StatusResponse)
async def set_cart_line_quantity(cart_id: str, line_id: str, body: SetQuantityRequest) -> StatusResponse:
    command = SetCartLineQuantity(cart_id=cart_id, line_id=line_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/lines/{line_id}", response_model=StatusResponse)
async def remove_cart_line(cart_id: str, line_id: str) -> StatusResponse:
    current_domain.process(RemoveCartLine(cart_id=cart_id, line_id=line_id), asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/lines", response_model=StatusResponse)
async def clear_cart(cart_id: str) -> StatusResponse:
    current_domain.process(ClearCart(cart_id=cart_id), asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(tags=["checkout"])


@checkout_router.post("/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout(body: CheckoutRequest) -> CheckoutResponse:
    if body.payment_id:
        # Order and payment are saved separately; reject a taken reference before either
        ensure_reference_available(body.payment_id)
    payment_id = body.payment_id or new_payment_reference()
    order_id = current_domain.process(
        PlaceOrder(
            cart_id=body.cart_id,
            user_id=body.user_id,
            shipping_address=json.dumps(body.shipping_address.model_dump()),
            payment_id=payment_id,
        ),
        asynchronous=False,
    )

    order = current_domain.repository_for(Order).get(order_id)
    current_domain.process(
        StartPayment(
            payment_id=payment_id,
            order_id=order_id,
            user_id=body.user_id,
            amount=order.pricing.total,
            currency=order.pricing.currency,
            session_seconds=body.session_seconds,
        ),
        asynchronous=False,
    )
    payment = current_domain.repository_for(Payment).get(payment_id)

    return CheckoutResponse(
        order_id=order_id,
        payment_id=payment_id,
        amount=payment.amount,
        currency=payment.currency,
        expires_at=payment.expires_at,
    )


@checkout_router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    address = order.shipping_address
    return OrderResponse(
        order_id=str(order.id),
        user_id=str(order.user_id),
        status=order.status,
        payment_status=order.payment_status,
        payment_id=order.payment_id,
        lines=[
            {
                "product_id": str(line.product_id),
                "title": line.title,
                "unit_price": line.unit_price,
                "quantity": line.quantity,
            }
            for line in order.lines
        ],
        shipping_address=address.to_dict() if address else None,
        totals=order.pricing.to_dict(),
        cancellation_reason=order.cancellation_reason,
    )


@checkout_router.post("/orders/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> StatusResponse:
    current_domain.process(CancelOrder(order_id=order_id, reason=body.reason), asynchronous=False)
    return StatusResponse()


@checkout_router.post("/orders/{order_id}/payments", status_code=201, response_model=PaymentIdResponse)
async def retry_payment(order_id: str, body: RetryPaymentRequest) -> PaymentIdResponse:
    command = AttachPayment(
        order_id=order_id,
        payment_id=body.payment_id,
        session_seconds=body.session_seconds,
    )
    payment_id = current_domain.process(command, asynchronous=False)
    return PaymentIdResponse(payment_id=payment_id)


@checkout_router.post("/payments", status_code=201, response_model=PaymentResponse)
async def start_payment(body: StartPaymentRequest) -> PaymentResponse:
    """Issue a payment reference before the order exists (order id stays a placeholder)."""
    command = StartPayment(
        payment_id=body.payment_id or new_payment_reference(),
        user_id=body.user_id,
        amount=body.amount,
        currency=body.currency,
        session_seconds=body.session_seconds,
    )
    payment_id = current_domain.process(command, asynchronous=False)
    return _payment_response(current_domain.repository_for(Payment).get(payment_id))


@checkout_router.put("/payments/{payment_id}/order", response_model=PaymentResponse)
async def link_payment(payment_id: str, body: LinkPaymentRequest) -> PaymentResponse:
    current_domain.process(LinkPaymentToOrder(payment_id=payment_id, order_id=body.order_id), asynchronous=False)
    return _payment_response(current_domain.repository_for(Payment).get(payment_id))


@checkout_router.get("/payments/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: str) -> PaymentResponse:
    payment = current_domain.repository_for(Payment).get(payment_id)
    return _payment_response(payment)


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.put("/payments/{payment_id}/status", response_model=StatusResponse)
async def set_payment_status(payment_id: str, body: SetPaymentStatusRequest) -> StatusResponse:
    command = SetPaymentStatus(payment_id=payment_id, status=body.status, message=body.message)
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@admin_router.put("/orders/{order_id}/status", response_model=StatusResponse)
async def set_order_status(order_id: str, body: SetOrderStatusRequest) -> StatusResponse:
    command = SetOrderStatus(order_id=order_id, status=body.status, reason=body.reason)
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@admin_router.put("/orders/{order_id}/payment-status", response_model=StatusResponse)
async def set_order_payment_status(order_id: str, body: SetOrderPaymentStatusRequest) -> StatusResponse:
    command = SetOrderPaymentStatus(order_id=order_id, payment_status=body.payment_status)
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)
