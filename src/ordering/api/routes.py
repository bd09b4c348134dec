"""FastAPI routes for the Ordering domain: cart, checkout, orders and stock."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.api.presenters import cart_view, invoice_view, order_summary, order_view, stock_view
from ordering.api.schemas import (
    AddCartItemRequest,
    AdjustStockRequest,
    CancelOrderRequest,
    CheckoutSummaryRequest,
    CompleteCheckoutRequest,
    CreateOrderRequest,
    Envelope,
    RefundRequest,
    RegisterProductRequest,
    TrackingRequest,
    UpdateCartItemRequest,
    UpdateStatusRequest,
    ok,
)
from ordering.cart.cart import cart_for_user
from ordering.cart.items import AddToCart, ClearCart, RemoveFromCart, UpdateCartItem
from ordering.checkout.orchestrator import CheckoutService
from ordering.checkout.payment import get_gateway
from ordering.errors import NotFound
from ordering.order.order import OrderStatus
from ordering.order.queries import get_order, list_orders, order_stats
from ordering.order.workflow import OrderWorkflow
from ordering.stock.ledger import InventoryLedger
from ordering.stock.management import AdjustStock, DeactivateProduct, RegisterProduct
from shared.auth import Forbidden, Principal, require
from shared.throttle import throttled


def _visible_order(order_id: str, principal: Principal):
    """Load an order the caller may see; other users' orders look missing."""
    order = get_order(order_id)
    if str(order.user_id) != principal.user_id and not principal.can("order:read:any"):
        raise NotFound("Order", order_id)
    return order


def _order_scope(principal: Principal):
    return None if principal.can("order:read:any") else principal.user_id


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=Envelope)
async def get_cart(principal: Principal = Depends(require("cart:manage"))) -> Envelope:
    return ok(cart_view(cart_for_user(principal.user_id), principal.user_id))


@cart_router.post("/items", status_code=201, response_model=Envelope)
async def add_cart_item(
    body: AddCartItemRequest,
    principal: Principal = Depends(require("cart:manage")),
) -> Envelope:
    command = AddToCart(
        user_id=principal.user_id,
        product_id=body.product_id,
        quantity=body.quantity,
        colour=body.colour,
        size=body.size,
    )
    current_domain.process(command, asynchronous=False)
    return ok(cart_view(cart_for_user(principal.user_id)), "Item added to cart")


@cart_router.put("/items/{item_id}", response_model=Envelope)
async def update_cart_item(
    item_id: str,
    body: UpdateCartItemRequest,
    principal: Principal = Depends(require("cart:manage")),
) -> Envelope:
    command = UpdateCartItem(user_id=principal.user_id, item_id=item_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return ok(cart_view(cart_for_user(principal.user_id)), "Cart updated")


@cart_router.delete("/items/{item_id}", response_model=Envelope)
async def remove_cart_item(item_id: str, principal: Principal = Depends(require("cart:manage"))) -> Envelope:
    current_domain.process(RemoveFromCart(user_id=principal.user_id, item_id=item_id), asynchronous=False)
    return ok(cart_view(cart_for_user(principal.user_id)), "Item removed from cart")


@cart_router.delete("", response_model=Envelope)
async def clear_cart(principal: Principal = Depends(require("cart:manage"))) -> Envelope:
    current_domain.process(ClearCart(user_id=principal.user_id), asynchronous=False)
    return ok(cart_view(cart_for_user(principal.user_id), principal.user_id), "Cart cleared")


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", response_model=Envelope)
async def checkout_summary(
    body: CheckoutSummaryRequest | None = None,
    principal: Principal = Depends(require("checkout")),
) -> Envelope:
    delivery_option = body.delivery_option if body else "standard"
    summary = CheckoutService().summarize(principal.user_id, delivery_option=delivery_option)
    return ok(summary)


@checkout_router.post("/complete", status_code=201, response_model=Envelope)
async def complete_checkout(
    body: CompleteCheckoutRequest,
    principal: Principal = Depends(throttled("checkout", "checkout")),
) -> Envelope:
    order = CheckoutService().checkout(
        principal.user_id,
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method,
        payment_id=body.payment_id,
        delivery_option=body.delivery_option,
        customer_notes=body.customer_notes,
    )
    return ok(order_view(order), "Order placed successfully")


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=Envelope)
async def create_order(
    body: CreateOrderRequest,
    principal: Principal = Depends(require("order:create")),
) -> Envelope:
    order = CheckoutService().place_order(
        principal.user_id,
        items=[line.model_dump() for line in body.items],
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method,
        delivery_option=body.delivery_option,
        customer_notes=body.customer_notes,
        discount=body.discount.model_dump() if body.discount else None,
    )
    return ok(order_view(order), "Order created successfully")


@order_router.get("", response_model=Envelope)
async def get_orders(
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(require("order:read")),
) -> Envelope:
    result = list_orders(
        user_id=_order_scope(principal),
        status=status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return ok(
        {
            "orders": [order_summary(order) for order in result.orders],
            "pagination": {
                "page": result.page,
                "limit": result.limit,
                "total": result.total,
                "pages": result.pages,
            },
        }
    )


@order_router.get("/stats", response_model=Envelope)
async def get_order_stats(principal: Principal = Depends(require("order:read"))) -> Envelope:
    return ok(order_stats(user_id=_order_scope(principal)))


@order_router.get("/{order_id}", response_model=Envelope)
async def get_order_detail(order_id: str, principal: Principal = Depends(require("order:read"))) -> Envelope:
    return ok(order_view(_visible_order(order_id, principal)))


@order_router.get("/{order_id}/invoice", response_model=Envelope)
async def get_invoice(order_id: str, principal: Principal = Depends(require("order:read"))) -> Envelope:
    return ok(invoice_view(_visible_order(order_id, principal)))


@order_router.put("/{order_id}/status", response_model=Envelope)
async def update_order_status(
    order_id: str,
    body: UpdateStatusRequest,
    principal: Principal = Depends(require("order:update_status")),
) -> Envelope:
    if body.status == OrderStatus.REFUNDED.value:
        raise ValidationError({"status": ["Refunds go through the refund endpoint"]})
    order = OrderWorkflow().change_status(order_id, body.status, note=body.note, actor=principal.user_id)
    return ok(order_view(order), f"Order status updated to {order.status}")


@order_router.put("/{order_id}/tracking", response_model=Envelope)
async def add_tracking(
    order_id: str,
    body: TrackingRequest,
    principal: Principal = Depends(require("order:track")),
) -> Envelope:
    order = OrderWorkflow().add_tracking(
        order_id,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
        tracking_url=body.tracking_url,
        estimated_delivery=body.estimated_delivery,
        actor=principal.user_id,
    )
    return ok(order_view(order), "Tracking information added")


@order_router.post("/{order_id}/cancel", response_model=Envelope)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    principal: Principal = Depends(require("order:cancel")),
) -> Envelope:
    order = _visible_order(order_id, principal)
    as_staff = principal.can("order:cancel:any")
    if not as_staff and str(order.user_id) != principal.user_id:
        raise Forbidden("order:cancel:any")

    order = OrderWorkflow().cancel(
        order_id,
        reason=body.reason if body else None,
        actor=principal.user_id,
        as_staff=as_staff,
    )
    return ok(order_view(order), "Order cancelled successfully")


@order_router.post("/{order_id}/refund", response_model=Envelope)
async def refund_order(
    order_id: str,
    body: RefundRequest,
    principal: Principal = Depends(throttled("refund", "order:refund")),
) -> Envelope:
    order = OrderWorkflow(payments=get_gateway()).refund(
        order_id,
        amount=body.amount,
        reason=body.reason,
        actor=principal.user_id,
    )
    return ok(order_view(order), "Refund processed successfully")


# ---------------------------------------------------------------------------
# Product Stock Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=Envelope)
async def register_product(
    body: RegisterProductRequest,
    principal: Principal = Depends(require("inventory:manage")),
) -> Envelope:
    command = RegisterProduct(**body.model_dump())
    product_id = current_domain.process(command, asynchronous=False)
    return ok(stock_view(InventoryLedger().product(product_id)), "Product registered")


@product_router.get("/{product_id}/stock", response_model=Envelope)
async def get_stock(product_id: str) -> Envelope:
    return ok(stock_view(InventoryLedger().product(product_id)))


@product_router.put("/{product_id}/stock", response_model=Envelope)
async def adjust_stock(
    product_id: str,
    body: AdjustStockRequest,
    principal: Principal = Depends(require("inventory:manage")),
) -> Envelope:
    command = AdjustStock(
        product_id=product_id,
        total_stock=body.total_stock,
        reason=body.reason,
        adjusted_by=principal.user_id,
    )
    current_domain.process(command, asynchronous=False)
    return ok(stock_view(InventoryLedger().product(product_id)), "Stock updated")


@product_router.put("/{product_id}/deactivate", response_model=Envelope)
async def deactivate_product(
    product_id: str,
    principal: Principal = Depends(require("inventory:manage")),
) -> Envelope:
    current_domain.process(DeactivateProduct(product_id=product_id), asynchronous=False)
    return ok(stock_view(InventoryLedger().product(product_id)), "Product deactivated")
