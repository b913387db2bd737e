"""
Shop API Endpoints.

Catalog items, order intake and order history.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.modules.shop.items import ItemService
from storefront.modules.shop.orders import OrderService
from storefront.modules.shop.pagination import PaginationParams
from storefront.modules.shop.payment import PaymentService, get_payment_service
from storefront.modules.shop.schemas import CartRequest, ItemPayload
from storefront.modules.shop.views import item_view, order_detail_view, order_view

router = APIRouter()


def pagination_params(
    per_page: int = Query(0, description="Page size, 1-50 (default 20)"),
    before: int = Query(0, description="Cursor towards newer rows"),
    after: int = Query(0, description="Cursor towards older rows"),
) -> PaginationParams:
    """Read cursor query parameters; clamping happens in the services."""
    return PaginationParams(per_page=per_page, before=before, after=after)


# ==================== Items ====================


@router.get("/items")
async def get_items(
    request: Request,
    user_id: int | None = Query(None, description="Signed-in user, unlocks stock and sale prices"),
    pages: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    payment: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """
    Get catalog items, newest first.

    Returns items plus cursors to neighbouring pages.
    """
    authorized = bool(user_id)
    items, cursors = await ItemService(db, payment).list_items(pages, request.url)

    return {
        "items": [item_view(i, settings.shop_currency, authorized) for i in items],
        **cursors.model_dump(),
    }


@router.get("/items/{item_id}")
async def get_item(
    item_id: int,
    user_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
    payment: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """Get a single item."""
    item = await ItemService(db, payment).get_item(item_id)
    return item_view(item, settings.shop_currency, bool(user_id))


@router.post("/items", status_code=201)
async def create_item(
    request: ItemPayload,
    db: AsyncSession = Depends(get_db),
    payment: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """Create item and its Stripe product."""
    item = await ItemService(db, payment).create_item(request)
    return {"id": item.id}


@router.put("/items/{item_id}")
async def update_item(
    item_id: int,
    request: ItemPayload,
    db: AsyncSession = Depends(get_db),
    payment: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """Update item and its Stripe product."""
    item = await ItemService(db, payment).update_item(item_id, request)
    return item_view(item, settings.shop_currency, authorized=True)


@router.delete("/items/{item_id}", status_code=204)
async def delete_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    payment: PaymentService = Depends(get_payment_service),
) -> Response:
    """Remove item from the catalog."""
    await ItemService(db, payment).delete_item(item_id)
    return Response(status_code=204)


# ==================== Orders ====================


@router.post("/orders", status_code=201)
async def create_order(
    request: CartRequest,
    db: AsyncSession = Depends(get_db),
    payment: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """
    Start checkout for a cart.

    Returns URL to redirect user for payment.
    """
    return await OrderService(db, payment).create_order(
        request,
        success_url=settings.shop_checkout_success_url,
        cancel_url=settings.shop_checkout_cancel_url,
    )


@router.get("/orders")
async def get_orders(
    request: Request,
    user_id: int = Query(...),
    completed: bool = Query(True, description="Only paid orders"),
    pages: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    payment: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """Get user's orders."""
    orders, cursors = await OrderService(db, payment).list_orders(
        user_id, pages, request.url, completed_only=completed
    )

    return {
        "items": [order_view(o, settings.shop_currency) for o in orders],
        **cursors.model_dump(),
    }


@router.get("/orders/{order_id}")
async def get_order(
    order_id: int,
    user_id: int = Query(...),
    completed: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    payment: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """Get order details."""
    order = await OrderService(db, payment).get_order(
        order_id, user_id, completed_only=completed
    )
    return order_detail_view(order, settings.shop_currency)
