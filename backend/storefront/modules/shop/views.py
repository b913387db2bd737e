"""
Response shaping for items and orders.

Monetary columns are converted from cents to decimal amounts here, and
fields are filtered by what the caller may see.
"""

from typing import Any

from storefront.models.shop import Item, Order
from storefront.modules.shop.money import to_display


def item_view(item: Item, currency: str, authorized: bool) -> dict[str, Any]:
    """
    Public representation of an item.

    Anonymous callers never get ``sale_price`` or ``quantity``; both are
    returned as null to nudge them into signing in.
    """
    return {
        "id": item.id,
        "name": item.name,
        "picture": item.picture,
        "price": to_display(item.price),
        "sale_price": to_display(item.sale_price) if authorized else None,
        "currency": currency,
        "description": item.description,
        "shippable": item.shippable,
        "quantity": item.quantity if authorized else None,
    }


def order_view(order: Order, currency: str) -> dict[str, Any]:
    return {
        "id": order.id,
        "total_price": to_display(order.total_price),
        "currency": currency,
        "completed": order.completed,
        "created_at": order.created_at.isoformat(),
        "updated_at": order.updated_at.isoformat(),
    }


def order_detail_view(order: Order, currency: str) -> dict[str, Any]:
    """Order with its lines; line price is the snapshot, not the live price."""
    view = order_view(order, currency)
    view["items"] = [
        {
            "item_id": line.item_id,
            "name": line.item.name,
            "picture": line.item.picture,
            "description": line.item.description,
            "price": to_display(line.price),
            "quantity": line.quantity,
        }
        for line in order.lines
    ]
    return view
