"""
Shop Module - E-commerce functionality.

Features:
- Item catalog mirrored to Stripe products
- Cursor pagination
- Checkout with Stripe payments
- Order finalization with stock tracking
"""

from storefront.modules.shop.items import ItemService
from storefront.modules.shop.orders import OrderService
from storefront.modules.shop.payment import PaymentService

__all__ = [
    "ItemService",
    "OrderService",
    "PaymentService",
]
