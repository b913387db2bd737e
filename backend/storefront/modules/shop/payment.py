"""
Payment Service - Stripe integration.

Handles:
- Products and prices mirroring catalog items
- Checkout sessions
- Checkout line items lookup
- Webhooks
"""

from typing import Any
from uuid import uuid4

import stripe
from loguru import logger
from starlette.concurrency import run_in_threadpool

from storefront.core.config import settings


class PaymentService:
    """
    Stripe payment service.

    Owns its own ``stripe.StripeClient``; nothing here touches the
    module-level ``stripe.api_key``. Client calls block, so they run in
    the threadpool.

    Usage:
        payment = PaymentService()
        product = await payment.create_product("Filter", description=None)
    """

    def __init__(
        self,
        client: stripe.StripeClient | None = None,
        currency: str | None = None,
        webhook_secret: str | None = None,
    ) -> None:
        """Initialize with an explicit Stripe client."""
        self.client = client or stripe.StripeClient(settings.stripe_secret_key)
        self.currency = (currency or settings.shop_currency).lower()
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        )

    # ==================== Products ====================

    async def create_product(
        self,
        name: str,
        description: str | None = None,
        picture: str | None = None,
    ) -> dict[str, Any]:
        """Create an active Stripe product."""
        params: dict[str, Any] = {"name": name, "active": True}
        if description:
            params["description"] = description
        if picture:
            params["images"] = [picture]

        try:
            product = await run_in_threadpool(self.client.products.create, params=params)
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating product: {e}")
            raise

        return {"id": product.id, "name": product.name}

    async def update_product(
        self,
        product_id: str,
        name: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Update product name and description."""
        params: dict[str, Any] = {"name": name, "description": description or ""}

        try:
            product = await run_in_threadpool(
                self.client.products.update, product_id, params=params
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error updating product {product_id}: {e}")
            raise

        return {"id": product.id, "name": product.name}

    async def archive_product(self, product_id: str) -> None:
        """
        Deactivate a product.

        Stripe refuses to delete products that have prices, so removal from
        the catalog is an archive.
        """
        try:
            await run_in_threadpool(
                self.client.products.update, product_id, params={"active": False}
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error archiving product {product_id}: {e}")
            raise

    # ==================== Prices ====================

    async def create_price(
        self,
        product_id: str,
        unit_amount: int,
        lookup_key: str,
        transfer_lookup_key: bool = False,
    ) -> dict[str, Any]:
        """
        Create a price for a product.

        Prices are immutable once used by a checkout session, so a price
        change always creates a new price; ``transfer_lookup_key`` moves the
        item's lookup key over to it.

        Args:
            product_id: Stripe product ID
            unit_amount: Amount in minor units
            lookup_key: Stable key identifying the item's current price
            transfer_lookup_key: Take the key away from the previous price

        Returns:
            Price ID and lookup key
        """
        params: dict[str, Any] = {
            "product": product_id,
            "currency": self.currency,
            "unit_amount": unit_amount,
            "lookup_key": lookup_key,
        }
        if transfer_lookup_key:
            params["transfer_lookup_key"] = True

        try:
            price = await run_in_threadpool(self.client.prices.create, params=params)
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating price for {product_id}: {e}")
            raise

        return {"id": price.id, "lookup_key": price.lookup_key}

    @staticmethod
    def new_lookup_key() -> str:
        """Generate a unique price lookup key."""
        return str(uuid4())

    # ==================== Checkout ====================

    async def create_checkout_session(
        self,
        client_reference_id: str,
        items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
    ) -> dict[str, Any]:
        """
        Create Stripe Checkout session.

        Args:
            client_reference_id: Correlation id of the pending order
            items: List of line items [{product_id, unit_amount, quantity}]
            success_url: Redirect URL on success
            cancel_url: Redirect URL on cancel

        Returns:
            Checkout session with redirect URL
        """
        line_items = [
            {
                "price_data": {
                    "currency": self.currency,
                    "product": item["product_id"],
                    "unit_amount": item["unit_amount"],
                },
                "quantity": item["quantity"],
            }
            for item in items
        ]

        session_params = {
            "payment_method_types": ["card"],
            "line_items": line_items,
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": client_reference_id,
        }

        try:
            session = await run_in_threadpool(
                self.client.checkout.sessions.create, params=session_params
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating checkout session: {e}")
            raise

        return {
            "session_id": session.id,
            "url": session.url,
        }

    async def list_session_line_items(self, session_id: str) -> list[dict[str, Any]]:
        """
        Get what was bought in a checkout session.

        Returns:
            List of {product_id, lookup_key, unit_amount, quantity}
        """
        try:
            return await run_in_threadpool(self._fetch_line_items, session_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe error listing line items of {session_id}: {e}")
            raise

    def _fetch_line_items(self, session_id: str) -> list[dict[str, Any]]:
        # auto_paging_iter requests further pages while iterating
        page = self.client.checkout.sessions.line_items.list(
            session_id, params={"limit": 100}
        )
        return [
            {
                "product_id": li.price.product,
                "lookup_key": li.price.lookup_key,
                "unit_amount": li.price.unit_amount,
                "quantity": li.quantity,
            }
            for li in page.auto_paging_iter()
        ]

    # ==================== Webhooks ====================

    async def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any] | None:
        """
        Verify Stripe webhook signature and return event.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header

        Returns:
            Verified event data or None if invalid
        """
        try:
            event = self.client.construct_event(
                payload,
                signature,
                self.webhook_secret,
            )
        except stripe.SignatureVerificationError:
            logger.warning("Invalid Stripe webhook signature")
            return None
        except ValueError as e:
            logger.warning(f"Malformed Stripe webhook payload: {e}")
            return None

        return {
            "type": event.type,
            "data": event.data.object,
        }


def get_payment_service() -> PaymentService:
    """FastAPI dependency returning a Stripe-backed payment service."""
    return PaymentService()
