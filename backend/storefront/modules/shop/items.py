"""
Item Service - catalog items mirrored to Stripe products.
"""

from datetime import datetime

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import URL

from storefront.models.shop import Item
from storefront.modules.shop.errors import (
    InternalError,
    ItemDataBlankError,
    NotFoundError,
)
from storefront.modules.shop.pagination import (
    PaginationParams,
    PaginationResponse,
    apply_cursor,
    build_page,
)
from storefront.modules.shop.payment import PaymentService
from storefront.modules.shop.schemas import ItemPayload


class ItemService:
    """
    Service for managing catalog items.

    Every write goes to Stripe first; the local row is only touched once the
    Stripe call succeeded.

    Usage:
        items = ItemService(db_session, PaymentService())
        item = await items.create_item(payload)
    """

    def __init__(self, db: AsyncSession, payment: PaymentService) -> None:
        """Initialize item service with database session and Stripe client."""
        self.db = db
        self.payment = payment

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error while {action}: {e}")
            raise InternalError() from e

    # ==================== Reads ====================

    async def get_item(self, item_id: int) -> Item:
        """Get a live (not soft-deleted) item by id."""
        query = select(Item).where(Item.id == item_id, Item.deleted_at.is_(None))
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Database error while getting item {item_id}: {e}")
            raise InternalError() from e

        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(details={"item_id": item_id})
        return item

    async def list_items(
        self,
        params: PaginationParams,
        url: URL,
    ) -> tuple[list[Item], PaginationResponse]:
        """
        Get one page of live items, newest first.

        Args:
            params: Page size and cursor, normalized here
            url: Current request URL for cursor links

        Returns:
            Items and the cursors of adjacent pages
        """
        params.normalize()
        query = apply_cursor(
            select(Item).where(Item.deleted_at.is_(None)),
            Item.id,
            params,
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Database error while listing items: {e}")
            raise InternalError() from e

        return build_page(list(result.scalars().all()), params, url)

    # ==================== Writes ====================

    async def create_item(self, data: ItemPayload | None) -> Item:
        """
        Create an item and its Stripe product and price.

        A Stripe failure propagates before anything is written locally.
        """
        if data is None:
            raise ItemDataBlankError()
        data.validate_item()

        product = await self.payment.create_product(
            data.name, description=data.description, picture=data.picture
        )
        price = await self.payment.create_price(
            product["id"],
            unit_amount=data.price,
            lookup_key=self.payment.new_lookup_key(),
        )

        item = Item(
            name=data.name,
            picture=data.picture,
            price=data.price,
            sale_price=data.sale_price,
            description=data.description,
            shippable=data.shippable,
            quantity=data.quantity,
            stripe_product_id=product["id"],
            stripe_price_lookup_key=price["lookup_key"],
        )
        self.db.add(item)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error while creating item {data.name!r}: {e}")
            raise InternalError() from e

        await self._commit("creating item")
        logger.info(f"Created item {item.id} (stripe product {item.stripe_product_id})")
        return item

    async def update_item(self, item_id: int, data: ItemPayload | None) -> Item:
        """
        Update an item and its Stripe product.

        A changed price gets a new Stripe price that takes over the item's
        lookup key; the old price stays behind, unreferenced.
        """
        if data is None:
            raise ItemDataBlankError()

        item = await self.get_item(item_id)
        data.validate_item()

        await self.payment.update_product(
            item.stripe_product_id, data.name, description=data.description
        )
        if data.price != item.price:
            await self.payment.create_price(
                item.stripe_product_id,
                unit_amount=data.price,
                lookup_key=item.stripe_price_lookup_key,
                transfer_lookup_key=True,
            )

        item.name = data.name
        item.picture = data.picture
        item.price = data.price
        item.sale_price = data.sale_price
        item.description = data.description
        item.shippable = data.shippable
        item.quantity = data.quantity
        item.updated_at = datetime.utcnow()

        await self._commit(f"updating item {item_id}")
        return item

    async def delete_item(self, item_id: int) -> None:
        """Archive the Stripe product, then soft-delete the item."""
        item = await self.get_item(item_id)

        await self.payment.archive_product(item.stripe_product_id)

        item.deleted_at = datetime.utcnow()
        await self._commit(f"deleting item {item_id}")
        logger.info(f"Deleted item {item_id}")
