"""
Order Service - order assembly, checkout and finalization.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import uuid4

from loguru import logger
from sqlalchemy import and_, case, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from starlette.datastructures import URL

from storefront.models.shop import Item, Order, OrderLine
from storefront.models.user import User
from storefront.modules.shop.errors import (
    CommitError,
    InsufficientStockError,
    InternalError,
    InvalidOrderIDError,
    NotFoundError,
    OrderDataBlankError,
    OrderItemsEmptyError,
    SomeItemsDoNotExistError,
)
from storefront.modules.shop.pagination import (
    PaginationParams,
    PaginationResponse,
    apply_cursor,
    build_page,
)
from storefront.modules.shop.payment import PaymentService
from storefront.modules.shop.schemas import CartRequest, PaymentConfirmation


@dataclass
class ResolvedOrderItem:
    """A cart line priced against the catalog."""

    item_id: int
    stripe_product_id: str
    unit_price: int
    quantity: int

    @property
    def total(self) -> int:
        return self.unit_price * self.quantity


@dataclass
class OrderDraft:
    """Priced order that has not been persisted yet."""

    user_id: int
    total_price: int
    items: dict[int, ResolvedOrderItem]


class OrderService:
    """
    Service for creating, finalizing and reading orders.

    Usage:
        orders = OrderService(db_session, PaymentService())
        draft = await orders.prepare_for_order(cart)
    """

    def __init__(self, db: AsyncSession, payment: PaymentService) -> None:
        """Initialize order service with database session and Stripe client."""
        self.db = db
        self.payment = payment

    # ==================== Assembly ====================

    async def prepare_for_order(self, data: CartRequest | None) -> OrderDraft:
        """
        Validate a cart and price it against current catalog state.

        Nothing is written. Sale prices win over list prices, and the total
        is the sum of unit price times quantity over all lines.

        Args:
            data: Cart request

        Returns:
            Order draft with the resolved items keyed by item id
        """
        if data is None:
            raise OrderDataBlankError()
        data.validate_cart()

        quantities = data.merged_quantities()
        query = select(Item).where(
            Item.id.in_(list(quantities)),
            Item.deleted_at.is_(None),
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Database error while loading order items: {e}")
            raise InternalError() from e

        catalog = {item.id: item for item in result.scalars().all()}
        if len(catalog) != len(quantities):
            missing = sorted(set(quantities) - set(catalog))
            raise SomeItemsDoNotExistError(details={"item_ids": missing})

        resolved: dict[int, ResolvedOrderItem] = {}
        for item_id, quantity in quantities.items():
            item = catalog[item_id]
            if item.quantity < quantity:
                raise InsufficientStockError(
                    details={
                        "item_id": item_id,
                        "requested": quantity,
                        "available": item.quantity,
                    }
                )
            resolved[item_id] = ResolvedOrderItem(
                item_id=item_id,
                stripe_product_id=item.stripe_product_id,
                unit_price=item.effective_price,
                quantity=quantity,
            )

        total = sum(line.total for line in resolved.values())
        return OrderDraft(user_id=data.user_id, total_price=total, items=resolved)

    async def create_order(
        self,
        data: CartRequest | None,
        success_url: str,
        cancel_url: str,
    ) -> dict[str, Any]:
        """
        Create a pending order and the Stripe checkout session paying for it.

        The order row and the session share a fresh correlation id. If Stripe
        fails the pending order is rolled back.

        Returns:
            Order id, session id, checkout URL and correlation id
        """
        draft = await self.prepare_for_order(data)
        client_reference_id = str(uuid4())

        order = Order(
            user_id=draft.user_id,
            total_price=draft.total_price,
            client_reference_id=client_reference_id,
            completed=False,
        )
        self.db.add(order)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error while creating pending order: {e}")
            raise InternalError() from e

        try:
            session = await self.payment.create_checkout_session(
                client_reference_id=client_reference_id,
                items=[
                    {
                        "product_id": line.stripe_product_id,
                        "unit_amount": line.unit_price,
                        "quantity": line.quantity,
                    }
                    for line in draft.items.values()
                ],
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except Exception:
            await self.db.rollback()
            raise

        order.stripe_session_id = session["session_id"]
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error while committing pending order: {e}")
            raise CommitError() from e

        logger.info(
            f"Created pending order {order.id} for user {draft.user_id} "
            f"(ref {client_reference_id})"
        )
        return {
            "order_id": order.id,
            "session_id": session["session_id"],
            "url": session["url"],
            "client_reference_id": client_reference_id,
        }

    # ==================== Finalization ====================

    async def _purchased_items(self, session_id: str) -> dict[int, dict[str, int]]:
        """Map item id -> {price, quantity} for what a checkout session sold."""
        line_items = await self.payment.list_session_line_items(session_id)
        if not line_items:
            raise OrderItemsEmptyError(details={"session_id": session_id})

        product_ids = {li["product_id"] for li in line_items}
        query = select(Item.id, Item.stripe_product_id).where(
            Item.stripe_product_id.in_(product_ids)
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Database error while resolving purchased items: {e}")
            raise InternalError() from e

        item_ids = {row.stripe_product_id: row.id for row in result}
        unknown = product_ids - set(item_ids)
        if unknown:
            raise SomeItemsDoNotExistError(details={"stripe_product_ids": sorted(unknown)})

        purchased: dict[int, dict[str, int]] = {}
        for li in line_items:
            item_id = item_ids[li["product_id"]]
            if item_id in purchased:
                purchased[item_id]["quantity"] += li["quantity"]
            else:
                purchased[item_id] = {
                    "price": li["unit_amount"],
                    "quantity": li["quantity"],
                }
        return purchased

    async def finalize_order(self, confirmation: PaymentConfirmation) -> Order:
        """
        Complete the order a paid checkout session belongs to.

        Runs as one transaction: mark the order completed, insert its lines
        and decrement stock. Re-delivery of the same confirmation is a no-op.

        Args:
            confirmation: Session id, correlation id and paid total

        Returns:
            The completed order

        Raises:
            NotFoundError: No order carries the correlation id
            InternalError: Any database failure (rolled back)
            CommitError: The commit itself failed (rolled back)
        """
        reference = confirmation.client_reference_id
        purchased = await self._purchased_items(confirmation.session_id)

        try:
            order = await self._find_by_reference(reference)
            if order is None:
                raise NotFoundError(details={"client_reference_id": reference})

            if order.completed:
                logger.warning(f"Order {order.id} (ref {reference}) already completed")
                return order

            total_price = confirmation.total_price or sum(
                p["price"] * p["quantity"] for p in purchased.values()
            )

            result = await self.db.execute(
                update(Order)
                .where(
                    Order.client_reference_id == reference,
                    Order.completed.is_(False),
                )
                .values(
                    completed=True,
                    total_price=total_price,
                    stripe_session_id=confirmation.session_id,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Another delivery of the same event got there first
                logger.warning(f"Order {order.id} (ref {reference}) completed concurrently")
                await self.db.refresh(order)
                return order

            await self.db.execute(
                insert(OrderLine),
                [
                    {
                        "order_id": order.id,
                        "item_id": item_id,
                        "price": p["price"],
                        "quantity": p["quantity"],
                    }
                    for item_id, p in purchased.items()
                ],
            )

            deltas = {item_id: p["quantity"] for item_id, p in purchased.items()}
            await self.db.execute(
                update(Item)
                .where(Item.id.in_(list(deltas)))
                .values(quantity=Item.quantity - case(deltas, value=Item.id))
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error while finalizing order ref {reference}: {e}")
            raise InternalError() from e
        except BaseException:
            await self.db.rollback()
            raise

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Could not commit finalization of order ref {reference}: {e}")
            raise CommitError() from e

        await self.db.refresh(order)
        logger.info(f"Order {order.id} completed (session {confirmation.session_id})")
        return order

    # ==================== Reads ====================

    async def _find_by_reference(self, client_reference_id: str) -> Order | None:
        query = (
            select(Order)
            .where(Order.client_reference_id == client_reference_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_order_by_reference(
        self,
        client_reference_id: str,
        completed: bool = False,
    ) -> Order:
        """Get an order by correlation id and completion state."""
        query = select(Order).where(
            Order.client_reference_id == client_reference_id,
            Order.completed.is_(completed),
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Database error while getting order by reference: {e}")
            raise InternalError() from e

        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(details={"client_reference_id": client_reference_id})
        return order

    def _user_orders(self, user_id: int, completed_only: bool):
        query = (
            select(Order)
            .join(User, and_(User.id == Order.user_id, User.deleted_at.is_(None)))
            .where(Order.user_id == user_id, Order.lines.any())
        )
        if completed_only:
            query = query.where(Order.completed.is_(True))
        return query

    async def list_orders(
        self,
        user_id: int,
        params: PaginationParams,
        url: URL,
        completed_only: bool = True,
    ) -> tuple[list[Order], PaginationResponse]:
        """
        Get one page of a user's orders, newest first.

        Orders without lines (abandoned checkouts) and orders of deleted
        users are never listed.
        """
        params.normalize()
        query = apply_cursor(self._user_orders(user_id, completed_only), Order.id, params)
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Database error while listing orders of user {user_id}: {e}")
            raise InternalError() from e

        return build_page(list(result.scalars().all()), params, url)

    async def get_order(
        self,
        order_id: int,
        user_id: int,
        completed_only: bool = True,
    ) -> Order:
        """Get a user's order with its lines and their items loaded."""
        if order_id <= 0:
            raise InvalidOrderIDError()

        query = (
            self._user_orders(user_id, completed_only)
            .options(selectinload(Order.lines).selectinload(OrderLine.item))
            .where(Order.id == order_id)
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Database error while getting order {order_id}: {e}")
            raise InternalError() from e

        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(details={"order_id": order_id})
        return order
