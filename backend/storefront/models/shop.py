"""
Shop models for e-commerce functionality.

Includes:
- Items (catalog entries mirrored to Stripe products)
- Orders
- Order lines (price snapshots)

All monetary columns hold integer minor currency units (cents).
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.core.database import Base

if TYPE_CHECKING:
    from storefront.models.user import User


class Item(Base):
    """Sellable catalog item."""

    __tablename__ = "shop_items"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_shop_items_quantity_non_negative"),
        CheckConstraint("price >= 0", name="ck_shop_items_price_non_negative"),
        CheckConstraint(
            "sale_price IS NULL OR (sale_price >= 0 AND sale_price <= price)",
            name="ck_shop_items_sale_price_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    picture: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)

    # Pricing
    price: Mapped[int] = mapped_column(BigInteger)
    sale_price: Mapped[int | None] = mapped_column(BigInteger)

    # Inventory
    shippable: Mapped[bool] = mapped_column(Boolean, default=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0)

    # Stripe
    stripe_product_id: Mapped[str] = mapped_column(String(255), index=True)
    stripe_price_lookup_key: Mapped[str] = mapped_column(String(36), unique=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Relationships
    order_lines: Mapped[list["OrderLine"]] = relationship(back_populates="item")

    @property
    def effective_price(self) -> int:
        """Unit price a buyer pays right now."""
        if self.sale_price is not None:
            return self.sale_price
        return self.price

    def __repr__(self) -> str:
        return f"<Item {self.id}: {self.name}>"


class Order(Base):
    """Customer order, pending until Stripe confirms the checkout."""

    __tablename__ = "shop_orders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    total_price: Mapped[int] = mapped_column(BigInteger, default=0)

    # Stripe
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), index=True)
    client_reference_id: Mapped[str] = mapped_column(String(36), unique=True)

    completed: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="orders")
    lines: Mapped[list["OrderLine"]] = relationship(back_populates="order")

    def __repr__(self) -> str:
        return f"<Order {self.id} ref={self.client_reference_id}>"


class OrderLine(Base):
    """Line of an order with the unit price captured at purchase time."""

    __tablename__ = "shop_order_lines"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("shop_orders.id"), index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("shop_items.id"))

    # Snapshot at time of order
    price: Mapped[int] = mapped_column(BigInteger)
    quantity: Mapped[int] = mapped_column(Integer, default=1)

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="lines")
    item: Mapped["Item"] = relationship(back_populates="order_lines")
