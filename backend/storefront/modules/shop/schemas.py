"""
Request payloads for the shop.

Payloads only describe shape; business rules live in their ``validate``
methods so each failure maps to its own error code.
"""

from pydantic import BaseModel, Field

from storefront.modules.shop.errors import (
    InvalidItemIDError,
    InvalidItemQuantityError,
    InvalidUserIDError,
    ItemNameBlankError,
    ItemPriceNegativeError,
    ItemPriceTooHighError,
    ItemQuantityNotPositiveError,
    ItemSalePriceAbovePriceError,
    ItemSalePriceNegativeError,
    OrderItemsEmptyError,
)
from storefront.modules.shop.money import MAX_MINOR_AMOUNT


class ItemPayload(BaseModel):
    """
    Catalog item data for both create and update.

    Prices are integer minor units. Optional fields may be omitted by
    older clients.
    """

    name: str = ""
    picture: str | None = None
    price: int = 0
    sale_price: int | None = None
    description: str | None = None
    shippable: bool = False
    quantity: int = 0

    def validate_item(self) -> None:
        """Raise the first rule this payload breaks."""
        if not self.name.strip():
            raise ItemNameBlankError()

        if self.price < 0:
            raise ItemPriceNegativeError()
        if self.price > MAX_MINOR_AMOUNT:
            raise ItemPriceTooHighError(details={"max": MAX_MINOR_AMOUNT})

        if self.sale_price is not None:
            if self.sale_price < 0:
                raise ItemSalePriceNegativeError()
            if self.sale_price > self.price:
                raise ItemSalePriceAbovePriceError()

        if self.quantity <= 0:
            raise ItemQuantityNotPositiveError()


class CartLine(BaseModel):
    """One requested item."""

    item_id: int
    quantity: int


class CartRequest(BaseModel):
    """Order intake: who buys what."""

    user_id: int = 0
    items: list[CartLine] = Field(default_factory=list)

    def validate_cart(self) -> None:
        if self.user_id <= 0:
            raise InvalidUserIDError()

        if not self.items:
            raise OrderItemsEmptyError()

        for line in self.items:
            if line.item_id <= 0:
                raise InvalidItemIDError(details={"item_id": line.item_id})
            if line.quantity <= 0:
                raise InvalidItemQuantityError(details={"item_id": line.item_id})

    def merged_quantities(self) -> dict[int, int]:
        """Requested quantity per distinct item id."""
        quantities: dict[int, int] = {}
        for line in self.items:
            quantities[line.item_id] = quantities.get(line.item_id, 0) + line.quantity
        return quantities


class PaymentConfirmation(BaseModel):
    """Data the Stripe ``checkout.session.completed`` event carries."""

    session_id: str
    client_reference_id: str
    total_price: int = 0
