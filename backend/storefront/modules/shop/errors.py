"""
Shop error taxonomy.

Every error carries a stable machine-readable ``code`` that is returned to
API clients as-is. Stripe errors are not wrapped: they propagate as
``stripe.StripeError`` so the provider detail survives.
"""


class ShopError(Exception):
    """Base class for all shop errors."""

    code = "shop_error"

    def __init__(self, code: str | None = None, details: dict | None = None) -> None:
        self.code = code or self.code
        self.details = details or {}
        super().__init__(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.code}', {details_str})"
        return f"{self.__class__.__name__}('{self.code}')"


class ShopValidationError(ShopError):
    """Client supplied data that can never succeed."""

    code = "validation_error"


class NotFoundError(ShopError):
    """Unknown item, order or correlation id."""

    code = "record_not_found"


class InternalError(ShopError):
    """Storage failure; the cause is logged, never returned."""

    code = "internal_error"


class CommitError(InternalError):
    code = "could_not_commit_db_transaction"


# Item validation
class ItemNameBlankError(ShopValidationError):
    code = "item_name_cannot_be_blank"


class ItemQuantityNotPositiveError(ShopValidationError):
    code = "quantity_cannot_be_zero_or_negative"


class ItemPriceNegativeError(ShopValidationError):
    code = "price_cannot_be_negative"


class ItemPriceTooHighError(ShopValidationError):
    code = "price_cannot_exceed_maximum"


class ItemSalePriceNegativeError(ShopValidationError):
    code = "sale_price_cannot_be_negative"


class ItemSalePriceAbovePriceError(ShopValidationError):
    code = "sale_price_cannot_be_greater_than_price"


class ItemDataBlankError(ShopValidationError):
    code = "shop_item_data_cannot_be_blank"


# Order validation
class InvalidUserIDError(ShopValidationError):
    code = "user_id_cannot_be_zero"


class OrderItemsEmptyError(ShopValidationError):
    code = "order_items_cannot_be_empty"


class InvalidItemIDError(ShopValidationError):
    code = "item_id_cannot_be_less_or_equal_than_zero"


class InvalidItemQuantityError(ShopValidationError):
    code = "item_quantity_cannot_be_less_or_equal_than_zero"


class OrderDataBlankError(ShopValidationError):
    code = "order_data_cannot_be_blank"


class SomeItemsDoNotExistError(ShopValidationError):
    code = "some_items_do_not_exist"


class InsufficientStockError(ShopValidationError):
    code = "insufficient_product_stock_amount"


class InvalidOrderIDError(ShopValidationError):
    code = "user_order_id_cannot_be_zero"
