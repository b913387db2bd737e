"""
Catalog item lifecycle tests.
"""

import pytest
import stripe
from sqlalchemy import func, select

from storefront.models.shop import Item
from storefront.modules.shop import errors
from storefront.modules.shop.money import MAX_MINOR_AMOUNT
from storefront.modules.shop.schemas import ItemPayload


def payload(**overrides) -> ItemPayload:
    data = {"name": "Gripper arm", "price": 4500, "quantity": 3}
    data.update(overrides)
    return ItemPayload(**data)


@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"name": ""}, errors.ItemNameBlankError),
        ({"name": "   "}, errors.ItemNameBlankError),
        ({"price": -1}, errors.ItemPriceNegativeError),
        ({"price": MAX_MINOR_AMOUNT + 1}, errors.ItemPriceTooHighError),
        ({"price": 10**16, "sale_price": 100}, errors.ItemPriceTooHighError),
        ({"sale_price": -1}, errors.ItemSalePriceNegativeError),
        ({"sale_price": 4501}, errors.ItemSalePriceAbovePriceError),
        ({"quantity": 0}, errors.ItemQuantityNotPositiveError),
        ({"quantity": -2}, errors.ItemQuantityNotPositiveError),
    ],
)
async def test_create_rejects_invalid_data(item_service, payment, db, overrides, error):
    with pytest.raises(error):
        await item_service.create_item(payload(**overrides))

    assert payment.calls == []
    assert await db.scalar(select(func.count(Item.id))) == 0


async def test_create_rejects_missing_payload(item_service):
    with pytest.raises(errors.ItemDataBlankError):
        await item_service.create_item(None)


async def test_create_persists_exact_prices(item_service, payment, db):
    item = await item_service.create_item(
        payload(price=4500, sale_price=3999, description="Two-jaw", picture="arm.png")
    )

    stored = await db.scalar(
        select(Item).where(Item.id == item.id).execution_options(populate_existing=True)
    )
    assert stored.price == 4500
    assert stored.sale_price == 3999
    assert stored.quantity == 3
    assert stored.stripe_product_id in payment.products
    assert payment.prices[0]["unit_amount"] == 4500
    assert payment.prices[0]["lookup_key"] == stored.stripe_price_lookup_key


async def test_sale_price_equal_to_price_is_allowed(item_service):
    item = await item_service.create_item(payload(price=1000, sale_price=1000))
    assert item.sale_price == 1000


async def test_largest_displayable_price_is_allowed(item_service):
    item = await item_service.create_item(payload(price=MAX_MINOR_AMOUNT))
    assert item.price == MAX_MINOR_AMOUNT


async def test_distinct_items_get_distinct_lookup_keys(make_item):
    first = await make_item(name="Tether")
    second = await make_item(name="Tether")

    assert first.id != second.id
    assert first.stripe_price_lookup_key != second.stripe_price_lookup_key


async def test_stripe_failure_writes_nothing(item_service, payment, db):
    payment.fail.add("create_price")

    with pytest.raises(stripe.StripeError):
        await item_service.create_item(payload())

    assert await db.scalar(select(func.count(Item.id))) == 0


async def test_update_with_new_price_creates_new_stripe_price(make_item, item_service, payment):
    item = await make_item(price=1000)

    updated = await item_service.update_item(item.id, payload(name="Renamed", price=1200))

    assert updated.price == 1200
    assert updated.name == "Renamed"
    assert payment.products[item.stripe_product_id]["name"] == "Renamed"
    new_price = payment.prices[-1]
    assert new_price["unit_amount"] == 1200
    assert new_price["lookup_key"] == item.stripe_price_lookup_key
    assert new_price["transfer_lookup_key"] is True


async def test_update_without_price_change_keeps_stripe_price(make_item, item_service, payment):
    item = await make_item(price=1000)

    await item_service.update_item(item.id, payload(price=1000, quantity=8))

    assert payment.calls.count("create_price") == 1
    assert "update_product" in payment.calls


async def test_update_validates_and_requires_existing_item(make_item, item_service, payment):
    item = await make_item()

    with pytest.raises(errors.ItemSalePriceAbovePriceError):
        await item_service.update_item(item.id, payload(price=10, sale_price=11))
    with pytest.raises(errors.NotFoundError):
        await item_service.update_item(9999, payload())

    assert "update_product" not in payment.calls


async def test_delete_archives_product_then_hides_item(make_item, item_service, payment):
    item = await make_item()

    await item_service.delete_item(item.id)

    assert payment.products[item.stripe_product_id]["active"] is False
    with pytest.raises(errors.NotFoundError):
        await item_service.get_item(item.id)


async def test_delete_keeps_item_when_stripe_fails(make_item, item_service, payment):
    item = await make_item()
    payment.fail.add("archive_product")

    with pytest.raises(stripe.StripeError):
        await item_service.delete_item(item.id)

    assert (await item_service.get_item(item.id)).id == item.id


async def test_get_unknown_item(item_service):
    with pytest.raises(errors.NotFoundError):
        await item_service.get_item(42)
