"""
Money conversion tests.
"""

from decimal import Decimal

import pytest

from storefront.modules.shop.money import MAX_MINOR_AMOUNT, to_decimal, to_display


def test_cents_to_display_amount():
    assert to_display(1999) == 19.99
    assert to_display(0) == 0.0
    assert to_display(5) == 0.05
    assert to_display(100) == 1.0
    assert to_display(None) is None


def test_decimal_is_exact_two_places():
    assert to_decimal(1999) == Decimal("19.99")
    assert str(to_decimal(100)) == "1.00"
    assert str(to_decimal(MAX_MINOR_AMOUNT)) == "9999999999999.99"


@pytest.mark.parametrize(
    "minor",
    [0, 1, 9, 10, 99, 101, 1999, 123456789, 2**53 // 100, 10**14 + 1, MAX_MINOR_AMOUNT - 1, MAX_MINOR_AMOUNT],
)
def test_display_amount_is_exact(minor):
    # JSON carries the float through its shortest repr
    assert Decimal(repr(to_display(minor))) * 100 == minor


def test_out_of_range_amounts_are_rejected():
    with pytest.raises(ValueError):
        to_decimal(-1)
    with pytest.raises(ValueError):
        to_decimal(MAX_MINOR_AMOUNT + 1)
