"""
Tests for product type normalization and amount validation helpers
"""
from decimal import Decimal

import pytest

from smoketrackr.domain.product import (
    PRODUCT_TYPE_OTHER,
    PRODUCT_TYPES,
    is_valid_product_type,
    normalize_product_type,
)
from smoketrackr.utils.money import round_money, to_decimal
from smoketrackr.utils.validation import (
    parse_positive_decimal,
    parse_whole_quantity,
    validate_positive_decimal,
)


class TestProductTypes:
    def test_closed_set(self):
        assert PRODUCT_TYPES == ("Cigar", "Cigarillo", "Cigarette", "Snus", "Other")

    @pytest.mark.parametrize("raw,expected", [
        ("cigar", "Cigar"),
        (" SNUS ", "Snus"),
        ("Cigarillo", "Cigarillo"),
        ("Pipe", PRODUCT_TYPE_OTHER),
        (None, PRODUCT_TYPE_OTHER),
        ("", PRODUCT_TYPE_OTHER),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_product_type(raw) == expected

    def test_is_valid_is_case_sensitive(self):
        assert is_valid_product_type("Cigar")
        assert not is_valid_product_type("cigar")


class TestValidation:
    def test_comma_decimal_accepted(self):
        assert parse_positive_decimal("12,50") == Decimal("12.50")

    def test_zero_rejected(self):
        assert validate_positive_decimal("0") == (False, "Value must be greater than zero")

    def test_too_many_places(self):
        is_valid, error = validate_positive_decimal("1.005")
        assert not is_valid
        assert "decimal places" in error

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            parse_positive_decimal("-3")

    def test_whole_quantity(self):
        assert parse_whole_quantity("10") == 10
        assert parse_whole_quantity(2.0) == 2

    def test_fractional_purchase_quantity_rejected(self):
        with pytest.raises(ValueError, match="whole number"):
            parse_whole_quantity("0.5")

    def test_non_positive_quantity_rejected(self):
        with pytest.raises(ValueError, match="greater than zero"):
            parse_whole_quantity(0)


class TestMoney:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_bool_is_not_a_number(self):
        with pytest.raises(ValueError):
            to_decimal(True)

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_float_is_not_a_number(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_round_half_up(self):
        assert round_money(Decimal("2.005")) == Decimal("2.01")
