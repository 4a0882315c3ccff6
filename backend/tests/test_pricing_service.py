"""Unit tests for the pricing resolver (no database)."""

import logging
from decimal import Decimal
from types import SimpleNamespace

import pytest

from stationpos.errors import NotFoundError, PricingError
from stationpos.services import pricing_service
from stationpos.services.pricing_service import resolve_line, pricing_strategy


def product(**overrides):
    values = {
        "id": 1,
        "name": "Item",
        "type": "quantity",
        "unit": "unit",
        "pricing_mode": "fixed",
        "base_price": Decimal("100"),
        "fuel_price_per_unit": None,
        "fuel_display_unit": None,
        "variants": [],
        "pricing_rules": [],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def fuel(price_per_unit=Decimal("600"), display_unit="L"):
    return product(
        name="Super 95",
        type="fuel",
        unit="L",
        pricing_mode="fuel",
        base_price=Decimal("0"),
        fuel_price_per_unit=price_per_unit,
        fuel_display_unit=display_unit,
    )


def rule(formula, name="tier"):
    return SimpleNamespace(name=name, formula=formula)


@pytest.fixture(autouse=True)
def reset_counter():
    pricing_service.reset_fallback_count()
    yield
    pricing_service.reset_fallback_count()


class TestStrategy:
    def test_fuel_wins_over_everything(self):
        assert pricing_strategy(fuel(), variant_id=3) == "fuel"

    def test_variant_when_variant_given(self):
        assert pricing_strategy(product(pricing_mode="dynamic"), variant_id=3) == "variant"

    def test_dynamic_mode(self):
        assert pricing_strategy(product(pricing_mode="dynamic"), variant_id=None) == "dynamic"

    @pytest.mark.parametrize("mode", ["fixed", "perUnit"])
    def test_fixed_modes(self, mode):
        assert pricing_strategy(product(pricing_mode=mode), variant_id=None) == "fixed"


class TestFixed:
    def test_fixed_price_line(self):
        line = resolve_line(product(), quantity=Decimal("3"))

        assert line.unit_price == Decimal("100")
        assert line.quantity == Decimal("3")
        assert line.line_total == Decimal("300.00")
        assert line.item_type == "standard"
        assert line.unit_label == "unit"

    def test_line_total_rounds_half_up(self):
        line = resolve_line(product(base_price=Decimal("0.25")), quantity=Decimal("0.1"))
        # 0.025 -> 0.03
        assert line.line_total == Decimal("0.03")

    def test_missing_quantity_is_a_pricing_error(self):
        with pytest.raises(PricingError) as exc:
            resolve_line(product())
        assert exc.value.code == "INVALID_QUANTITY"


class TestFuel:
    def test_amount_converted_to_quantity(self):
        line = resolve_line(fuel(), amount=Decimal("1000"))

        assert line.quantity == Decimal("1.667")
        assert line.line_total == Decimal("1000")
        assert line.unit_price == Decimal("600")
        assert line.item_type == "fuel"
        assert line.unit_label == "L"

    def test_display_unit_falls_back_to_product_unit(self):
        line = resolve_line(fuel(display_unit=None), amount=Decimal("600"))
        assert line.unit_label == "L"
        assert line.quantity == Decimal("1.000")

    def test_quantity_is_ignored_for_fuel(self):
        line = resolve_line(fuel(), amount=Decimal("300"), quantity=Decimal("99"))
        assert line.quantity == Decimal("0.500")

    @pytest.mark.parametrize("amount", [None, Decimal("0"), Decimal("-5"), Decimal("NaN"), Decimal("Infinity")])
    def test_invalid_amount(self, amount):
        with pytest.raises(PricingError) as exc:
            resolve_line(fuel(), amount=amount)
        assert exc.value.code == "INVALID_FUEL_AMOUNT"

    @pytest.mark.parametrize("price_per_unit", [None, Decimal("0"), Decimal("-1")])
    def test_missing_fuel_config(self, price_per_unit):
        with pytest.raises(PricingError) as exc:
            resolve_line(fuel(price_per_unit=price_per_unit), amount=Decimal("1000"))
        assert exc.value.code == "FUEL_CONFIG_MISSING"


class TestVariant:
    def test_offset_added_to_base_price(self):
        item = product(
            base_price=Decimal("50"),
            variants=[
                SimpleNamespace(id=7, name="1L", price_offset=Decimal("0")),
                SimpleNamespace(id=8, name="5L", price_offset=Decimal("10")),
            ],
        )
        line = resolve_line(item, variant_id=8, quantity=Decimal("2"))

        assert line.unit_price == Decimal("60")
        assert line.line_total == Decimal("120.00")
        assert line.variant_id == 8
        assert line.variant_name == "5L"

    def test_unknown_variant(self):
        item = product(variants=[SimpleNamespace(id=7, name="1L", price_offset=Decimal("0"))])
        with pytest.raises(NotFoundError) as exc:
            resolve_line(item, variant_id=99, quantity=Decimal("1"))
        assert exc.value.code == "VARIANT_NOT_FOUND"

    def test_negative_offset(self):
        item = product(variants=[SimpleNamespace(id=7, name="Promo", price_offset=Decimal("-25"))])
        line = resolve_line(item, variant_id=7, quantity=Decimal("1"))
        assert line.unit_price == Decimal("75")


class TestDynamic:
    def test_first_rule_is_evaluated(self):
        item = product(
            type="weight",
            pricing_mode="dynamic",
            base_price=Decimal("200"),
            pricing_rules=[rule("basePrice - min(quantity, 10) * 5"), rule("0", name="ignored")],
        )
        line = resolve_line(item, quantity=Decimal("2"))

        assert line.unit_price == Decimal("190.00")
        assert line.line_total == Decimal("380.00")
        assert pricing_service.fallback_count() == 0

    @pytest.mark.parametrize("formula", [
        "basePrice / 0",
        "discount * 2",
        "basePrice +",
        "0 - basePrice",
        "basePrice * 10000000000000000000000000000000",
        "basePrice * 100000000",
        "(" * 400 + "1",
    ])
    def test_failures_fall_back_to_base_price(self, formula, caplog):
        item = product(pricing_mode="dynamic", base_price=Decimal("200"), pricing_rules=[rule(formula)])

        with caplog.at_level(logging.WARNING, logger="stationpos.services.pricing_service"):
            line = resolve_line(item, quantity=Decimal("1.5"))

        assert line.unit_price == Decimal("200")
        assert line.line_total == Decimal("300.00")
        assert pricing_service.fallback_count() == 1
        assert any("fell back to base price" in record.getMessage() for record in caplog.records)

    def test_no_rules_falls_back(self):
        item = product(pricing_mode="dynamic", base_price=Decimal("80"))
        line = resolve_line(item, quantity=Decimal("1"))

        assert line.unit_price == Decimal("80")
        assert pricing_service.fallback_count() == 1
