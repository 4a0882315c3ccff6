# Overview: Pricing resolver; turns a product plus a cart line into a priced line.

"""
Pricing Resolver

Pure computation: no database access, no session use. Given a product, an
optional variant id and the requested quantity (or paid amount for fuel),
return the resolved unit price, quantity and line total.

Strategies (picked from product.type / pricing_mode):
- FUEL:    quantity = amount / price_per_unit (3 dp), total = amount exactly
- VARIANT: unit_price = base_price + variant.price_offset
- DYNAMIC: unit_price = first pricing rule evaluated on
           {basePrice, quantity, weight}; falls back to base_price
- FIXED:   unit_price = base_price (fixed and perUnit modes)

Rounding: money to 2 dp, quantities to 3 dp, ROUND_HALF_UP.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..errors import NotFoundError, PricingError
from .formula_engine import FormulaError, evaluate_formula


logger = logging.getLogger(__name__)

MONEY_STEP = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")
# Largest value a Numeric(12, 2) price column holds.
MAX_UNIT_PRICE = Decimal("9999999999.99")

STRATEGY_FUEL = "fuel"
STRATEGY_VARIANT = "variant"
STRATEGY_DYNAMIC = "dynamic"
STRATEGY_FIXED = "fixed"

_fallback_lock = threading.Lock()
_fallback_total = 0


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    product_name: str
    item_type: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    unit_label: str | None = None
    variant_id: int | None = None
    variant_name: str | None = None
    strategy: str = STRATEGY_FIXED


def round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_STEP, rounding=ROUND_HALF_UP)


def round_quantity(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def fallback_count() -> int:
    """How many dynamic-pricing evaluations fell back to base_price."""
    return _fallback_total


def reset_fallback_count() -> None:
    global _fallback_total
    with _fallback_lock:
        _fallback_total = 0


def _record_fallback(product, reason: str) -> None:
    global _fallback_total
    with _fallback_lock:
        _fallback_total += 1
    logger.warning(
        "Dynamic pricing fell back to base price for product %s (%s): %s",
        product.id,
        product.name,
        reason,
    )


def pricing_strategy(product, variant_id: int | None) -> str:
    if product.type == "fuel":
        return STRATEGY_FUEL
    if variant_id is not None:
        return STRATEGY_VARIANT
    if product.pricing_mode == "dynamic":
        return STRATEGY_DYNAMIC
    return STRATEGY_FIXED


def _base_price(product) -> Decimal:
    return Decimal(product.base_price or 0)


def _find_variant(product, variant_id: int):
    for variant in product.variants:
        if variant.id == variant_id:
            return variant
    raise NotFoundError(
        f"Variant {variant_id} does not exist for \"{product.name}\"",
        code="VARIANT_NOT_FOUND",
        details={"product_id": product.id, "variant_id": variant_id},
    )


def _require_quantity(product, quantity: Decimal | None) -> Decimal:
    if quantity is None or not quantity.is_finite() or quantity <= 0:
        raise PricingError(
            f"Invalid quantity for \"{product.name}\"",
            code="INVALID_QUANTITY",
        )
    return quantity


def _price_fuel(product, amount: Decimal | None) -> PricedLine:
    if amount is None or not amount.is_finite() or amount <= 0:
        raise PricingError(
            f"Invalid fuel amount for \"{product.name}\"",
            code="INVALID_FUEL_AMOUNT",
        )

    price_per_unit = product.fuel_price_per_unit
    if price_per_unit is None or Decimal(price_per_unit) <= 0:
        raise PricingError(
            f"Fuel price configuration missing for \"{product.name}\"",
            code="FUEL_CONFIG_MISSING",
        )

    price_per_unit = Decimal(price_per_unit)
    return PricedLine(
        product_id=product.id,
        product_name=product.name,
        item_type="fuel",
        quantity=round_quantity(amount / price_per_unit),
        unit_price=price_per_unit,
        line_total=amount,
        unit_label=product.fuel_display_unit or product.unit,
        strategy=STRATEGY_FUEL,
    )


def _price_variant(product, variant_id: int, quantity: Decimal) -> PricedLine:
    variant = _find_variant(product, variant_id)
    unit_price = _base_price(product) + Decimal(variant.price_offset or 0)
    return PricedLine(
        product_id=product.id,
        product_name=product.name,
        item_type="standard",
        quantity=quantity,
        unit_price=unit_price,
        line_total=round_money(unit_price * quantity),
        unit_label=product.unit,
        variant_id=variant.id,
        variant_name=variant.name,
        strategy=STRATEGY_VARIANT,
    )


def dynamic_unit_price(product, quantity: Decimal) -> Decimal:
    """
    Evaluate the first pricing rule; degrade to base_price on any failure.

    Fallbacks are logged at WARNING and counted (see fallback_count()).
    """
    base_price = _base_price(product)
    rules = list(product.pricing_rules)
    if not rules:
        _record_fallback(product, "no pricing rules configured")
        return base_price

    rule = rules[0]
    scope = {
        "basePrice": base_price,
        "quantity": quantity,
        "weight": quantity,
    }
    try:
        value = round_money(evaluate_formula(rule.formula, scope))
    except FormulaError as exc:
        _record_fallback(product, f"rule {rule.name!r}: {exc}")
        return base_price
    except InvalidOperation:
        _record_fallback(product, f"rule {rule.name!r} produced a price that cannot be rounded")
        return base_price

    if value < 0:
        _record_fallback(product, f"rule {rule.name!r} produced a negative price")
        return base_price
    if value > MAX_UNIT_PRICE:
        _record_fallback(product, f"rule {rule.name!r} produced a price above {MAX_UNIT_PRICE}")
        return base_price

    return value


def _price_dynamic(product, quantity: Decimal) -> PricedLine:
    unit_price = dynamic_unit_price(product, quantity)
    return PricedLine(
        product_id=product.id,
        product_name=product.name,
        item_type="standard",
        quantity=quantity,
        unit_price=unit_price,
        line_total=round_money(unit_price * quantity),
        unit_label=product.unit,
        strategy=STRATEGY_DYNAMIC,
    )


def _price_fixed(product, quantity: Decimal) -> PricedLine:
    unit_price = _base_price(product)
    return PricedLine(
        product_id=product.id,
        product_name=product.name,
        item_type="standard",
        quantity=quantity,
        unit_price=unit_price,
        line_total=round_money(unit_price * quantity),
        unit_label=product.unit,
        strategy=STRATEGY_FIXED,
    )


def resolve_line(
    product,
    *,
    variant_id: int | None = None,
    quantity: Decimal | None = None,
    amount: Decimal | None = None,
) -> PricedLine:
    """
    Price one cart line.

    Raises:
        PricingError: fuel amount / fuel config / quantity invalid
        NotFoundError: variant_id does not belong to the product
    """
    strategy = pricing_strategy(product, variant_id)

    if strategy == STRATEGY_FUEL:
        return _price_fuel(product, amount)

    quantity = _require_quantity(product, quantity)
    if strategy == STRATEGY_VARIANT:
        return _price_variant(product, variant_id, quantity)
    if strategy == STRATEGY_DYNAMIC:
        return _price_dynamic(product, quantity)
    return _price_fixed(product, quantity)
