from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError


# Largest quantity / amount a single cart line may carry. Keeps values inside
# the Numeric(14, 3) / Numeric(12, 2) columns and rejects nonsensical input.
MAX_LINE_QUANTITY = Decimal("99999999.999")
MAX_LINE_AMOUNT = Decimal("9999999999.99")

DEFAULT_MAX_CART_LINES = 100


@dataclass(frozen=True)
class CartLine:
    """One validated cart entry. Exactly one of quantity / amount is set."""
    index: int
    product_id: int
    quantity: Decimal | None = None
    amount: Decimal | None = None
    variant_id: int | None = None


@dataclass(frozen=True)
class CheckoutRequest:
    store_id: int
    lines: tuple[CartLine, ...]


def parse_identifier(value: Any, *, field: str, code: str, line_index: int | None = None) -> int:
    """
    Strict id coercion: positive int, or a string of plain digits.

    Rejects bools, floats, blanks, signs and scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        if value > 0:
            return value
        raise ValidationError(f"{field} must be a positive integer", code=code, line_index=line_index)

    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit() and int(stripped) > 0:
            return int(stripped)

    raise ValidationError(f"{field} is not a valid identifier", code=code, line_index=line_index)


def parse_decimal(value: Any, *, field: str, code: str, line_index: int | None = None) -> Decimal:
    """
    Coerce JSON numbers and numeric strings to a finite Decimal.

    Floats go through str() so 0.1 stays 0.1 rather than its binary expansion.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", code=code, line_index=line_index)

    if isinstance(value, (int, float)):
        raw = str(value)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
    else:
        raise ValidationError(f"{field} must be a number", code=code, line_index=line_index)

    try:
        number = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", code=code, line_index=line_index)

    if not number.is_finite():
        raise ValidationError(f"{field} must be a finite number", code=code, line_index=line_index)

    return number


def _parse_quantity(value: Any, index: int) -> Decimal:
    quantity = parse_decimal(value, field="quantity", code="INVALID_QUANTITY", line_index=index)
    if quantity <= 0:
        raise ValidationError("quantity must be > 0", code="INVALID_QUANTITY", line_index=index)
    if quantity > MAX_LINE_QUANTITY:
        raise ValidationError(
            f"quantity cannot exceed {MAX_LINE_QUANTITY}",
            code="INVALID_QUANTITY",
            line_index=index,
        )
    if quantity != quantity.quantize(Decimal("0.001")):
        raise ValidationError(
            "quantity supports at most 3 decimal places",
            code="INVALID_QUANTITY",
            line_index=index,
        )
    return quantity


def _parse_amount(value: Any, index: int) -> Decimal:
    # Sign and fuel configuration are checked by the pricing resolver, which
    # owns the fuel rules; here we only require a finite number.
    amount = parse_decimal(value, field="amount", code="INVALID_AMOUNT", line_index=index)
    if abs(amount) > MAX_LINE_AMOUNT:
        raise ValidationError(
            f"amount cannot exceed {MAX_LINE_AMOUNT}",
            code="INVALID_AMOUNT",
            line_index=index,
        )
    if amount != amount.quantize(Decimal("0.01")):
        raise ValidationError(
            "amount supports at most 2 decimal places",
            code="INVALID_AMOUNT",
            line_index=index,
        )
    return amount


def parse_cart_line(item: Any, index: int) -> CartLine:
    if not isinstance(item, dict):
        raise ValidationError("cart line must be an object", code="INVALID_ITEM", line_index=index)

    product_id = parse_identifier(
        item.get("product"),
        field="product",
        code="INVALID_PRODUCT_ID",
        line_index=index,
    )

    variant_id = None
    if item.get("variant") is not None:
        variant_id = parse_identifier(
            item.get("variant"),
            field="variant",
            code="INVALID_VARIANT_ID",
            line_index=index,
        )

    quantity = None
    amount = None
    if item.get("amount") is not None:
        amount = _parse_amount(item.get("amount"), index)
    if item.get("quantity") is not None:
        quantity = _parse_quantity(item.get("quantity"), index)

    if quantity is None and amount is None:
        raise ValidationError(
            "each cart line needs a quantity (or an amount for fuel)",
            code="INVALID_QUANTITY",
            line_index=index,
        )

    return CartLine(
        index=index,
        product_id=product_id,
        quantity=quantity,
        amount=amount,
        variant_id=variant_id,
    )


def parse_checkout_payload(payload: Any, *, max_lines: int = DEFAULT_MAX_CART_LINES) -> CheckoutRequest:
    """
    Validate the checkout body before any database access.

    Accepts {storeId | store_id, items: [{product, quantity | amount, variant?}]}.
    The first failing line aborts validation; its index is attached.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload", code="INVALID_PAYLOAD")

    raw_store = payload.get("storeId", payload.get("store_id"))
    if raw_store is None:
        raise ValidationError("storeId is required", code="INVALID_STORE")
    store_id = parse_identifier(raw_store, field="storeId", code="INVALID_STORE")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one product is required", code="INVALID_ITEMS")

    if len(items) > max_lines:
        raise ValidationError(
            f"A single order accepts at most {max_lines} lines",
            code="CART_TOO_LARGE",
            details={"max_lines": max_lines, "received": len(items)},
        )

    lines = tuple(parse_cart_line(item, index) for index, item in enumerate(items))
    return CheckoutRequest(store_id=store_id, lines=lines)
