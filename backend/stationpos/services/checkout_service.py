# Overview: Checkout engine; validates a cart, prices it and commits order plus stock atomically.

"""
Checkout Engine - cashier ticket creation

WHY: The only write path that touches live inventory. A ticket either
exists with all of its lines and every stock decrement applied, or nothing
changed at all.

FLOW:
1. Validate the payload (no DB access): ids, quantities, cart size.
2. Authorize: store active, cashier is an employee or the supervisor.
3. Per line, in cart order: fetch product, stock pre-check (non-fuel),
   price via pricing_service, accumulate totals and decrement demand.
4. Commit in one transaction: insert order + lines, conditional stock
   decrements (UPDATE ... WHERE inventory_current >= qty), stock log rows.

CONCURRENCY:
- No application lock. Two checkouts racing for the last unit both pass
  the pre-check; the conditional decrement lets exactly one through and the
  other fails with InventoryError at commit time, rolling back its order.
- Busy / deadlocked database errors are replayed by run_in_transaction with a
  fresh transaction. Business errors are never retried.
- Any exception before commit (including interpreter-level cancellation)
  rolls the session back.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Order, OrderLine, Product, StockMovement
from ..errors import CheckoutError, InventoryError, NotFoundError, ServerError, ValidationError
from ..validation import CartLine, CheckoutRequest, parse_checkout_payload
from stationpos.time_utils import utcnow
from .concurrency import run_in_transaction
from .order_ledger_service import RefCodeCollisionError, allocate_ref_code
from .pricing_service import PricedLine, resolve_line, round_money
from .store_access_service import get_store_for_cashier


logger = logging.getLogger(__name__)


def _config(key: str, default: int) -> int:
    return int(current_app.config.get(key, default))


def _load_product(line: CartLine, store) -> Product:
    product = db.session.get(Product, line.product_id)
    if product is None or product.store_id != store.id:
        raise NotFoundError(
            f"Product {line.product_id} not found",
            code="PRODUCT_NOT_FOUND",
            line_index=line.index,
        )
    if not product.is_active:
        raise NotFoundError(
            f"Product \"{product.name}\" is no longer available",
            code="PRODUCT_INACTIVE",
            line_index=line.index,
        )
    return product


def _check_stock(product: Product, requested: Decimal, line: CartLine) -> None:
    available = Decimal(product.inventory_current or 0)
    if available < requested:
        raise InventoryError(
            f"Insufficient stock for \"{product.name}\". Available: {available}, requested: {requested}",
            code="INSUFFICIENT_STOCK",
            line_index=line.index,
            details={
                "product_id": product.id,
                "available": float(available),
                "requested": float(requested),
            },
        )


def price_cart(request: CheckoutRequest, store) -> tuple[list[PricedLine], dict[int, Decimal], dict[int, int]]:
    """
    Fetch, stock-check and price every line in cart order.

    Returns (priced lines, decrement demand per product id, index of the
    first line for each product). Raises on the first failing line with its
    index attached; nothing is written.
    """
    priced: list[PricedLine] = []
    demand: dict[int, Decimal] = {}
    first_line: dict[int, int] = {}

    for line in request.lines:
        product = _load_product(line, store)

        requested = None
        if not product.is_fuel:
            if line.quantity is None:
                raise ValidationError(
                    f"Item {line.index + 1}: quantity is required for \"{product.name}\"",
                    code="INVALID_QUANTITY",
                    line_index=line.index,
                )
            # Same product on several lines competes for the same stock.
            requested = demand.get(product.id, Decimal("0")) + line.quantity
            _check_stock(product, requested, line)

        try:
            priced_line = resolve_line(
                product,
                variant_id=line.variant_id,
                quantity=line.quantity,
                amount=line.amount,
            )
        except CheckoutError as exc:
            raise exc.at_line(line.index)

        priced.append(priced_line)
        if requested is not None:
            demand[product.id] = requested
            first_line.setdefault(product.id, line.index)

    return priced, demand, first_line


def _apply_stock_decrements(order: Order, demand: dict[int, Decimal], first_line: dict[int, int]) -> None:
    """
    Conditional decrement per product, in product-id order.

    rowcount 0 means a concurrent checkout took the stock after our
    pre-check; the caller rolls the whole transaction back.
    """
    for product_id in sorted(demand):
        quantity = demand[product_id]
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.inventory_current >= quantity)
            .values(
                inventory_current=func.round(Product.inventory_current - quantity, 3),
                version_id=Product.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            raise InventoryError(
                "Stock changed while the order was being created",
                code="STOCK_UPDATE_FAILED",
                line_index=first_line[product_id],
                details={"product_id": product_id, "requested": float(quantity)},
            )

        new_stock = (
            db.session.query(Product.inventory_current)
            .filter(Product.id == product_id)
            .scalar()
        )
        db.session.add(StockMovement(
            product_id=product_id,
            order_id=order.id,
            change=-quantity,
            new_stock=new_stock,
            reason="sale",
        ))


def _build_order(store, cashier_id: int, priced: list[PricedLine]) -> Order:
    now = utcnow()
    total = sum((line.line_total for line in priced), Decimal("0"))

    order = Order(
        ref_code=allocate_ref_code(now, attempts=_config("REF_CODE_ATTEMPTS", 5)),
        cashier_id=cashier_id,
        store_id=store.id,
        created_by_id=cashier_id,
        status="completed",
        payment_status="paid",
        total=round_money(total),
        created_at=now,
        updated_at=now,
    )
    for position, line in enumerate(priced):
        order.lines.append(OrderLine(
            position=position,
            product_id=line.product_id,
            product_name=line.product_name,
            item_type=line.item_type,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total=line.line_total,
            unit=line.unit_label,
            variant_id=line.variant_id,
            variant_name=line.variant_name,
        ))
    return order


def _place_order(request: CheckoutRequest, cashier_id: int) -> Order:
    store = get_store_for_cashier(request.store_id, cashier_id)
    priced, demand, first_line = price_cart(request, store)

    order = _build_order(store, cashier_id, priced)
    db.session.add(order)
    db.session.flush()

    _apply_stock_decrements(order, demand, first_line)
    return order


def _is_ref_code_conflict(exc: IntegrityError) -> bool:
    return "ref_code" in str(getattr(exc, "orig", exc))


def submit_order(request: CheckoutRequest, cashier_id: int) -> Order:
    """
    Run the checkout transaction for an already validated request.

    Raises CheckoutError subclasses only; database failures surface as
    ServerError after the transaction has been rolled back.
    """
    retry_attempts = _config("CHECKOUT_RETRY_ATTEMPTS", 3)
    ref_code_attempts = _config("REF_CODE_ATTEMPTS", 5)

    for attempt in range(max(ref_code_attempts, 1)):
        try:
            order = run_in_transaction(
                lambda: _place_order(request, cashier_id),
                attempts=retry_attempts,
            )
        except CheckoutError:
            raise
        except IntegrityError as exc:
            if _is_ref_code_conflict(exc) and attempt < ref_code_attempts - 1:
                logger.warning("Reference code collision, regenerating (attempt %d)", attempt + 1)
                continue
            logger.exception("Order insert violated a database constraint")
            raise ServerError("Database error while saving the order", code="DATABASE_ERROR") from exc
        except RefCodeCollisionError as exc:
            raise ServerError(str(exc), code="REF_CODE_GENERATION_FAILED") from exc
        except (OperationalError, StaleDataError) as exc:
            logger.exception("Checkout gave up after %d concurrency retries", retry_attempts)
            raise ServerError("Database busy, please retry", code="DATABASE_ERROR") from exc
        except SQLAlchemyError as exc:
            logger.exception("Unexpected database failure during checkout")
            raise ServerError("Database error while saving the order", code="DATABASE_ERROR") from exc

        logger.info(
            "Order %s created: store=%s cashier=%s lines=%d total=%s",
            order.ref_code,
            order.store_id,
            order.cashier_id,
            len(request.lines),
            order.total,
        )
        return order

    raise ServerError("Could not allocate a unique reference code", code="REF_CODE_GENERATION_FAILED")


def checkout(payload, cashier_id: int) -> Order:
    """Validate a raw request body ({storeId, items}) and create the order."""
    request = parse_checkout_payload(payload, max_lines=_config("MAX_CART_LINES", 100))
    return submit_order(request, cashier_id)


def create_order(store_id, cashier_id: int, items) -> Order:
    """
    createOrder(storeId, cashierId, cartLines[]) -> Order

    Raises ValidationError, AuthorizationError, NotFoundError,
    InventoryError, PricingError or ServerError.
    """
    return checkout({"storeId": store_id, "items": items}, cashier_id)
