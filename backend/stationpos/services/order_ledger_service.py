# Overview: Service-layer operations for the order ledger; reference codes, lookups and cashier reports.

from __future__ import annotations

import secrets
from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, false, func

from ..extensions import db
from ..models import Order
from stationpos.time_utils import utcnow
from .pricing_service import round_money
"""
Order Ledger Invariants (authoritative)

- Append-only from checkout's point of view: orders are inserted once, in
  the same DB transaction as their stock decrements.
- Lines are never updated; only status / payment_status transition later.
- ref_code is unique. A collision is a retryable generation error, never an
  overwrite.
- Date-range filters are inclusive on both ends (created_at).
"""


REF_CODE_PREFIX = "ORD"
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class RefCodeCollisionError(Exception):
    """Raised when no unused reference code could be generated."""
    pass


def generate_ref_code(now: datetime | None = None) -> str:
    """ORD-<YYYYMMDD>-<5 random digits>, digits in 10000..99999."""
    now = now or utcnow()
    random_part = 10000 + secrets.randbelow(90000)
    return f"{REF_CODE_PREFIX}-{now:%Y%m%d}-{random_part}"


def ref_code_exists(ref_code: str) -> bool:
    return (
        db.session.query(Order.id).filter_by(ref_code=ref_code).first()
        is not None
    )


def allocate_ref_code(now: datetime | None = None, *, attempts: int = 5) -> str:
    """
    Pick a reference code not yet present in the ledger.

    The unique index remains the final guard: a concurrent insert with the
    same code fails the whole commit, which checkout treats as retryable.
    """
    for _ in range(max(attempts, 1)):
        candidate = generate_ref_code(now)
        if not ref_code_exists(candidate):
            return candidate
    raise RefCodeCollisionError(f"Could not allocate a unique reference code after {attempts} attempts")


def get_order(order_id: int) -> Order | None:
    return db.session.query(Order).filter_by(id=order_id).first()


def get_order_by_ref(ref_code: str) -> Order | None:
    return db.session.query(Order).filter_by(ref_code=ref_code).first()


def _normalize_page(page: int | None, limit: int | None) -> tuple[int, int]:
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else DEFAULT_PAGE_SIZE
    return page, min(limit, MAX_PAGE_SIZE)


def list_cashier_orders(
    cashier_id: int,
    start: datetime,
    end: datetime,
    *,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    """
    Cashier's own tickets inside [start, end], newest first, paginated.

    Returns dict with 'items' (summary rows) and 'pagination'.
    """
    page, limit = _normalize_page(page, limit)

    base_query = db.session.query(Order).filter(
        Order.cashier_id == cashier_id,
        Order.created_at >= start,
        Order.created_at <= end,
    )

    total = base_query.count()
    orders = (
        base_query
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "items": [order.to_summary_dict() for order in orders],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": (total + limit - 1) // limit,
        },
    }


def list_store_orders(
    store_id: int,
    start: datetime,
    end: datetime,
    *,
    status: str | None = None,
) -> list[Order]:
    """Store orders in [start, end] (oldest first), optionally by status."""
    query = db.session.query(Order).filter(
        Order.store_id == store_id,
        Order.created_at >= start,
        Order.created_at <= end,
    )
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.asc(), Order.id.asc()).all()


def cashier_report(
    cashier_id: int,
    start: datetime,
    end: datetime,
    *,
    store_ids: set[int] | None = None,
) -> dict:
    """
    Ticket counts and revenue for a cashier in [start, end].

    store_ids restricts the aggregation; an empty set yields an empty report.
    """
    query = db.session.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total), 0),
        func.coalesce(func.sum(case((Order.status == "completed", 1), else_=0)), 0),
        func.coalesce(func.sum(case((Order.status == "cancelled", 1), else_=0)), 0),
    ).filter(
        Order.cashier_id == cashier_id,
        Order.created_at >= start,
        Order.created_at <= end,
    )
    if store_ids is not None:
        if not store_ids:
            query = query.filter(false())
        else:
            query = query.filter(Order.store_id.in_(sorted(store_ids)))

    total_tickets, total_amount, completed, cancelled = query.one()
    total_amount = round_money(Decimal(str(total_amount or 0)))
    average = round_money(total_amount / total_tickets) if total_tickets else Decimal("0.00")

    return {
        "tickets": {
            "total": int(total_tickets or 0),
            "completed": int(completed or 0),
            "cancelled": int(cancelled or 0),
        },
        "financial": {
            "totalAmount": float(total_amount),
            "averageTicket": float(average),
        },
    }
