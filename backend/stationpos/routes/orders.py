# Overview: Flask API routes for cashier tickets; parses input and returns JSON responses.

# backend/stationpos/routes/orders.py
"""Cashier ticket API: create, list, read and report on orders."""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import Store
from ..extensions import db
from ..services import checkout_service, order_ledger_service
from ..services.store_access_service import get_cashier_store_ids
from ..errors import CheckoutError, AuthorizationError, NotFoundError, ValidationError
from ..decorators import require_auth, require_role
from ..validation import parse_identifier
from stationpos.time_utils import parse_day_range, utcnow, to_utc_z


cashier_bp = Blueprint("cashier", __name__, url_prefix="/api/cashier")


def _error_response(err: CheckoutError):
    return jsonify(err.to_dict()), err.http_status


def _server_error():
    return jsonify({
        "success": False,
        "kind": "ServerError",
        "code": "SERVER_ERROR",
        "message": "Internal server error",
    }), 500


def _positive_int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", code="INVALID_QUERY")
    if value < 1:
        raise ValidationError(f"{name} must be >= 1", code="INVALID_QUERY")
    return value


def _date_window():
    start_date = request.args.get("startDate")
    end_date = request.args.get("endDate")
    try:
        start, end = parse_day_range(start_date, end_date)
    except ValueError as e:
        raise ValidationError(str(e), code="INVALID_DATE_RANGE")
    return start_date, end_date, start, end


@cashier_bp.post("/orders")
@require_auth
@require_role("cashier")
def create_order_route():
    """
    Create a completed ticket from a cart.

    Body: {storeId, items: [{product, quantity | amount, variant?}]}
    Returns 201 {success, data: order}. Failures carry kind, code and, for
    cart-line errors, the 0-based index of the offending line.
    """
    try:
        payload = request.get_json(silent=True)
        order = checkout_service.checkout(payload, g.current_user.id)
        return jsonify({"success": True, "data": order.to_dict()}), 201

    except CheckoutError as e:
        if e.http_status >= 500:
            current_app.logger.error("Checkout failed: %r", e)
        return _error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create order")
        return _server_error()


@cashier_bp.get("/orders")
@require_auth
@require_role("cashier")
def list_orders_route():
    """
    List the cashier's own tickets.

    Query params: startDate, endDate (YYYY-MM-DD, inclusive), page, limit.
    """
    try:
        start_date, end_date, start, end = _date_window()
        result = order_ledger_service.list_cashier_orders(
            g.current_user.id,
            start,
            end,
            page=_positive_int_arg("page"),
            limit=_positive_int_arg("limit"),
        )
        return jsonify({
            "success": True,
            "data": result["items"],
            "pagination": result["pagination"],
            "period": {"startDate": start_date, "endDate": end_date},
        }), 200

    except CheckoutError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return _server_error()


@cashier_bp.get("/orders/<int:order_id>")
@require_auth
@require_role("cashier")
def get_order_route(order_id: int):
    """Single ticket with its lines. Other cashiers' tickets read as not found."""
    order = order_ledger_service.get_order(order_id)
    if not order or order.cashier_id != g.current_user.id:
        return _error_response(NotFoundError("Order not found", code="ORDER_NOT_FOUND"))

    return jsonify({"success": True, "data": order.to_dict()}), 200


@cashier_bp.get("/reports")
@require_auth
@require_role("cashier")
def cashier_report_route():
    """
    Ticket counts and revenue for the cashier over a date window.

    Query params: startDate, endDate (required), storeId (optional; must be
    one of the cashier's stores).
    """
    try:
        start_date, end_date, start, end = _date_window()

        store_ids = get_cashier_store_ids(g.current_user.id)
        store = None
        raw_store = request.args.get("storeId")
        if raw_store:
            store_id = parse_identifier(raw_store, field="storeId", code="INVALID_STORE")
            if store_id not in store_ids:
                raise AuthorizationError(
                    "Access to this store is not allowed",
                    code="STORE_ACCESS_DENIED",
                )
            store_ids = {store_id}
            store = db.session.get(Store, store_id)

        report = order_ledger_service.cashier_report(
            g.current_user.id,
            start,
            end,
            store_ids=store_ids,
        )

        return jsonify({
            "success": True,
            "data": {
                "period": {"startDate": start_date, "endDate": end_date},
                "generatedAt": to_utc_z(utcnow()),
                "store": {"id": store.id, "name": store.name} if store else None,
                **report,
            },
        }), 200

    except CheckoutError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build cashier report")
        return _server_error()
