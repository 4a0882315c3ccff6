"""Order ledger: reference codes, lookups, ticket lists and cashier reports."""

import re
from datetime import datetime
from decimal import Decimal
from unittest import mock

import pytest

from stationpos.models import Order
from stationpos.services import order_ledger_service
from stationpos.services.order_ledger_service import (
    RefCodeCollisionError,
    allocate_ref_code,
    cashier_report,
    generate_ref_code,
    list_cashier_orders,
    list_store_orders,
)
from stationpos.time_utils import parse_day_range


def add_order(db_session, store, cashier, *, total, created_at, status="completed", ref_code=None):
    order = Order(
        ref_code=ref_code or generate_ref_code(created_at),
        cashier_id=cashier.id,
        store_id=store.id,
        created_by_id=cashier.id,
        status=status,
        payment_status="paid",
        total=Decimal(total),
        created_at=created_at,
        updated_at=created_at,
    )
    db_session.add(order)
    db_session.commit()
    return order


class TestRefCodes:
    def test_format(self):
        code = generate_ref_code(datetime(2026, 3, 7, 15, 30))
        assert re.fullmatch(r"ORD-20260307-\d{5}", code)
        assert 10000 <= int(code[-5:]) <= 99999

    def test_allocation_skips_existing_codes(self, db_session, store, cashier):
        now = datetime(2026, 3, 7, 12, 0)
        add_order(db_session, store, cashier, total="10", created_at=now, ref_code="ORD-20260307-11111")

        with mock.patch.object(
            order_ledger_service,
            "generate_ref_code",
            side_effect=["ORD-20260307-11111", "ORD-20260307-22222"],
        ):
            assert allocate_ref_code(now) == "ORD-20260307-22222"

    def test_allocation_gives_up(self, db_session):
        with mock.patch.object(order_ledger_service, "ref_code_exists", return_value=True):
            with pytest.raises(RefCodeCollisionError):
                allocate_ref_code(attempts=3)


class TestLookups:
    def test_get_order_and_by_ref(self, db_session, store, cashier):
        order = add_order(db_session, store, cashier, total="25", created_at=datetime(2026, 1, 2, 9, 0))

        assert order_ledger_service.get_order(order.id).id == order.id
        assert order_ledger_service.get_order_by_ref(order.ref_code).id == order.id
        assert order_ledger_service.get_order(order.id + 1000) is None
        assert order_ledger_service.get_order_by_ref("ORD-19990101-00000") is None


class TestCashierOrders:
    def test_inclusive_day_range_and_newest_first(self, db_session, store, cashier, outsider):
        add_order(db_session, store, cashier, total="10", created_at=datetime(2026, 5, 1, 0, 0, 0))
        add_order(db_session, store, cashier, total="20", created_at=datetime(2026, 5, 2, 23, 59, 59, 999000))
        add_order(db_session, store, cashier, total="30", created_at=datetime(2026, 5, 3, 0, 0, 0))
        add_order(db_session, store, cashier, total="40", created_at=datetime(2026, 4, 30, 23, 59, 59))
        add_order(db_session, store, outsider, total="50", created_at=datetime(2026, 5, 1, 12, 0))

        start, end = parse_day_range("2026-05-01", "2026-05-02")
        result = list_cashier_orders(cashier.id, start, end)

        assert [item["total"] for item in result["items"]] == [20.0, 10.0]
        assert result["pagination"] == {"total": 2, "page": 1, "limit": 10, "totalPages": 1}
        assert set(result["items"][0]) == {"id", "ref_code", "total", "status", "date"}

    def test_pagination(self, db_session, store, cashier):
        for day in range(1, 6):
            add_order(db_session, store, cashier, total=str(day), created_at=datetime(2026, 6, day, 10, 0))

        start, end = parse_day_range("2026-06-01", "2026-06-30")
        page_two = list_cashier_orders(cashier.id, start, end, page=2, limit=2)

        assert [item["total"] for item in page_two["items"]] == [3.0, 2.0]
        assert page_two["pagination"] == {"total": 5, "page": 2, "limit": 2, "totalPages": 3}

    def test_limit_is_capped(self, db_session, store, cashier):
        start, end = parse_day_range("2026-06-01", "2026-06-30")
        result = list_cashier_orders(cashier.id, start, end, limit=5000)
        assert result["pagination"]["limit"] == order_ledger_service.MAX_PAGE_SIZE
        assert result["pagination"]["totalPages"] == 0


class TestStoreOrders:
    def test_oldest_first_with_status_filter(self, db_session, store, cashier):
        first = add_order(db_session, store, cashier, total="10", created_at=datetime(2026, 7, 1, 8, 0))
        add_order(db_session, store, cashier, total="15", created_at=datetime(2026, 7, 1, 9, 0), status="cancelled")
        third = add_order(db_session, store, cashier, total="20", created_at=datetime(2026, 7, 1, 10, 0))

        start, end = parse_day_range("2026-07-01", "2026-07-01")
        assert len(list_store_orders(store.id, start, end)) == 3
        completed = list_store_orders(store.id, start, end, status="completed")
        assert [order.id for order in completed] == [first.id, third.id]


class TestCashierReport:
    def test_counts_and_amounts(self, db_session, store, cashier):
        add_order(db_session, store, cashier, total="100.00", created_at=datetime(2026, 8, 1, 8, 0))
        add_order(db_session, store, cashier, total="50.50", created_at=datetime(2026, 8, 1, 9, 0))
        add_order(db_session, store, cashier, total="25.00", created_at=datetime(2026, 8, 2, 9, 0), status="cancelled")

        start, end = parse_day_range("2026-08-01", "2026-08-02")
        report = cashier_report(cashier.id, start, end)

        assert report["tickets"] == {"total": 3, "completed": 2, "cancelled": 1}
        assert report["financial"] == {"totalAmount": 175.5, "averageTicket": 58.5}

    def test_empty_period(self, db_session, store, cashier):
        start, end = parse_day_range("2026-08-01", "2026-08-02")
        report = cashier_report(cashier.id, start, end)

        assert report["tickets"] == {"total": 0, "completed": 0, "cancelled": 0}
        assert report["financial"] == {"totalAmount": 0.0, "averageTicket": 0.0}

    def test_store_filter(self, db_session, store, cashier, company):
        from stationpos.models import Store

        second = Store(company_id=company.id, name="Airport Station")
        db_session.add(second)
        db_session.commit()

        add_order(db_session, store, cashier, total="10", created_at=datetime(2026, 8, 1, 8, 0))
        add_order(db_session, second, cashier, total="90", created_at=datetime(2026, 8, 1, 9, 0))

        start, end = parse_day_range("2026-08-01", "2026-08-01")
        assert cashier_report(cashier.id, start, end, store_ids={second.id})["financial"]["totalAmount"] == 90.0
        assert cashier_report(cashier.id, start, end, store_ids=set())["tickets"]["total"] == 0
