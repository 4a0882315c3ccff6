"""Transaction runner: commit, replay on lock conflicts, roll back on anything else."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from stationpos.errors import InventoryError
from stationpos.models import Product
from stationpos.services.concurrency import retry_delay, run_in_transaction


def _touch_stock(db_session, product_id, value):
    product = db_session.get(Product, product_id)
    product.inventory_current = Decimal(value)
    db_session.flush()


def _stock(db_session, product_id):
    db_session.expire_all()
    return db_session.get(Product, product_id).inventory_current


class TestRunInTransaction:
    def test_commits_result(self, db_session, fixed_product):
        result = run_in_transaction(lambda: _touch_stock(db_session, fixed_product.id, "7") or "done")

        assert result == "done"
        assert _stock(db_session, fixed_product.id) == Decimal("7")

    def test_lock_conflict_is_replayed_from_clean_state(self, db_session, fixed_product):
        calls = []

        def work():
            calls.append(_stock(db_session, fixed_product.id))
            _touch_stock(db_session, fixed_product.id, "4")
            if len(calls) == 1:
                raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        run_in_transaction(work, attempts=3, backoff_base=0)

        # The second attempt saw the original stock, not the flushed write.
        assert calls == [Decimal("10"), Decimal("10")]
        assert _stock(db_session, fixed_product.id) == Decimal("4")

    def test_gives_up_after_attempts(self, db_session, fixed_product):
        calls = []

        def work():
            calls.append(1)
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        with pytest.raises(OperationalError):
            run_in_transaction(work, attempts=2, backoff_base=0)
        assert len(calls) == 2

    def test_business_error_is_not_replayed(self, db_session, fixed_product):
        calls = []

        def work():
            calls.append(1)
            _touch_stock(db_session, fixed_product.id, "0")
            raise InventoryError("gone", code="STOCK_UPDATE_FAILED")

        with pytest.raises(InventoryError):
            run_in_transaction(work, attempts=3, backoff_base=0)

        assert len(calls) == 1
        assert _stock(db_session, fixed_product.id) == Decimal("10")

    def test_interrupt_rolls_back(self, db_session, fixed_product):
        def work():
            _touch_stock(db_session, fixed_product.id, "1")
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            run_in_transaction(work, backoff_base=0)

        assert _stock(db_session, fixed_product.id) == Decimal("10")


def test_backoff_is_capped():
    assert retry_delay(0, 0.1) == pytest.approx(0.1)
    assert retry_delay(2, 0.1) == pytest.approx(0.4)
    assert retry_delay(10, 0.1) == 2.0
