"""Tests for the SQLAlchemy executor and the startup helpers.

These tests run on an in-process SQLite database and use low-level SQL
to check what was actually persisted, independently of the executor
under test.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import text

from orders.db import SqlExecutor, build_engine, init_db, seed_catalog, wait_for_db
from orders.domain import IncomingOrderItem
from orders.errors import ConnectivityError, ProductNotFound, StoreError
from orders.executor import Statement
from orders.services import OrderService

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
UNREACHABLE_URL = "sqlite:////nonexistent-dir/deeper/orders.db"


def _count(engine, table):
    with engine.connect() as conn:
        return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()


def test_fetch_product_rows_are_typed(sql_executor):
    assert sql_executor.query_one(Statement.FETCH_PRODUCT, {"id": 1}) == (1, "Laptop Pro", 1200.0, 0.22)
    assert sql_executor.query_one(Statement.FETCH_PRODUCT, {"id": 42}) is None


def test_create_persists_order_and_item_rows(sql_engine, sql_executor):
    """A created order is stored with rounded totals and item snapshots."""
    receipt = OrderService(sql_executor).place_order([IncomingOrderItem(1, 1), IncomingOrderItem(2, 2)])

    with sql_engine.connect() as conn:
        header = conn.execute(
            text("SELECT total_price, vat_amount FROM orders WHERE order_id = :id"),
            {"id": receipt.order_id},
        ).one()
        items = conn.execute(
            text(
                "SELECT product_id, quantity, unit_price, item_vat FROM order_items "
                "WHERE order_id = :id ORDER BY item_id"
            ),
            {"id": receipt.order_id},
        ).all()

    assert tuple(header) == (1500.0, 330.0)
    assert [tuple(r) for r in items] == [(1, 1, 1200.0, 264.0), (2, 2, 150.0, 33.0)]


def test_item_ids_come_from_the_table(sql_executor):
    with sql_executor.begin() as tx:
        tx.execute(
            Statement.INSERT_ORDER,
            {"order_id": "o-1", "total_price": 0.0, "vat_amount": 0.0, "created_at": NOW},
        )
        params = {"order_id": "o-1", "product_id": 1, "quantity": 1, "unit_price": 1.0, "item_vat": 0.22}
        first = tx.query_one(Statement.INSERT_ORDER_ITEM, params)[0]
        second = tx.query_one(Statement.INSERT_ORDER_ITEM, params)[0]
        tx.commit()
    assert 0 < first < second


def test_fetch_order_returns_datetime(sql_executor):
    with sql_executor.begin() as tx:
        tx.execute(
            Statement.INSERT_ORDER,
            {"order_id": "o-2", "total_price": 0.0, "vat_amount": 0.0, "created_at": NOW},
        )
        tx.commit()
    row = sql_executor.query_one(Statement.FETCH_ORDER, {"order_id": "o-2"})
    assert row[:3] == ("o-2", 0.0, 0.0)
    assert isinstance(row[3], datetime)


def test_rollback_discards_writes(sql_engine, sql_executor):
    with sql_executor.begin() as tx:
        tx.execute(
            Statement.INSERT_ORDER,
            {"order_id": "o-3", "total_price": 0.0, "vat_amount": 0.0, "created_at": NOW},
        )
    assert _count(sql_engine, "orders") == 0


def test_failed_order_leaves_no_rows(sql_engine, sql_executor):
    with pytest.raises(ProductNotFound):
        OrderService(sql_executor).place_order([IncomingOrderItem(1, 1), IncomingOrderItem(999, 1)])
    assert _count(sql_engine, "orders") == 0
    assert _count(sql_engine, "order_items") == 0


def test_update_missing_order_counts_zero(sql_executor):
    with sql_executor.begin() as tx:
        count = tx.execute(
            Statement.UPDATE_ORDER_TOTALS,
            {"order_id": "missing", "total_price": 1.0, "vat_amount": 0.1},
        )
    assert count == 0


def test_duplicate_order_id_is_store_error(sql_executor):
    params = {"order_id": "dup", "total_price": 0.0, "vat_amount": 0.0, "created_at": NOW}
    with sql_executor.begin() as tx:
        tx.execute(Statement.INSERT_ORDER, params)
        tx.commit()
    with sql_executor.begin() as tx:
        with pytest.raises(StoreError):
            tx.execute(Statement.INSERT_ORDER, params)


def test_commit_then_rollback_is_safe(sql_executor):
    tx = sql_executor.begin()
    tx.commit()
    tx.rollback()
    tx.rollback()
    with pytest.raises(StoreError):
        tx.query_one(Statement.FETCH_PRODUCT, {"id": 1})


def test_begin_on_unreachable_database_is_connectivity_error():
    executor = SqlExecutor(build_engine(UNREACHABLE_URL))
    with pytest.raises(ConnectivityError):
        executor.begin()
    assert executor.ping() is False


def test_ping_ok(sql_executor):
    assert sql_executor.ping() is True


def test_wait_for_db_retries_with_fixed_delay():
    sleeps = []
    with pytest.raises(ConnectivityError) as e:
        wait_for_db(build_engine(UNREACHABLE_URL), retries=3, delay=5, sleep=sleeps.append)
    assert sleeps == [5, 5]
    assert "after 3 attempts" in str(e.value)


def test_wait_for_db_returns_when_reachable(sql_engine):
    sleeps = []
    wait_for_db(sql_engine, retries=3, delay=5, sleep=sleeps.append)
    assert sleeps == []


def test_seed_catalog_only_fills_empty_table(sql_engine):
    assert seed_catalog(sql_engine) == 0
    assert _count(sql_engine, "products") == 3


def test_init_db_seeds_sample_catalog():
    from sqlalchemy.pool import StaticPool

    engine = build_engine("sqlite+pysqlite://", poolclass=StaticPool)
    init_db(engine, seed=True)
    rows = SqlExecutor(engine).query_many(Statement.LIST_PRODUCTS)
    assert [r[0] for r in rows] == [1, 2, 3, 4, 5]
    assert rows[3] == (4, "4K Monitor", 649.5, 0.22)
