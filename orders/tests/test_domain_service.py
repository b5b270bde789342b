"""Unit tests for the OrderService orchestration.

These tests validate order creation and retrieval under different
conditions: happy path, empty orders, unknown products, invalid quantities
and backend failures. The ``service`` fixture is parametrized over both
storage backends, so every scenario also proves that the in-memory store
and the SQL executor behave identically.
"""

from datetime import datetime, timezone

import pytest

from orders.domain import IncomingOrderItem, ReceiptItem, round_currency
from orders.errors import OrderNotFound, ProductNotFound, StoreError, ValidationError
from orders.executor import Executor, Statement
from orders.services import OrderService


def _items(*pairs):
    return [IncomingOrderItem(pid, qty) for pid, qty in pairs]


def test_place_order_ok(service):
    """Happy path: totals, per-unit VAT and item order match the receipt."""
    receipt = service.place_order(_items((1, 1), (2, 2)))

    assert receipt.order_id
    assert receipt.order_price == 1500.00
    assert receipt.order_vat == 330.00  # 264 + 2 * 33
    assert receipt.items == [
        ReceiptItem(product_id=1, quantity=1, price=1200.00, vat=264.00),
        ReceiptItem(product_id=2, quantity=2, price=150.00, vat=33.00),
    ]


def test_item_vat_is_per_unit_while_order_vat_scales(service):
    receipt = service.place_order(_items((3, 4)))

    unit_vat = 150.50 * 0.15
    assert receipt.items[0].vat == round_currency(unit_vat)
    assert receipt.order_vat == round_currency(unit_vat * 4)
    assert receipt.order_price == round_currency(150.50 * 4)
    assert receipt.order_vat != receipt.items[0].vat


def test_items_keep_request_order(service):
    receipt = service.place_order(_items((3, 1), (1, 2), (3, 5)))
    assert [(i.product_id, i.quantity) for i in receipt.items] == [(3, 1), (1, 2), (3, 5)]


def test_get_order_returns_same_receipt(service):
    created = service.place_order(_items((1, 1), (2, 2)))

    fetched = service.get_order(created.order_id)

    assert fetched == created
    assert service.get_order(created.order_id) == fetched


def test_injected_id_factory_and_clock(executor):
    service = OrderService(
        executor,
        clock=lambda: datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        id_factory=lambda: "order-fixed",
    )
    receipt = service.place_order(_items((2, 1)))
    assert receipt.order_id == "order-fixed"
    assert service.get_order("order-fixed").order_price == 150.00


def test_place_order_empty_never_opens_transaction():
    """Validation: an empty order raises EMPTY_ORDER before begin()."""

    class NoBegin(Executor):
        def begin(self):
            raise AssertionError("begin() must not be called")

    with pytest.raises(ValidationError) as e:
        OrderService(NoBegin()).place_order([])
    assert e.value.code == "EMPTY_ORDER"


@pytest.mark.parametrize("quantity", [0, -3])
def test_invalid_quantity_leaves_nothing_behind(service, quantity):
    ids = iter(["bad-qty"])
    service.id_factory = lambda: next(ids)

    with pytest.raises(ValidationError) as e:
        service.place_order(_items((1, 1), (2, quantity)))

    assert e.value.code == "INVALID_QUANTITY"
    assert "product 2" in str(e.value)
    with pytest.raises(OrderNotFound):
        service.get_order("bad-qty")


def test_unknown_product_aborts_whole_order(service):
    """Atomicity: item 2 of 3 is unknown, so neither header nor items persist."""
    service.id_factory = lambda: "leaky"

    with pytest.raises(ProductNotFound) as e:
        service.place_order(_items((1, 1), (999, 1), (2, 1)))

    assert e.value.product_id == 999
    assert str(e.value) == "Product with ID 999 not found"
    with pytest.raises(OrderNotFound):
        service.get_order("leaky")


def test_unknown_product_checked_before_quantity(service):
    with pytest.raises(ProductNotFound):
        service.place_order(_items((999, 0)))


def test_get_order_not_found(service):
    with pytest.raises(OrderNotFound) as e:
        service.get_order("nonexistent-order")
    assert str(e.value) == "Order not found"


def test_unit_price_is_a_snapshot(memory_executor, store):
    """Catalog changes after creation never alter stored orders."""
    from dataclasses import replace

    service = OrderService(memory_executor)
    created = service.place_order(_items((1, 2)))
    store.products[1] = replace(store.products[1], price=9999.99)

    fetched = service.get_order(created.order_id)
    assert fetched.items[0].price == 1200.00
    assert fetched.order_price == 2400.00


def test_list_products_sorted_by_id(service):
    assert [p.id for p in service.list_products()] == [1, 2, 3]


def test_store_error_propagates_and_rolls_back(memory_executor, store):
    """A backend failure on the last write surfaces with context; nothing is committed."""

    class FailingTotals:
        def __init__(self, inner):
            self.inner = inner

        def begin(self):
            tx = self.inner.begin()
            real_execute = tx.execute

            def execute(statement, params=None):
                if statement is Statement.UPDATE_ORDER_TOTALS:
                    raise StoreError("connection lost")
                return real_execute(statement, params)

            tx.execute = execute
            return tx

    service = OrderService(FailingTotals(memory_executor), id_factory=lambda: "half-done")

    with pytest.raises(StoreError) as e:
        service.place_order(_items((1, 1)))

    assert "half-done" in str(e.value)
    assert e.value.__cause__ is not None
    assert store.orders == {}
    assert store.order_items == {}
