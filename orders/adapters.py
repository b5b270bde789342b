"""In-process storage backend for the orders executor contract.

``InMemoryStore`` holds the catalog, order headers and order items of one
process behind a single reader/writer lock. ``InMemoryExecutor`` and
``InMemoryTransaction`` implement ``Executor``/``Transaction`` on top of it
and recognize the same logical ``Statement`` set as the SQL backend, so the
domain cannot tell them apart. Used when ``DB_HOST=mock`` and in tests.

Transactions buffer their writes and apply them under the exclusive lock on
commit; rollback drops the buffer. Readers therefore never observe a
partially created order.
"""

import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, List, Optional

from .domain import OrderItemRecord, OrderRecord, Product
from .errors import StoreError
from .executor import Executor, Params, Row, Statement, Transaction


SAMPLE_PRODUCTS = (
    Product(1, "Laptop Pro", 1499.99, 0.22),
    Product(2, "Wireless Mouse", 79.99, 0.22),
    Product(3, "Mechanical Keyboard", 129.99, 0.22),
    Product(4, "4K Monitor", 649.50, 0.22),
    Product(5, "HD Monitor", 150.50, 0.15),
)


class RWLock:
    """Reader/writer lock: many concurrent readers or one writer.

    Waiting writers block new readers so a steady read load cannot starve
    order commits.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class InMemoryStore:
    """Process-wide catalog and order state.

    Attributes:
        products: Catalog keyed by product id.
        orders: Committed order headers keyed by order id.
        order_items: Committed items per order id, in insertion order.
        next_item_id: Next id handed out by ``allocate_item_id``.
    """

    def __init__(self, products=()):
        self.lock = RWLock()
        self.products: Dict[int, Product] = {p.id: p for p in products}
        self.orders: Dict[str, OrderRecord] = {}
        self.order_items: Dict[str, List[OrderItemRecord]] = {}
        self.next_item_id = 1

    def populate(self) -> "InMemoryStore":
        """Load the sample catalog."""
        with self.lock.write():
            for p in SAMPLE_PRODUCTS:
                self.products[p.id] = p
        return self

    def allocate_item_id(self) -> int:
        """Hand out the next item id.

        Ids behave like a database sequence: strictly increasing across the
        life of the store and never reused, even when the transaction that
        took one rolls back.
        """
        with self.lock.write():
            item_id = self.next_item_id
            self.next_item_id += 1
            return item_id


def _product_row(p: Product) -> Row:
    return (p.id, p.name, p.price, p.vat_rate)


def _order_row(o: OrderRecord) -> Row:
    return (o.order_id, o.total_price, o.vat_amount, o.created_at)


def _item_row(i: OrderItemRecord) -> Row:
    return (i.product_id, i.quantity, i.unit_price, i.item_vat)


def _unsupported(statement) -> StoreError:
    name = getattr(statement, "name", statement)
    return StoreError(f"in-memory store does not implement statement: {name}")


class InMemoryExecutor(Executor):
    """``Executor`` over an ``InMemoryStore``.

    Non-transactional reads see committed state only.
    """

    def __init__(self, store: InMemoryStore):
        self.store = store

    def begin(self) -> Transaction:
        return InMemoryTransaction(self.store)

    def ping(self) -> bool:
        return True

    def query_one(self, statement: Statement, params: Optional[Params] = None) -> Optional[Row]:
        params = params or {}
        with self.store.lock.read():
            if statement is Statement.FETCH_PRODUCT:
                p = self.store.products.get(params["id"])
                return _product_row(p) if p else None
            if statement is Statement.FETCH_ORDER:
                o = self.store.orders.get(params["order_id"])
                return _order_row(o) if o else None
        raise _unsupported(statement)

    def query_many(self, statement: Statement, params: Optional[Params] = None) -> List[Row]:
        params = params or {}
        with self.store.lock.read():
            if statement is Statement.LIST_PRODUCTS:
                return [_product_row(self.store.products[k]) for k in sorted(self.store.products)]
            if statement is Statement.FETCH_ORDER_ITEMS:
                return [_item_row(i) for i in self.store.order_items.get(params["order_id"], [])]
        raise _unsupported(statement)


class InMemoryTransaction(Transaction):
    """Write-buffering transaction over an ``InMemoryStore``.

    Writes are staged locally; reads inside the transaction see committed
    state overlaid with the staged writes. ``commit`` validates and applies
    the whole buffer under the exclusive lock; ``rollback`` discards it.
    """

    def __init__(self, store: InMemoryStore):
        self.store = store
        self._orders: Dict[str, OrderRecord] = {}
        self._new_orders: set = set()
        self._items: List[OrderItemRecord] = []
        self._closed = False

    def _check_open(self):
        if self._closed:
            raise StoreError("transaction is already closed")

    def _lookup_order(self, order_id: str) -> Optional[OrderRecord]:
        if order_id in self._orders:
            return self._orders[order_id]
        with self.store.lock.read():
            return self.store.orders.get(order_id)

    def query_one(self, statement: Statement, params: Optional[Params] = None) -> Optional[Row]:
        self._check_open()
        params = params or {}
        if statement is Statement.FETCH_PRODUCT:
            with self.store.lock.read():
                p = self.store.products.get(params["id"])
            return _product_row(p) if p else None
        if statement is Statement.FETCH_ORDER:
            o = self._lookup_order(params["order_id"])
            return _order_row(o) if o else None
        if statement is Statement.INSERT_ORDER_ITEM:
            order_id = params["order_id"]
            if self._lookup_order(order_id) is None:
                raise StoreError(f"order {order_id} does not exist")
            item = OrderItemRecord(
                order_id=order_id,
                product_id=params["product_id"],
                quantity=params["quantity"],
                unit_price=params["unit_price"],
                item_vat=params["item_vat"],
                item_id=self.store.allocate_item_id(),
            )
            self._items.append(item)
            return (item.item_id,)
        raise _unsupported(statement)

    def query_many(self, statement: Statement, params: Optional[Params] = None) -> List[Row]:
        self._check_open()
        params = params or {}
        if statement is Statement.LIST_PRODUCTS:
            with self.store.lock.read():
                return [_product_row(self.store.products[k]) for k in sorted(self.store.products)]
        if statement is Statement.FETCH_ORDER_ITEMS:
            order_id = params["order_id"]
            with self.store.lock.read():
                committed = list(self.store.order_items.get(order_id, []))
            staged = [i for i in self._items if i.order_id == order_id]
            return [_item_row(i) for i in committed + staged]
        raise _unsupported(statement)

    def execute(self, statement: Statement, params: Optional[Params] = None) -> int:
        self._check_open()
        params = params or {}
        if statement is Statement.INSERT_ORDER:
            order_id = params["order_id"]
            if self._lookup_order(order_id) is not None:
                raise StoreError(f"duplicate order id {order_id}")
            self._orders[order_id] = OrderRecord(
                order_id=order_id,
                total_price=params["total_price"],
                vat_amount=params["vat_amount"],
                created_at=params["created_at"],
            )
            self._new_orders.add(order_id)
            return 1
        if statement is Statement.UPDATE_ORDER_TOTALS:
            order = self._lookup_order(params["order_id"])
            if order is None:
                return 0
            self._orders[order.order_id] = replace(
                order, total_price=params["total_price"], vat_amount=params["vat_amount"]
            )
            return 1
        raise _unsupported(statement)

    def commit(self) -> None:
        self._check_open()
        store = self.store
        with store.lock.write():
            for order_id in self._new_orders:
                if order_id in store.orders:
                    raise StoreError(f"duplicate order id {order_id}")
            store.orders.update(self._orders)
            for item in self._items:
                store.order_items.setdefault(item.order_id, []).append(item)
        self._discard()

    def rollback(self) -> None:
        if not self._closed:
            self._discard()

    def _discard(self):
        self._orders.clear()
        self._new_orders.clear()
        self._items.clear()
        self._closed = True
