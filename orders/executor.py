"""Transactional executor contract shared by the storage backends.

The domain never talks to a database directly. It drives an ``Executor``
(obtained from ``providers.get_executor``) which is realized either by the
SQLAlchemy adapter in ``db`` or by the in-memory store in ``adapters``. Both
understand the same logical ``Statement`` set and return plain tuples as
rows, so the workflow code in ``domain`` is identical for both.
"""

from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Protocol

from .errors import ScanError

Row = tuple
Params = Mapping[str, Any]


class Statement(str, Enum):
    """Logical operations understood by every backend.

    The member value is the parameterized SQL run by the relational backend;
    the in-memory backend dispatches on the member itself.
    """

    FETCH_PRODUCT = "SELECT id, name, price, vat_rate FROM products WHERE id = :id"
    LIST_PRODUCTS = "SELECT id, name, price, vat_rate FROM products ORDER BY id"
    INSERT_ORDER = (
        "INSERT INTO orders (order_id, total_price, vat_amount, created_at) "
        "VALUES (:order_id, :total_price, :vat_amount, :created_at)"
    )
    UPDATE_ORDER_TOTALS = (
        "UPDATE orders SET total_price = :total_price, vat_amount = :vat_amount "
        "WHERE order_id = :order_id"
    )
    INSERT_ORDER_ITEM = (
        "INSERT INTO order_items (order_id, product_id, quantity, unit_price, item_vat) "
        "VALUES (:order_id, :product_id, :quantity, :unit_price, :item_vat) "
        "RETURNING item_id"
    )
    FETCH_ORDER = (
        "SELECT order_id, total_price, vat_amount, created_at FROM orders "
        "WHERE order_id = :order_id"
    )
    FETCH_ORDER_ITEMS = (
        "SELECT product_id, quantity, unit_price, item_vat FROM order_items "
        "WHERE order_id = :order_id ORDER BY item_id"
    )


class Reader(Protocol):
    """Anything that can run read statements: an executor or a transaction."""

    def query_one(self, statement: Statement, params: Optional[Params] = None) -> Optional[Row]:
        """Run ``statement`` and return the first row, or None when there is none."""
        raise NotImplementedError()

    def query_many(self, statement: Statement, params: Optional[Params] = None) -> list[Row]:
        """Run ``statement`` and return every row."""
        raise NotImplementedError()


class Transaction(Reader, Protocol):
    """A unit of work opened by ``Executor.begin``.

    Used as a context manager, leaving the block always calls ``rollback()``.
    Rollback is idempotent and a no-op after a successful ``commit()``, so the
    workflow can commit explicitly and still rely on the exit as a safeguard.
    """

    def execute(self, statement: Statement, params: Optional[Params] = None) -> int:
        """Run a write statement and return the number of affected rows."""
        raise NotImplementedError()

    def commit(self) -> None:
        raise NotImplementedError()

    def rollback(self) -> None:
        raise NotImplementedError()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.rollback()
        return False


class Executor(Reader, Protocol):
    """Entry point to a storage backend."""

    def begin(self) -> Transaction:
        """Open a transaction.

        Raises:
            ConnectivityError: If the underlying resource is unavailable.
        """
        raise NotImplementedError()

    def ping(self) -> bool:
        """Return True when the backend answers a trivial request."""
        raise NotImplementedError()


def _matches(value: Any, expected: type) -> bool:
    # bool is an int subclass but never a valid int column
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, expected)


def scan(row: Iterable[Any], *types: type) -> tuple:
    """Check a row against the expected scalar types and return it as a tuple.

    Values are never coerced: a wrong arity or a wrong type is a contract
    violation between a statement and its caller.

    Args:
        row: Row returned by ``query_one``/``query_many``.
        *types: Expected Python type for each column (``str``, ``int``,
            ``float`` or ``datetime``).

    Returns:
        tuple: The row values, unchanged.

    Raises:
        ScanError: On arity or type mismatch.
    """
    values = tuple(row)
    if len(values) != len(types):
        raise ScanError(f"scan error: expected {len(types)} dest values, got {len(values)}")
    for pos, (value, expected) in enumerate(zip(values, types)):
        if not _matches(value, expected):
            raise ScanError(
                f"scan error: column {pos} expected {expected.__name__}, got {type(value).__name__}"
            )
    return values
