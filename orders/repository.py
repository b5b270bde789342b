"""Catalog and order repositories over the executor contract.

Repositories translate between domain records and the logical statements
defined in ``executor.Statement``. They accept any ``Reader`` for lookups so
the same code runs inside a transaction (order creation) or directly on the
executor (listing products, reading a receipt). Backend failures are
re-raised as ``StoreError`` with the operation and identifier attached.
"""

from datetime import datetime

from .domain import OrderItemRecord, OrderRecord, Product
from .errors import OrderError, OrderNotFound, ProductNotFound, StoreError
from .executor import Reader, Statement, Transaction, scan


def _wrap(message: str, exc: Exception) -> StoreError:
    if isinstance(exc, OrderError):
        return StoreError(f"{message}: {exc.message}", code=exc.code)
    return StoreError(f"{message}: {exc}")


class CatalogRepository:
    """Read-only access to the product catalog."""

    def __init__(self, reader: Reader):
        self.reader = reader

    def get(self, product_id: int) -> Product:
        """Fetch a product snapshot by id.

        Raises:
            ProductNotFound: When no product has this id.
            StoreError: When the backend fails or the row does not scan.
        """
        try:
            row = self.reader.query_one(Statement.FETCH_PRODUCT, {"id": product_id})
            if row is None:
                raise ProductNotFound(product_id)
            return Product(*scan(row, int, str, float, float))
        except ProductNotFound:
            raise
        except Exception as exc:
            raise _wrap(f"failed to fetch product {product_id}", exc) from exc

    def list(self) -> list[Product]:
        """Return every product ordered by id (empty list for an empty catalog)."""
        try:
            rows = self.reader.query_many(Statement.LIST_PRODUCTS)
            return [Product(*scan(row, int, str, float, float)) for row in rows]
        except Exception as exc:
            raise _wrap("failed to list products", exc) from exc


class OrderRepository:
    """Order headers and line items.

    Writes require a ``Transaction``; reads accept any ``Reader``.
    """

    def __init__(self, reader: Reader):
        self.reader = reader

    def _tx(self) -> Transaction:
        if not hasattr(self.reader, "execute"):
            raise StoreError("writes must run inside a transaction")
        return self.reader  # type: ignore[return-value]

    def create(self, order: OrderRecord) -> None:
        """Insert an order header (totals are usually placeholders at this point)."""
        try:
            self._tx().execute(
                Statement.INSERT_ORDER,
                {
                    "order_id": order.order_id,
                    "total_price": order.total_price,
                    "vat_amount": order.vat_amount,
                    "created_at": order.created_at,
                },
            )
        except Exception as exc:
            raise _wrap(f"failed to insert order {order.order_id}", exc) from exc

    def update_totals(self, order_id: str, total_price: float, vat_amount: float) -> None:
        """Store the final totals of an order.

        Raises:
            OrderNotFound: When no header with this id exists.
        """
        try:
            count = self._tx().execute(
                Statement.UPDATE_ORDER_TOTALS,
                {"order_id": order_id, "total_price": total_price, "vat_amount": vat_amount},
            )
        except Exception as exc:
            raise _wrap(f"failed to update totals of order {order_id}", exc) from exc
        if count == 0:
            raise OrderNotFound(order_id)

    def add_item(self, item: OrderItemRecord) -> int:
        """Insert a line item and return the id assigned by the store."""
        try:
            row = self._tx().query_one(
                Statement.INSERT_ORDER_ITEM,
                {
                    "order_id": item.order_id,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "item_vat": item.item_vat,
                },
            )
            if row is None:
                raise StoreError("insert returned no item id")
            (item_id,) = scan(row, int)
            return item_id
        except Exception as exc:
            raise _wrap(f"failed to insert item of order {item.order_id}", exc) from exc

    def get(self, order_id: str) -> OrderRecord:
        """Fetch an order header.

        Raises:
            OrderNotFound: When no header with this id exists.
        """
        try:
            row = self.reader.query_one(Statement.FETCH_ORDER, {"order_id": order_id})
            if row is None:
                raise OrderNotFound(order_id)
            return OrderRecord(*scan(row, str, float, float, datetime))
        except OrderNotFound:
            raise
        except Exception as exc:
            raise _wrap(f"failed to fetch order {order_id}", exc) from exc

    def items(self, order_id: str) -> list[OrderItemRecord]:
        """Return the items of an order in insertion order (empty when none)."""
        try:
            rows = self.reader.query_many(Statement.FETCH_ORDER_ITEMS, {"order_id": order_id})
            return [
                OrderItemRecord(order_id, *scan(row, int, int, float, float))
                for row in rows
            ]
        except Exception as exc:
            raise _wrap(f"failed to fetch items of order {order_id}", exc) from exc
