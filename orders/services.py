"""Order service orchestrating the catalog and order repositories.

``OrderService`` is the only entry point used by the HTTP views. It drives
an ``Executor`` through the repositories and never knows which backend sits
behind it: the provider picks that once per process.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List

from .domain import (
    IncomingOrderItem,
    OrderItemRecord,
    OrderRecord,
    Product,
    Receipt,
    ReceiptItem,
    round_currency,
)
from .errors import NotFoundError, ValidationError
from .executor import Executor
from .repository import CatalogRepository, OrderRepository

logger = logging.getLogger("orders.services")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_order_id() -> str:
    return str(uuid.uuid4())


class OrderService:
    """Domain service for the catalog and the order lifecycle.

    The service owns no state besides its executor; every call opens what
    it needs and releases it before returning.
    """

    def __init__(
        self,
        executor: Executor,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_order_id,
    ):
        """Initialize the service.

        Args:
            executor: Storage backend (SQL or in-memory).
            clock: Returns the creation timestamp for new orders.
            id_factory: Returns a fresh order identifier.
        """
        self.executor = executor
        self.clock = clock
        self.id_factory = id_factory

    def list_products(self) -> List[Product]:
        return CatalogRepository(self.executor).list()

    def place_order(self, items: List[IncomingOrderItem]) -> Receipt:
        """Create an order atomically and return its receipt.

        Steps, all inside one transaction: insert the header with zero
        totals, then for each item in request order resolve the product,
        validate the quantity, price the line and persist it; finally store
        the rounded totals and commit. Any failure leaves the transaction
        uncommitted, and leaving the ``with`` block rolls it back, so no part
        of the order is visible afterwards.

        The reported per-item ``vat`` is the per-unit VAT, while the order
        VAT total accumulates ``price * vat_rate * quantity``.

        Args:
            items: Requested lines, in the order they should be reported.

        Returns:
            Receipt: Order id, rounded totals and the priced items.

        Raises:
            ValidationError: ``EMPTY_ORDER`` when ``items`` is empty (no
                transaction is opened), ``INVALID_QUANTITY`` when a quantity
                is not positive.
            ProductNotFound: When an item references an unknown product.
            StoreError: When the backend fails at any step.
        """
        if not items:
            raise ValidationError("Order must contain at least one item", code="EMPTY_ORDER")

        order_id = self.id_factory()
        total_price = 0.0
        vat_amount = 0.0
        receipt_items: List[ReceiptItem] = []

        try:
            with self.executor.begin() as tx:
                catalog = CatalogRepository(tx)
                orders = OrderRepository(tx)

                orders.create(OrderRecord(order_id, 0.0, 0.0, self.clock()))

                for item in items:
                    product = catalog.get(item.product_id)
                    if item.quantity <= 0:
                        raise ValidationError(
                            f"Quantity for product {item.product_id} must be positive",
                            code="INVALID_QUANTITY",
                        )

                    unit_vat = product.price * product.vat_rate
                    total_price += product.price * item.quantity
                    vat_amount += unit_vat * item.quantity

                    line_vat = round_currency(unit_vat)
                    receipt_items.append(
                        ReceiptItem(item.product_id, item.quantity, product.price, line_vat)
                    )
                    orders.add_item(
                        OrderItemRecord(order_id, item.product_id, item.quantity, product.price, line_vat)
                    )

                total_price = round_currency(total_price)
                vat_amount = round_currency(vat_amount)
                orders.update_totals(order_id, total_price, vat_amount)
                tx.commit()
        except (ValidationError, NotFoundError) as e:
            logger.warning("order rejected", extra={"order_id": order_id, "code": e.code})
            raise

        logger.info(
            "order created",
            extra={
                "order_id": order_id,
                "items": len(receipt_items),
                "order_price": total_price,
                "order_vat": vat_amount,
            },
        )
        return Receipt(order_id, total_price, vat_amount, receipt_items)

    def get_order(self, order_id: str) -> Receipt:
        """Assemble the receipt of a stored order.

        Raises:
            OrderNotFound: When no order has this id.
            StoreError: When the backend fails.
        """
        orders = OrderRepository(self.executor)
        header = orders.get(order_id)
        items = [
            ReceiptItem(i.product_id, i.quantity, i.unit_price, i.item_vat)
            for i in orders.items(order_id)
        ]
        return Receipt(header.order_id, header.total_price, header.vat_amount, items)
