"""Domain models for orders.

This module contains the dataclasses that travel between the repositories,
the service and the HTTP layer, plus the currency rounding helper shared by
all of them. Amounts are floats rounded to two decimals at the boundaries
where they are persisted or reported.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


def round_currency(value: float) -> float:
    """Round a currency amount to two decimals, half away from zero."""
    return int(value * 100 + math.copysign(0.5, value)) / 100


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class Product:
    """A catalog entry.

    Attributes:
        id: Positive unique product identifier.
        name: Display name.
        price: Unit price.
        vat_rate: VAT as a fraction of the unit price (e.g. 0.22).
    """

    id: int
    name: str
    price: float
    vat_rate: float


@dataclass(frozen=True)
class IncomingOrderItem:
    """A requested line: product id and number of indivisible units."""

    product_id: int
    quantity: int


@dataclass(frozen=True)
class OrderRecord:
    """Row of the ``orders`` table."""

    order_id: str
    total_price: float
    vat_amount: float
    created_at: datetime


@dataclass(frozen=True)
class OrderItemRecord:
    """Row of the ``order_items`` table.

    ``unit_price`` is a snapshot taken at order time, so later catalog
    changes never alter past orders. ``item_vat`` is the per-unit VAT.
    """

    order_id: str
    product_id: int
    quantity: int
    unit_price: float
    item_vat: float
    item_id: Optional[int] = None


@dataclass(frozen=True)
class ReceiptItem:
    product_id: int
    quantity: int
    price: float
    vat: float


@dataclass
class Receipt:
    """What a client gets back for a created or retrieved order."""

    order_id: str
    order_price: float
    order_vat: float
    items: List[ReceiptItem] = field(default_factory=list)
