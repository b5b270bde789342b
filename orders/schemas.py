"""Pydantic schemas for the orders API.

Request schemas only check shape and types: ``product_id`` and ``quantity``
must be JSON integers (floats and numeric strings are rejected) that fit a
32-bit signed database column. Business rules such as an empty item list
or a non-positive quantity belong to the service, which reports them with
the offending product id.

Response schemas round every currency field to two decimals on
serialization.
"""

from typing import Annotated

from pydantic import BaseModel, Field, StrictInt, field_serializer

from .domain import Product, Receipt, round_currency

# Widest value an INTEGER column holds on every supported database
INT32_MAX = 2**31 - 1

DbInt = Annotated[StrictInt, Field(ge=-INT32_MAX - 1, le=INT32_MAX)]


class OrderItemIn(BaseModel):
    """Input schema for a single order line.

    Attributes:
        product_id: Catalog product id.
        quantity: Number of units requested.
    """

    product_id: DbInt
    quantity: DbInt


class CreateOrderDTO(BaseModel):
    """Request body of ``POST /order``."""

    items: list[OrderItemIn]


class ProductOut(BaseModel):
    id: int
    name: str
    price: float
    vat_rate: float

    @field_serializer("price")
    def _round_price(self, v: float) -> float:
        return round_currency(v)

    @classmethod
    def from_domain(cls, p: Product) -> "ProductOut":
        return cls(id=p.id, name=p.name, price=p.price, vat_rate=p.vat_rate)


class OrderItemOut(BaseModel):
    """A priced order line.

    Attributes:
        product_id: Catalog product id.
        quantity: Units ordered.
        price: Unit price captured at order time.
        vat: Per-unit VAT (not multiplied by ``quantity``).
    """

    product_id: int
    quantity: int
    price: float
    vat: float

    @field_serializer("price", "vat")
    def _round_currency(self, v: float) -> float:
        return round_currency(v)


class OrderOut(BaseModel):
    """Receipt returned by order creation and retrieval."""

    order_id: str
    order_price: float
    order_vat: float
    items: list[OrderItemOut]

    @field_serializer("order_price", "order_vat")
    def _round_currency(self, v: float) -> float:
        return round_currency(v)

    @classmethod
    def from_domain(cls, r: Receipt) -> "OrderOut":
        return cls(
            order_id=r.order_id,
            order_price=r.order_price,
            order_vat=r.order_vat,
            items=[
                OrderItemOut(product_id=i.product_id, quantity=i.quantity, price=i.price, vat=i.vat)
                for i in r.items
            ],
        )
