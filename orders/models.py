"""SQLAlchemy models for the orders database.

The tables back the statements in ``executor.Statement``: ``products`` is
the catalog, ``orders`` holds one header per order and ``order_items`` the
priced lines. Money columns are floats; rounding to two decimals happens in
the domain before anything is written.
"""

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, mapped_column


class Base(DeclarativeBase):
    pass


class ProductModel(Base):
    """Catalog entry.

    Attributes:
        id: Positive product identifier (primary key).
        name: Display name.
        price: Unit price.
        vat_rate: VAT as a fraction of the unit price.
    """

    __tablename__ = "products"
    id = mapped_column(Integer, primary_key=True, autoincrement=False)
    name = mapped_column(String(255), nullable=False)
    price = mapped_column(Float, nullable=False)
    vat_rate = mapped_column(Float, nullable=False)


class OrderModel(Base):
    __tablename__ = "orders"
    # UUID string generated by the service
    order_id = mapped_column(String(36), primary_key=True)
    total_price = mapped_column(Float, nullable=False, default=0.0)
    vat_amount = mapped_column(Float, nullable=False, default=0.0)
    created_at = mapped_column(DateTime(timezone=True), nullable=False)


class OrderItemModel(Base):
    """Priced order line.

    ``unit_price`` is copied from the catalog at order time and ``item_vat``
    is the rounded per-unit VAT.
    """

    __tablename__ = "order_items"
    item_id = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id = mapped_column(String(36), ForeignKey("orders.order_id"), nullable=False, index=True)
    product_id = mapped_column(Integer, nullable=False)
    quantity = mapped_column(Integer, nullable=False)
    unit_price = mapped_column(Float, nullable=False)
    item_vat = mapped_column(Float, nullable=False)
