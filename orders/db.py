"""SQLAlchemy backend for the orders executor contract.

This module adapts a SQLAlchemy ``Engine`` (PostgreSQL via psycopg in
production, SQLite in tests) to ``Executor``/``Transaction``. Each logical
``Statement`` runs as a parameterized ``text()`` clause whose result columns
are typed, so rows come back as ``int``/``str``/``float``/``datetime``
tuples regardless of the driver. Isolation and durability are the
database's job; the adapter only draws the transaction boundaries.

It also holds the startup helpers: waiting for the database with bounded
retries, creating the tables and seeding the sample catalog.
"""

import logging
import time
from typing import List, Optional

from sqlalchemy import DateTime, Float, Integer, String, bindparam, create_engine, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .adapters import SAMPLE_PRODUCTS
from .errors import ConnectivityError, StoreError
from .executor import Executor, Params, Row, Statement, Transaction
from .models import Base, ProductModel

logger = logging.getLogger("orders.db")

_PRODUCT_COLUMNS = dict(id=Integer, name=String, price=Float, vat_rate=Float)

_CLAUSES = {
    Statement.FETCH_PRODUCT: text(Statement.FETCH_PRODUCT.value).columns(**_PRODUCT_COLUMNS),
    Statement.LIST_PRODUCTS: text(Statement.LIST_PRODUCTS.value).columns(**_PRODUCT_COLUMNS),
    Statement.INSERT_ORDER: text(Statement.INSERT_ORDER.value).bindparams(
        bindparam("created_at", type_=DateTime(timezone=True))
    ),
    Statement.UPDATE_ORDER_TOTALS: text(Statement.UPDATE_ORDER_TOTALS.value),
    Statement.INSERT_ORDER_ITEM: text(Statement.INSERT_ORDER_ITEM.value),
    Statement.FETCH_ORDER: text(Statement.FETCH_ORDER.value).columns(
        order_id=String, total_price=Float, vat_amount=Float, created_at=DateTime(timezone=True)
    ),
    Statement.FETCH_ORDER_ITEMS: text(Statement.FETCH_ORDER_ITEMS.value).columns(
        product_id=Integer, quantity=Integer, unit_price=Float, item_vat=Float
    ),
}


def _clause(statement: Statement):
    try:
        return _CLAUSES[statement]
    except KeyError:
        raise StoreError(f"unknown statement: {statement!r}") from None


def _query_one(conn, statement: Statement, params: Optional[Params]) -> Optional[Row]:
    row = conn.execute(_clause(statement), dict(params or {})).first()
    return tuple(row) if row is not None else None


def _query_many(conn, statement: Statement, params: Optional[Params]) -> List[Row]:
    return [tuple(r) for r in conn.execute(_clause(statement), dict(params or {}))]


def build_engine(url: str, **kwargs) -> Engine:
    """Create the engine used by the SQL backend.

    Args:
        url: SQLAlchemy database URL.
        **kwargs: Extra ``create_engine`` options (tests pass a pool class).
    """
    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **kwargs)


class SqlTransaction(Transaction):
    """A database transaction on a dedicated connection."""

    def __init__(self, conn):
        self._conn = conn
        self._trans = conn.begin()
        self._closed = False

    def _check_open(self):
        if self._closed:
            raise StoreError("transaction is already closed")

    def query_one(self, statement: Statement, params: Optional[Params] = None) -> Optional[Row]:
        self._check_open()
        try:
            return _query_one(self._conn, statement, params)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def query_many(self, statement: Statement, params: Optional[Params] = None) -> List[Row]:
        self._check_open()
        try:
            return _query_many(self._conn, statement, params)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def execute(self, statement: Statement, params: Optional[Params] = None) -> int:
        self._check_open()
        try:
            return self._conn.execute(_clause(statement), dict(params or {})).rowcount
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def commit(self) -> None:
        self._check_open()
        try:
            self._trans.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to commit transaction: {exc}") from exc
        finally:
            self._close()

    def rollback(self) -> None:
        if self._closed:
            return
        try:
            if self._trans.is_active:
                self._trans.rollback()
        except SQLAlchemyError:
            logger.warning("rollback failed", exc_info=True)
        finally:
            self._close()

    def _close(self):
        self._closed = True
        self._conn.close()


class SqlExecutor(Executor):
    """``Executor`` over a SQLAlchemy engine."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def begin(self) -> Transaction:
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as exc:
            raise ConnectivityError(f"failed to begin transaction: {exc}") from exc
        try:
            return SqlTransaction(conn)
        except SQLAlchemyError as exc:
            conn.close()
            raise ConnectivityError(f"failed to begin transaction: {exc}") from exc

    def query_one(self, statement: Statement, params: Optional[Params] = None) -> Optional[Row]:
        try:
            with self.engine.connect() as conn:
                return _query_one(conn, statement, params)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def query_many(self, statement: Statement, params: Optional[Params] = None) -> List[Row]:
        try:
            with self.engine.connect() as conn:
                return _query_many(conn, statement, params)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False


def wait_for_db(engine: Engine, retries: int, delay: float, sleep=time.sleep) -> None:
    """Block until the database accepts connections.

    Tries ``retries`` times with a fixed ``delay`` between attempts.

    Raises:
        ConnectivityError: When the last attempt fails.
    """
    for attempt in range(1, retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("connected to the database", extra={"attempt": attempt})
            return
        except SQLAlchemyError as exc:
            if attempt >= retries:
                raise ConnectivityError(
                    f"could not connect to the database after {retries} attempts: {exc}"
                ) from exc
            logger.warning(
                "database not ready, retrying",
                extra={"attempt": attempt, "delay": delay, "error": str(exc)},
            )
            sleep(delay)


def init_db(engine: Engine, seed: bool = False) -> None:
    """Create missing tables and, if asked, seed an empty catalog."""
    Base.metadata.create_all(engine)
    if seed:
        seed_catalog(engine)


def seed_catalog(engine: Engine, products=SAMPLE_PRODUCTS) -> int:
    """Insert ``products`` when the catalog is empty. Returns the rows added."""
    with Session(engine) as s:
        if s.execute(select(ProductModel.id).limit(1)).first() is not None:
            return 0
        s.add_all(
            ProductModel(id=p.id, name=p.name, price=p.price, vat_rate=p.vat_rate)
            for p in products
        )
        s.commit()
        return len(products)
