"""Shared fixtures: a small catalog served by both storage backends.

``executor`` is parametrized so any test that uses it (directly or through
``service``/``client``) runs once against the in-memory store and once
against the SQLAlchemy executor on an in-process SQLite database.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from orders.adapters import InMemoryExecutor, InMemoryStore
from orders.db import SqlExecutor, build_engine, init_db, seed_catalog
from orders.domain import Product
from orders.main import app
from orders.providers import get_executor, get_order_service
from orders.services import OrderService

CATALOG = (
    Product(1, "Laptop Pro", 1200.00, 0.22),
    Product(2, "Keyboard", 150.00, 0.22),
    Product(3, "HD Monitor", 150.50, 0.15),
)


@pytest.fixture
def store():
    return InMemoryStore(CATALOG)


@pytest.fixture
def memory_executor(store):
    return InMemoryExecutor(store)


@pytest.fixture
def sql_engine():
    engine = build_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    seed_catalog(engine, CATALOG)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_executor(sql_engine):
    return SqlExecutor(sql_engine)


@pytest.fixture(params=["memory", "sql"])
def executor(request):
    return request.getfixturevalue(f"{request.param}_executor")


@pytest.fixture
def service(executor):
    return OrderService(executor)


@pytest.fixture
def client(executor, service):
    app.dependency_overrides[get_executor] = lambda: executor
    app.dependency_overrides[get_order_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()
