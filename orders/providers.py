"""Service provider helpers for wiring OrderService with a storage backend.

``get_executor`` picks the backend once per process: the in-memory store
(populated with the sample catalog) when ``settings.DB_HOST`` is ``mock``,
otherwise the SQLAlchemy executor bound to ``settings.DATABASE_URL``. The
choice is cached so every request of a run shares the same state and the
backends are never mixed. Tests replace ``get_order_service`` through
FastAPI's ``dependency_overrides`` instead of touching the cache.
"""

import logging
import threading
from typing import Optional

from . import settings
from .adapters import InMemoryExecutor, InMemoryStore
from .db import SqlExecutor, build_engine
from .executor import Executor
from .services import OrderService

logger = logging.getLogger("orders.providers")

_lock = threading.Lock()
_executor: Optional[Executor] = None


def _build_executor() -> Executor:
    if settings.use_in_memory_store():
        logger.info("running in mock database mode (stateful, in-memory)")
        return InMemoryExecutor(InMemoryStore().populate())

    logger.info("running in live database mode")
    return SqlExecutor(build_engine(settings.DATABASE_URL))


def get_executor() -> Executor:
    """Return the process-wide executor, building it on first use."""
    global _executor
    with _lock:
        if _executor is None:
            _executor = _build_executor()
        return _executor


def reset_executor() -> None:
    """Forget the cached executor so the next call rebuilds it from settings."""
    global _executor
    with _lock:
        _executor = None


def get_order_service() -> OrderService:
    """Return an OrderService bound to the process-wide executor."""
    return OrderService(get_executor())
