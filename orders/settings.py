"""Runtime configuration read from the environment.

``DB_HOST=mock`` switches the service to the in-memory backend; any other
value is the host of the PostgreSQL database. ``DATABASE_URL`` overrides the
URL built from the individual ``DB_*`` variables.
"""

import os

DB_HOST = os.getenv("DB_HOST", "orders-db")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "orders")
DB_USER = os.getenv("DB_USER", "orders_user")
DB_PASSWORD = os.getenv("DB_PASSWORD", "orders-pass")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# Startup waits for the database: fixed delay, bounded attempts
DB_CONNECT_RETRIES = int(os.getenv("DB_CONNECT_RETRIES", "10"))
DB_CONNECT_DELAY = float(os.getenv("DB_CONNECT_DELAY", "5"))
SEED_CATALOG = os.getenv("SEED_CATALOG", "0") == "1"

PORT = int(os.getenv("PORT", "9090"))
UVICORN_WORKERS = int(os.getenv("UVICORN_WORKERS", str(max(2, (os.cpu_count() or 1)))))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")
API_MAX_BYTES = int(os.getenv("API_MAX_BYTES", str(1 * 1024 * 1024)))


def use_in_memory_store() -> bool:
    return DB_HOST == "mock"
