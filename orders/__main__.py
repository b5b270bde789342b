"""Run the Order API with uvicorn: ``python -m orders`` or ``order-api``."""

import uvicorn

from . import settings


def main():
    # The in-memory store lives in one process; more workers would split it
    workers = 1 if settings.use_in_memory_store() else settings.UVICORN_WORKERS
    uvicorn.run(
        "orders.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        workers=workers,
        log_level=settings.LOG_LEVEL,
    )


if __name__ == "__main__":
    main()
