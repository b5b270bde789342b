"""Order API built with FastAPI.

This module exposes the HTTP surface of the service: product listing,
order creation and order retrieval, plus welcome and health endpoints.
Views are kept small: they validate requests with Pydantic, map them to
domain DTOs, delegate to ``OrderService`` (obtained from
``providers.get_order_service``) and serialize the receipt. Domain errors
are translated to HTTP statuses by the exception handlers below.
"""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pythonjsonlogger import jsonlogger
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway.logging_filters import RequestIdFilter
from gateway.middleware import ApiSizeLimitMiddleware, RequestIdMiddleware

from . import settings
from .db import init_db, wait_for_db
from .domain import IncomingOrderItem
from .errors import NotFoundError, OrderError, ValidationError
from .executor import Executor
from .providers import get_executor, get_order_service
from .schemas import CreateOrderDTO, OrderOut, ProductOut
from .services import OrderService

app = FastAPI(title="Order API")

# logger JSON
logger = logging.getLogger("orders")
if not logger.handlers:
    h = logging.StreamHandler()
    h.addFilter(RequestIdFilter())
    h.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    logger.addHandler(h)
    logger.setLevel(settings.LOG_LEVEL.upper())


@app.on_event("startup")
def _startup_db():
    if settings.use_in_memory_store():
        get_executor()
        return
    engine = get_executor().engine
    wait_for_db(engine, settings.DB_CONNECT_RETRIES, settings.DB_CONNECT_DELAY)
    init_db(engine, seed=settings.SEED_CATALOG)


# ---- Error mapping ----
_FAILURE_MESSAGES = {
    ("GET", "/products"): "Failed to retrieve products",
    ("POST", "/order"): "Failed to create order",
}


def _failure_message(request: Request) -> str:
    return _FAILURE_MESSAGES.get((request.method, request.url.path), "Failed to retrieve order")


def _status_for(exc: OrderError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    return 500


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    status_code = _status_for(exc)
    if status_code == 500:
        logger.error("store failure", exc_info=exc, extra={"path": request.url.path, "code": exc.code})
        return JSONResponse({"detail": _failure_message(request), "code": exc.code}, status_code=500)
    return JSONResponse({"detail": exc.message, "code": exc.code}, status_code=status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse({"error": "Not Found"}, status_code=404)
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {"detail": "Invalid request body", "errors": jsonable_encoder(exc.errors())},
        status_code=400,
    )


# ---- Views ----
@app.get("/")
def home():
    return {"message": "Welcome to the Subito Project Order API!"}


@app.get("/health")
def health(executor: Executor = Depends(get_executor)):
    """Liveness/health probe endpoint.

    Returns:
        JSONResponse: 200 when the store answers, 503 otherwise.
    """
    db_ok = executor.ping()
    return JSONResponse(
        {"ok": db_ok, "components": {"db": {"ok": db_ok}}},
        status_code=200 if db_ok else 503,
    )


@app.get("/products", response_model=list[ProductOut])
def list_products(service: OrderService = Depends(get_order_service)):
    """List the catalog (an empty catalog yields an empty array)."""
    return [ProductOut.from_domain(p) for p in service.list_products()]


@app.post("/order", status_code=201, response_model=OrderOut)
def create_order(req: CreateOrderDTO, service: OrderService = Depends(get_order_service)):
    """Create an order from product/quantity lines.

    Args:
        req: Validated body with the requested items.

    Returns:
        OrderOut: The receipt, with HTTP 201.

    Raises:
        ValidationError: Empty item list or non-positive quantity (400).
        ProductNotFound: Unknown product id (404).
        StoreError: Backend failure (500).
    """
    items = [IncomingOrderItem(product_id=i.product_id, quantity=i.quantity) for i in req.items]
    return OrderOut.from_domain(service.place_order(items))


@app.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    return OrderOut.from_domain(service.get_order(order_id))


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info(
        "request handled",
        extra={"path": request.url.path, "method": request.method, "status": response.status_code},
    )
    return response


# Outermost: the request id must be set before anything logs
app.add_middleware(ApiSizeLimitMiddleware, max_bytes=settings.API_MAX_BYTES)
app.add_middleware(RequestIdMiddleware)
