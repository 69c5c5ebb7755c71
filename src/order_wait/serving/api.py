"""FastAPI serving endpoint for order wait-time estimates."""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from order_wait.config import configure_logging, settings
from order_wait.data.store import DataAccessError, OrderNotFoundError, OrderStore
from order_wait.estimation.window import WaitWindowComputer, build_wait_window_computer
from order_wait.serving.tokens import verify_order_tracking_token

logger = logging.getLogger(__name__)

# Global state
order_store: OrderStore | None = None
estimator: WaitWindowComputer | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the order store and build the estimator on startup."""
    global order_store, estimator

    configure_logging()

    order_store = OrderStore()
    order_store.initialize_schema()
    logger.info("Order store ready at %s", order_store.db_path)

    estimator = build_wait_window_computer(order_store)
    logger.info("Prep-time cache backend: %s", type(estimator.cache).__name__)

    yield

    close = getattr(estimator.cache, "close", None)
    if close is not None:
        close()


app = FastAPI(
    title="Order Wait Time API",
    description="Estimates minutes until an order is ready",
    version="0.1.0",
    lifespan=lifespan,
)


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": code, "message": message},
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "order_store": order_store.db_path if order_store else "none",
        "cache_backend": type(estimator.cache).__name__ if estimator else "none",
    }


@app.get("/public/orders/{order_number}/wait-time", response_model=None)
def order_wait_time(order_number: str, token: str = "") -> dict[str, Any] | JSONResponse:
    """
    Estimate the wait window for a customer's order.

    Authenticated by the order's tracking token. A bad token and a missing
    order produce the same 404 so order numbers cannot be probed.
    """
    order_number = order_number.strip()
    if not order_number:
        return error_response(400, "VALIDATION_ERROR", "Order number is required")

    if order_store is None or estimator is None:
        return error_response(503, "SERVICE_UNAVAILABLE", "Estimator not initialized")

    try:
        order, merchant = order_store.fetch_order_and_merchant(order_number)
    except OrderNotFoundError:
        return error_response(404, "ORDER_NOT_FOUND", "Order not found")
    except DataAccessError:
        logger.exception("Order lookup failed for %s", order_number)
        return error_response(500, "INTERNAL_ERROR", "Failed to load order")

    if not verify_order_tracking_token(
        settings.order_tracking_token_secret, token, merchant.code, order.order_number
    ):
        return error_response(404, "ORDER_NOT_FOUND", "Order not found")

    estimate = estimator.estimate(order, merchant)
    return {"success": True, "data": estimate.to_response_data()}


def run_server() -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "order_wait.serving.api:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    run_server()
