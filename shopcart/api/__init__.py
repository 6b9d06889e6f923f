# shopcart/api/__init__.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shopcart.api.routers import carts, health
from shopcart.exceptions import (
    CartAlreadyExistsError,
    CartNotFoundError,
    CatalogUnavailableError,
    InvalidInputError,
    PermissionDeniedError,
    TransientCartError,
    ConcurrencyConflictError,
)
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)


def _error(status_code: int, error: str):
    async def handler(request: Request, exc: Exception):
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=status_code, content={"error": error, "message": str(exc)})
    return handler


def create_app() -> FastAPI:
    app = FastAPI(title="Cart Service", version="1.0.0")

    app.include_router(health.router)
    app.include_router(carts.router)

    app.add_exception_handler(CartNotFoundError, _error(404, "Not found"))
    app.add_exception_handler(PermissionDeniedError, _error(403, "Permission denied"))
    app.add_exception_handler(CartAlreadyExistsError, _error(409, "Cart already exists"))
    app.add_exception_handler(InvalidInputError, _error(400, "Invalid input"))
    app.add_exception_handler(TransientCartError, _error(503, "Service unavailable"))
    app.add_exception_handler(ConcurrencyConflictError, _error(503, "Service unavailable"))
    app.add_exception_handler(CatalogUnavailableError, _error(503, "Service unavailable"))

    return app
