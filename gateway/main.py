"""
FastAPI application entrypoint for the token gateway.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway.api.routes import router as api_router
from gateway.core.config import get_settings
from gateway.core.errors import GatewayError, error_payload
from gateway.core.logging import configure_logging
from gateway.dependencies import get_order_processor, get_rotation_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    scheduler = get_rotation_scheduler()
    scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()
        await get_order_processor().drain()


def _register_error_handlers(app: FastAPI, include_details: bool) -> None:
    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        return JSONResponse(status_code=int(exc.status_code), content=exc.to_payload())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else HTTPStatus(exc.status_code).phrase
        payload = error_payload(message, f"HTTP_{exc.status_code}")
        return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        payload = error_payload(
            "Validation failed",
            "VALIDATION_ERROR",
            details=jsonable_encoder(exc.errors()),
        )
        return JSONResponse(status_code=HTTPStatus.UNPROCESSABLE_ENTITY, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        payload = error_payload(
            "Internal server error",
            "INTERNAL_ERROR",
            details=str(exc) if include_details else None,
        )
        return JSONResponse(status_code=HTTPStatus.INTERNAL_SERVER_ERROR, content=payload)


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Commerce Token Gateway",
        version="0.1.0",
        description="Credential rotation and order update batches for commerce APIs.",
        lifespan=lifespan,
    )
    _register_error_handlers(app, include_details=settings.environment == "development")
    app.include_router(api_router, prefix=settings.api_prefix.rstrip("/"))
    return app


app = create_app()


def run() -> None:
    """Serve the gateway with uvicorn using the configured bind address."""
    import uvicorn

    settings = get_settings()
    logger.info("Starting gateway on %s:%s", settings.host, settings.port)
    uvicorn.run(
        "gateway.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


__all__ = ["app", "create_app", "run"]


if __name__ == "__main__":
    run()
