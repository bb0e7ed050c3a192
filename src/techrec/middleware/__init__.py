"""Middleware registration."""

from fastapi import FastAPI

from techrec.config import Settings
from techrec.middleware.cors import setup_cors
from techrec.middleware.error_handler import setup_error_handlers
from techrec.middleware.logging import setup_logging
from techrec.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette runs middleware in reverse-add order, so CORS is added last to
    wrap every response.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
