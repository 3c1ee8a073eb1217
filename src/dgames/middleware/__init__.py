"""Middleware registration."""

from fastapi import FastAPI

from dgames.config import Settings
from dgames.middleware.cors import setup_cors
from dgames.middleware.error_handler import setup_error_handlers
from dgames.middleware.logging import setup_logging
from dgames.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette executes middleware in reverse-add order (last added = outermost).
    CORS must be outermost so error responses carry the CORS headers too.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
