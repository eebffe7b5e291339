from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
import httpx
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .core import errors
from .routers import currency, health
from .services.rates.conversion import build_facade


def create_app(
    settings_override: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment. Falls back to cached get_settings().
    http_client: inject a preconfigured client (e.g. with a mock transport);
    otherwise the facade creates and owns one.
    """
    settings = settings_override or get_settings()
    # Initialize logging early
    init_logging(debug=settings.debug)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # One facade per process: shared cache, quota and in-flight table
        app.state.facade = build_facade(settings, http_client=http_client)
        logging.getLogger("tuition_fx").info(
            "currency facade ready (provider=%s, home=%s)",
            settings.exchange_rate_provider,
            settings.home_currency,
        )
        try:
            yield
        finally:
            await app.state.facade.aclose()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(currency.router)

    @app.get("/")
    async def root():
        return {"message": "Tuition FX API", "version": settings.version}

    return app


app = create_app()
