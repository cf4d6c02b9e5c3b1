import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings, Settings
from .core.credentials import Credentials, load_credentials
from .core.logging import init_logging, request_context_middleware
from .core.rate_limit import SlidingWindowRateLimiter, make_rate_limit_middleware
from .core import errors
from .routers import convert, health
from .services.rates.base import ExchangeRateClient
from .services.rates.cache_service import ConversionCache
from .services.rates.conversion import ConversionCoordinator
from .services.rates.providers import make_exchange_client

logger = logging.getLogger("app")


def create_app(
    settings_override: Settings | None = None,
    *,
    credentials: Optional[Credentials] = None,
    exchange_client: Optional[ExchangeRateClient] = None,
    cache: Optional[ConversionCache] = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment. Falls back to cached get_settings().
    credentials / exchange_client / cache: injected collaborators; built from
    settings when omitted. Unreadable credentials raise errors.ConfigError
    before any app object exists.
    """
    settings = settings_override or get_settings()
    # Initialize logging early
    init_logging(debug=settings.debug, log_file=settings.log_file)

    if credentials is None:
        credentials = load_credentials(settings.credentials_path)
    if exchange_client is None:
        exchange_client = make_exchange_client(
            settings.exchange_rate_provider,
            credentials.token,
            url=str(
                settings.apyhub_convert_url
                if settings.exchange_rate_provider == "apyhub"
                else settings.freecurrencyapi_base_url
            ),
            timeout=settings.http_timeout_seconds,
        )
    coordinator = ConversionCoordinator(
        cache if cache is not None else ConversionCache(),
        exchange_client,
        coalesce=settings.coalesce_requests,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await exchange_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        docs_url=settings.docs_url,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.credentials = credentials
    app.state.coordinator = coordinator

    # Middleware; the last one added runs first
    if settings.rate_limit_enabled:
        limiter = SlidingWindowRateLimiter(
            settings.rate_limit_max_requests, settings.rate_limit_window_seconds
        )
        app.state.rate_limiter = limiter
        app.middleware("http")(make_rate_limit_middleware(limiter))
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.http_exception_handler)
    app.add_exception_handler(RequestValidationError, errors.request_validation_handler)
    app.add_exception_handler(errors.ValidationError, errors.validation_error_handler)
    app.add_exception_handler(errors.ProviderError, errors.provider_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(convert.router)

    return app


def main() -> int:
    """Console entry point: build the app, then bind the listener.

    Returns a non-zero status (without binding) when startup configuration is
    unusable.
    """
    settings = get_settings()
    try:
        app = create_app(settings)
    except errors.ConfigError as e:
        logger.critical("refusing to start: %s", e)
        return 1
    logger.info("server is running on http://localhost:%s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
