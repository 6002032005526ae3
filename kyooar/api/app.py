"""
Console application factory.

    app = create_app()                       # AppConfig.from_env()
    app = create_app(AppConfig(api_base_url="http://api:8080"))
"""

import logging
from typing import Optional

import redis
from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse

from kyooar import __version__
from kyooar.api.routes import health, pages
from kyooar.config.settings import AppConfig
from kyooar.logging_config import configure_logging
from kyooar.platform.errors import ErrorHandlerMiddleware, NavigationRedirect, SessionExpiredError

logger = logging.getLogger(__name__)


async def _navigation_redirect_handler(request: Request, exc: NavigationRedirect):
    return RedirectResponse(exc.location, status_code=exc.status_code)


async def _session_expired_handler(request: Request, exc: SessionExpiredError):
    logger.info(
        "Session expired during page load",
        extra={"path": request.url.path, "status_code": exc.status_code},
    )
    return RedirectResponse(exc.redirect_to, status_code=303)


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    configure_logging()
    config = config or AppConfig.from_env()

    app = FastAPI(title="Kyooar Console", version=__version__)
    app.state.config = config
    app.state.redis = redis.from_url(config.redis_url, decode_responses=True) if config.redis_url else None
    app.state.session_memory = {}

    app.add_middleware(ErrorHandlerMiddleware)
    app.add_exception_handler(NavigationRedirect, _navigation_redirect_handler)
    app.add_exception_handler(SessionExpiredError, _session_expired_handler)

    app.include_router(health.router)
    app.include_router(pages.router)

    logger.info(
        "Console app created",
        extra={"api_base_url": config.api_base_url, "redis": bool(config.redis_url)},
    )
    return app
