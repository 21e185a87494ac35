"""
RelayBot - FastAPI Application
==============================

FastAPI application factory and configuration.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request

from relaybot.core.errors import StoreError
from relaybot.core.logger import logger
from relaybot.api.config import get_api_config
from relaybot.api.errors import APIError, ErrorCode, error_response
from relaybot.api.dependencies import set_bot
from relaybot.api.routers import health_router, verify_router, webhook_router


# =============================================================================
# OpenAPI Documentation
# =============================================================================

API_DESCRIPTION = """
## RelayBot HTTP API

- `POST /` receives Telegram webhook updates
- `GET /verify` serves the challenge page
- `POST /submit_token` validates a challenge token

### Error Responses

Errors follow a consistent format:
```json
{
    "success": false,
    "error_code": "VALIDATION_INVALID_FORMAT",
    "message": "Invalid data format",
    "details": null
}
```
"""


# =============================================================================
# Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Closes the bot's sessions and store on shutdown.
    """
    logger.tree("API Starting", [
        ("Docs", "Enabled" if get_api_config().debug else "Disabled"),
    ], emoji="🚀")

    yield

    logger.tree("API Stopping", [], emoji="🛑")

    bot = getattr(app.state, "bot", None)
    if bot is not None:
        await bot.close()


# =============================================================================
# Application Factory
# =============================================================================

def create_app(bot: Optional[Any] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        bot: RelayBot instance for dependency injection

    Returns:
        Configured FastAPI application
    """
    config = get_api_config()

    app = FastAPI(
        title="RelayBot API",
        description=API_DESCRIPTION,
        version="1.0.0",
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
        lifespan=lifespan,
    )

    app.state.bot = bot
    if bot:
        set_bot(bot)

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        return error_response(
            exc.error_code,
            status_code=exc.status_code,
            message=exc.error_message,
            details=exc.error_details,
        )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("Database Error In Request", [
            ("Path", str(request.url.path)[:50]),
            ("Error", str(exc)[:100]),
        ])
        return error_response(ErrorCode.SERVER_DATABASE_ERROR)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions with consistent error format."""
        logger.error("Unhandled API Error", [
            ("Path", str(request.url.path)[:50]),
            ("Method", request.method),
            ("Error Type", type(exc).__name__),
            ("Error", str(exc)[:100]),
        ])

        return error_response(
            ErrorCode.SERVER_ERROR,
            details={"path": str(request.url.path)} if config.debug else None,
        )

    # ==========================================================================
    # Routers
    # ==========================================================================

    app.include_router(health_router)
    app.include_router(verify_router)
    app.include_router(webhook_router)

    return app


__all__ = ["create_app"]
