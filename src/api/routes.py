"""FastAPI routes for the webhook relay.

This module provides:
- The relay endpoint, accepting every verb so the relay answers 405 itself
- /health liveness endpoint
- Error handling
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse

from src.config import Settings, configure_logging, get_settings
from src.relay.dispatcher import FanOutDispatcher
from src.relay.handler import handle_relay
from src.relay.models import RelayRequest

logger = structlog.get_logger(__name__)

# Every verb is routed to the relay so non-matching methods get a 405 body
RELAY_ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


# ============================================================================
# Application Setup
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    """Application lifespan handler."""
    logger.info("application_starting")
    yield
    logger.info("application_shutting_down")


OPENAPI_TAGS = [
    {
        "name": "Relay",
        "description": "Inbound webhook endpoint. Forwards the notification to every "
        "configured target and answers 200 if any target accepted it.",
    },
    {
        "name": "Health",
        "description": "Liveness endpoint for monitoring service status.",
    },
]

API_DESCRIPTION = """
## Overview

The Webhook Relay receives one webhook notification and forwards it concurrently
to every URL listed in `WEBHOOK_TARGETS`.

- **200 OK**: at least one target answered 2xx
- **500 All targets failed**: every target failed, the provider should retry
- **500 No webhook targets configured**: `WEBHOOK_TARGETS` is empty
- **400 Invalid JSON payload**: POST body is not valid JSON
- **405 Method Not Allowed**: method differs from `RELAY_METHOD`

## Quick Start

```bash
export WEBHOOK_TARGETS="https://app1.example.com/webhook,https://app2.example.com/webhook"
export RELAY_METHOD=POST
curl -X POST http://localhost:8000/api/relay \\
  -H "Content-Type: application/json" \\
  -d '{"id": "evt_123", "status": "PAID"}'
```
"""


def create_app(
    settings: Settings | None = None,
    *,
    title: str = "Webhook Relay",
    version: str = "1.0.0",
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Startup settings (path and log level); read from env if omitted.
        title: API title.
        version: API version.
        transport: Optional httpx transport for outbound calls.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=title,
        version=version,
        description=API_DESCRIPTION,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
    )
    app.state.relay_transport = transport

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception  # noqa: ARG001
    ) -> PlainTextResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return PlainTextResponse("Internal Server Error", status_code=500)

    register_routes(app, relay_path=settings.RELAY_PATH)

    return app


def register_routes(app: FastAPI, relay_path: str) -> None:
    """Register all routes on the application.

    Args:
        app: FastAPI application.
        relay_path: Path of the relay endpoint.
    """

    @app.api_route(
        relay_path,
        methods=RELAY_ROUTE_METHODS,
        response_class=PlainTextResponse,
        tags=["Relay"],
    )
    async def relay(
        request: Request,
        settings: Settings = Depends(get_settings),
    ) -> PlainTextResponse:
        """Relay an inbound webhook to all configured targets.

        Settings are read on every call so target changes apply immediately.
        The body is passed through as a raw stream and only read by the POST relay.
        """
        dispatcher = FanOutDispatcher(
            timeout=settings.RELAY_TIMEOUT_SECONDS,
            transport=request.app.state.relay_transport,
        )
        relay_request = RelayRequest(
            method=request.method,
            headers=dict(request.headers.items()),
            body_stream=request.stream(),
        )

        result = await handle_relay(
            relay_request,
            allowed_method=settings.RELAY_METHOD,
            targets_config=settings.WEBHOOK_TARGETS,
            dispatcher=dispatcher,
        )
        return PlainTextResponse(result.body, status_code=result.status_code)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, Any]:
        """Basic liveness check.

        Does not contact any target.
        """
        return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


# ============================================================================
# Default Application Instance
# ============================================================================


# Create default app instance
app = create_app()
