"""FastAPI application for the webhook relay.

This module contains:
- The relay endpoint
- Health check endpoint
"""

from src.api.routes import RELAY_ROUTE_METHODS, app, create_app

__all__ = [
    "RELAY_ROUTE_METHODS",
    # App factory and instance
    "app",
    "create_app",
]
