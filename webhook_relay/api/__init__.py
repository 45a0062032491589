"""HTTP surface of the relay.

This module contains:
- create_app: FastAPI application factory
- WebhookRelay: resolution, authentication and forwarding engine
"""

from webhook_relay.api.routes import create_app, register_routes, usage_lines
from webhook_relay.api.webhooks import (
    RouteTarget,
    WebhookRelay,
    create_webhook_router,
    read_inbound,
)

__all__ = [
    "RouteTarget",
    "WebhookRelay",
    "create_app",
    "create_webhook_router",
    "read_inbound",
    "register_routes",
    "usage_lines",
]
