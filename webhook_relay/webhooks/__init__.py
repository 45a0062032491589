"""Webhook resolution, authentication and forwarding.

This module provides:
- resolver: path-to-destination resolution under each addressing convention
- auth / security: inbound authentication strategies and HMAC primitives
- events: hook envelope payload transform
- forwarder: outbound request construction and deadline-bound forwarding
"""

from webhook_relay.webhooks.auth import (
    STRATEGIES,
    AuthKind,
    AuthReason,
    AuthStrategy,
    AuthVerdict,
    get_strategy,
)
from webhook_relay.webhooks.events import HookEnvelope, WakeMode, build_envelope
from webhook_relay.webhooks.forwarder import (
    RELAY_HEADER,
    Forwarder,
    build_forward_headers,
    build_forward_url,
)
from webhook_relay.webhooks.models import ForwardResult, InboundRequest, OutboundRequest
from webhook_relay.webhooks.resolver import (
    AddressingConvention,
    ResolvedRoute,
    Resolver,
    resolve_path,
)
from webhook_relay.webhooks.security import generate_signature, verify_signature

__all__ = [
    # Auth
    "STRATEGIES",
    "AuthKind",
    "AuthReason",
    "AuthStrategy",
    "AuthVerdict",
    "get_strategy",
    # Envelope
    "HookEnvelope",
    "WakeMode",
    "build_envelope",
    # Forwarding
    "RELAY_HEADER",
    "Forwarder",
    "build_forward_headers",
    "build_forward_url",
    # Models
    "ForwardResult",
    "InboundRequest",
    "OutboundRequest",
    # Resolution
    "AddressingConvention",
    "ResolvedRoute",
    "Resolver",
    "resolve_path",
    # Security
    "generate_signature",
    "verify_signature",
]
