"""Webhook relay endpoints.

One router per configured route mount. Every request goes through the
same sequence:

1. resolve the path to (source, destination, topic)      -> 400
2. look up source, destination and binding               -> 404
3. read the body and evaluate the source's auth strategy -> 500 / 401
4. build the outbound request (raw or hook envelope)
5. forward under the destination deadline                -> 502 / 504
"""

from dataclasses import dataclass

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import Response

from webhook_relay.config import Destination, RelayConfig, RouteBinding, RouteMount, Source
from webhook_relay.errors import AuthRejected, ConfigFault, RelayError, UnknownEntity
from webhook_relay.observability.hooks import RelayObserver
from webhook_relay.webhooks.auth import get_strategy
from webhook_relay.webhooks.events import build_envelope
from webhook_relay.webhooks.forwarder import (
    Forwarder,
    build_envelope_request,
    build_passthrough_request,
)
from webhook_relay.webhooks.models import ForwardResult, InboundRequest, OutboundRequest
from webhook_relay.webhooks.resolver import AddressingConvention, ResolvedRoute, Resolver

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RouteTarget:
    """Config entities a resolved route points at."""

    route: ResolvedRoute
    source: Source
    destination: Destination
    binding: RouteBinding


class WebhookRelay:
    """Resolution, authentication and forwarding engine."""

    def __init__(
        self,
        config: RelayConfig,
        forwarder: Forwarder,
        observer: RelayObserver,
    ) -> None:
        """Initialize the relay.

        Args:
            config: Validated relay configuration.
            forwarder: Outbound forwarder.
            observer: Lifecycle log hooks.
        """
        self._config = config
        self._forwarder = forwarder
        self._observer = observer

    def resolver_for(self, mount: RouteMount) -> Resolver:
        """Build the resolver for one route mount."""
        if mount.convention is not AddressingConvention.FIXED:
            return Resolver(mount.convention)
        binding = self._config.bindings[mount.app]
        fixed = ResolvedRoute(
            source=binding.source,
            destination=binding.destination,
            topic=binding.topic or binding.source,
        )
        return Resolver(mount.convention, fixed=fixed)

    def lookup(self, route: ResolvedRoute) -> RouteTarget:
        """Find the config entities for a route.

        Raises:
            UnknownEntity: Source, destination or pairing not declared.
        """
        source = self._config.get_source(route.source)
        if source is None:
            raise UnknownEntity("source", route.source)
        destination = self._config.get_destination(route.destination)
        if destination is None:
            raise UnknownEntity("host", route.destination)

        binding = self._config.get_binding(route.source)
        if binding is None:
            binding = RouteBinding(
                source=source.key,
                destination=destination.key,
                envelope=source.envelope,
            )
        elif binding.destination != destination.key:
            raise UnknownEntity("route", f"{route.source}->{route.destination}")
        elif binding.topic:
            route = ResolvedRoute(
                source=route.source,
                destination=route.destination,
                topic=binding.topic,
            )
        return RouteTarget(route=route, source=source, destination=destination, binding=binding)

    def authenticate(self, target: RouteTarget, inbound: InboundRequest) -> None:
        """Evaluate the source's auth strategy.

        Raises:
            ConfigFault: The source's secret is not configured.
            AuthRejected: The credential is missing or wrong.
        """
        source = target.source
        strategy = get_strategy(source.auth, source.header)
        verdict = strategy.verify(inbound, source.secret)
        self._observer.auth_evaluated(
            verdict,
            source=source.key,
            destination=target.destination.key,
            field=source.secret_field,
        )
        if verdict.is_config_fault:
            if source.secret_env:
                raise ConfigFault(f"Missing env '{source.secret_env}'", field=source.secret_env)
            raise ConfigFault(f"Missing secret for source '{source.key}'", field=source.secret_field)
        if not verdict.accepted:
            raise AuthRejected(verdict.reason.value, source=source.key)

    def build_outbound(self, target: RouteTarget, inbound: InboundRequest) -> OutboundRequest:
        """Build a raw passthrough or hook envelope request."""
        destination = target.destination
        binding = target.binding
        relay_id = self._config.service_name
        if binding.envelope:
            envelope = build_envelope(
                binding.envelope,
                inbound.body,
                deliver=binding.deliver,
                wake_mode=binding.wake_mode,
            )
            return build_envelope_request(
                envelope,
                destination=destination.key,
                base_url=destination.base_url,
                hook_path=destination.hook_path,
                token=destination.token,
                timeout_ms=destination.timeout_ms,
                relay_id=relay_id,
            )
        return build_passthrough_request(
            inbound,
            destination=destination.key,
            base_url=destination.base_url,
            topic=target.route.topic,
            timeout_ms=destination.timeout_ms,
            relay_id=relay_id,
        )

    async def relay(self, target: RouteTarget, inbound: InboundRequest) -> ForwardResult:
        """Authenticate and forward one request.

        Raises:
            RelayError: Mapped failure for the caller.
        """
        self.authenticate(target, inbound)
        outbound = self.build_outbound(target, inbound)
        try:
            result = await self._forwarder.forward(outbound)
        except RelayError as e:
            self._observer.forward_failed(target.route, e)
            raise
        self._observer.forward_completed(
            target.route,
            status=result.status_code,
            bytes_sent=len(inbound.body),
            elapsed_ms=result.elapsed_ms,
        )
        return result


async def read_inbound(request: Request) -> InboundRequest:
    """Read an inbound FastAPI request to completion."""
    body = await request.body()
    return InboundRequest.build(
        method=request.method,
        path=request.url.path,
        body=body,
        headers=request.headers.items(),
        remote_address=request.client.host if request.client else None,
        query_string=request.url.query,
    )


def create_webhook_router(mount: RouteMount, relay: WebhookRelay, observer: RelayObserver) -> APIRouter:
    """Create the router serving one route mount.

    Args:
        mount: Prefix and addressing convention.
        relay: Relay engine.
        observer: Lifecycle log hooks.

    Returns:
        Router with a single POST endpoint.
    """
    router = APIRouter(prefix=mount.prefix, tags=["Webhooks"])
    resolver = relay.resolver_for(mount)

    async def handle(request: Request, path: str) -> Response:
        try:
            route = resolver.resolve(path)
            target = relay.lookup(route)
        except RelayError as e:
            observer.route_rejected(e, path=request.url.path)
            raise
        observer.route_resolved(target.route, prefix=mount.prefix)

        inbound = await read_inbound(request)
        result = await relay.relay(target, inbound)
        return Response(
            content=result.body,
            status_code=result.status_code,
            headers=result.response_headers(),
        )

    if mount.convention is AddressingConvention.FIXED:

        @router.post("")
        async def forward_fixed(request: Request) -> Response:
            return await handle(request, "")

    else:

        @router.post("/{path:path}")
        async def forward_webhook(request: Request, path: str) -> Response:
            return await handle(request, path)

    return router
