"""Forwarding of authenticated webhooks to destinations.

Builds the outbound request (URL, headers, body), runs exactly one
outbound call under the destination's deadline, and hands the response
back untouched apart from dropping every header except content-type.
"""

import asyncio
import time
from urllib.parse import quote

import httpx
import structlog

from webhook_relay.errors import UpstreamTimeout, UpstreamTransportFailure
from webhook_relay.webhooks.events import HookEnvelope
from webhook_relay.webhooks.models import ForwardResult, InboundRequest, OutboundRequest

logger = structlog.get_logger(__name__)

RELAY_HEADER = "x-webhook-relay"

# Inbound headers copied on raw passthrough, besides any x-* header
PASSTHROUGH_HEADERS = frozenset({"content-type", "user-agent", "authorization"})
# Recomputed by the outbound transport
DROPPED_HEADERS = frozenset({"host", "content-length"})


def build_forward_url(base_url: str, topic: str, query_string: str = "") -> str:
    """Build the raw passthrough URL: <base>/webhooks/<topic>[?query]."""
    root = base_url.rstrip("/")
    url = f"{root}/webhooks/{quote(topic, safe='')}"
    return f"{url}?{query_string}" if query_string else url


def build_hook_url(base_url: str, hook_path: str) -> str:
    """Build the hook envelope URL: <base><hook_path>."""
    return f"{base_url.rstrip('/')}/{hook_path.lstrip('/')}"


def build_forward_headers(inbound: InboundRequest, *, relay_id: str) -> dict[str, str]:
    """Select inbound headers for raw passthrough.

    Copies x-* headers plus content-type, user-agent and authorization,
    never host or content-length. Adds x-forwarded-for from the remote
    address only when the caller sent none, x-forwarded-host from the
    inbound host header, and the relay marker.

    Args:
        inbound: Inbound request (lowercase header keys).
        relay_id: Value for the relay marker header.

    Returns:
        Outbound header mapping.
    """
    headers: dict[str, str] = {}
    for key, value in inbound.headers.items():
        if key in DROPPED_HEADERS:
            continue
        if key.startswith("x-") or key in PASSTHROUGH_HEADERS:
            headers[key] = value

    if not headers.get("x-forwarded-for") and inbound.remote_address:
        headers["x-forwarded-for"] = inbound.remote_address
    host = inbound.header("host")
    if host:
        headers["x-forwarded-host"] = host
    headers[RELAY_HEADER] = relay_id
    return headers


def build_hook_headers(token: str, *, relay_id: str) -> dict[str, str]:
    """Headers for a re-enveloped payload; inbound headers are not kept."""
    return {
        "authorization": f"Bearer {token}",
        "content-type": "application/json",
        RELAY_HEADER: relay_id,
    }


def build_passthrough_request(
    inbound: InboundRequest,
    *,
    destination: str,
    base_url: str,
    topic: str,
    timeout_ms: int,
    relay_id: str,
) -> OutboundRequest:
    """Outbound request carrying the raw inbound body."""
    return OutboundRequest(
        destination=destination,
        url=build_forward_url(base_url, topic, inbound.query_string),
        headers=build_forward_headers(inbound, relay_id=relay_id),
        body=inbound.body,
        timeout_ms=timeout_ms,
    )


def build_envelope_request(
    envelope: HookEnvelope,
    *,
    destination: str,
    base_url: str,
    hook_path: str,
    token: str,
    timeout_ms: int,
    relay_id: str,
) -> OutboundRequest:
    """Outbound request carrying a hook envelope."""
    return OutboundRequest(
        destination=destination,
        url=build_hook_url(base_url, hook_path),
        headers=build_hook_headers(token, relay_id=relay_id),
        body=envelope.to_bytes(),
        timeout_ms=timeout_ms,
    )


class Forwarder:
    """Issues outbound calls through a shared HTTP client.

    The client (and its connection pool) is owned by the caller; the
    forwarder never retries.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Initialize the forwarder.

        Args:
            client: Shared async HTTP client.
        """
        self._client = client
        self._logger = logger.bind(component="forwarder")

    async def forward(self, outbound: OutboundRequest) -> ForwardResult:
        """Send one request and return the destination's response.

        The whole exchange, including reading the response body, runs
        inside an asyncio.timeout scope; leaving the scope by any path
        disarms the deadline.

        Args:
            outbound: Request to send.

        Returns:
            ForwardResult with status, content type and body.

        Raises:
            UpstreamTimeout: The deadline expired; the call was cancelled.
            UpstreamTransportFailure: Any other transport failure.
        """
        self._logger.debug(
            "outbound_request",
            destination=outbound.destination,
            url=outbound.url,
            timeout_ms=outbound.timeout_ms,
        )
        start_time = time.monotonic()
        try:
            # Inbound header values arrive latin-1 decoded
            headers = httpx.Headers(dict(outbound.headers), encoding="latin-1")
            async with asyncio.timeout(outbound.timeout_ms / 1000):
                response = await self._client.request(
                    outbound.method,
                    outbound.url,
                    headers=headers,
                    content=outbound.body,
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeout(outbound.destination, outbound.timeout_ms) from e
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as e:
            message = str(e) or type(e).__name__
            raise UpstreamTransportFailure(outbound.destination, message) from e

        return ForwardResult(
            status_code=response.status_code,
            body=response.content,
            content_type=response.headers.get("content-type"),
            elapsed_ms=(time.monotonic() - start_time) * 1000,
        )
