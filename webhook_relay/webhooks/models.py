"""Per-call request and response envelopes.

These live exactly as long as the inbound call that produced them.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


def normalize_headers(items: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Lowercase header names, joining repeated headers with ", ".

    Args:
        items: Raw (name, value) pairs in arrival order.

    Returns:
        Mapping with lowercase keys.
    """
    headers: dict[str, str] = {}
    for name, value in items:
        key = name.lower()
        if key in headers:
            headers[key] = f"{headers[key]}, {value}"
        else:
            headers[key] = value
    return headers


@dataclass(frozen=True)
class InboundRequest:
    """Inbound webhook call as seen by the relay."""

    method: str
    path: str
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    remote_address: str | None = None
    query_string: str = ""

    @classmethod
    def build(
        cls,
        *,
        method: str,
        path: str,
        body: bytes = b"",
        headers: Iterable[tuple[str, str]] | Mapping[str, str] = (),
        remote_address: str | None = None,
        query_string: str = "",
    ) -> "InboundRequest":
        """Create a request, normalizing header names to lowercase."""
        pairs = headers.items() if isinstance(headers, Mapping) else headers
        return cls(
            method=method.upper(),
            path=path,
            body=body,
            headers=normalize_headers(pairs),
            remote_address=remote_address,
            query_string=query_string,
        )

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class OutboundRequest:
    """Request the relay sends to a destination."""

    destination: str
    url: str
    headers: Mapping[str, str]
    body: bytes
    timeout_ms: int
    method: str = "POST"


@dataclass(frozen=True)
class ForwardResult:
    """Destination response passed back to the caller."""

    status_code: int
    body: bytes
    content_type: str | None = None
    elapsed_ms: float = 0.0

    def response_headers(self) -> dict[str, str]:
        """Headers returned to the caller: content type only."""
        if self.content_type:
            return {"content-type": self.content_type}
        return {}
