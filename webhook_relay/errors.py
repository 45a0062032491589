"""Error taxonomy for the relay.

Every failure a request can hit maps to exactly one HTTP status:

Exception Hierarchy:
    RelayError (base)
    ├── PathError - malformed or unresolvable path (400)
    ├── UnknownEntity - source/destination not declared (404)
    ├── AuthRejected - credential present but invalid (401)
    ├── ConfigFault - missing secret/URL or unresolved reference (500)
    ├── UpstreamTimeout - destination missed its deadline (504)
    └── UpstreamTransportFailure - destination unreachable (502)
"""

from typing import Any


class RelayError(Exception):
    """Base exception for all relay errors.

    Attributes:
        message: Human-readable error message, returned to the caller.
        details: Additional context for logging only.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def public_message(self) -> str:
        """Message safe to return in a response body."""
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON body returned to the caller."""
        return {"ok": False, "error": self.public_message}


class PathError(RelayError):
    """The request path does not match the addressing convention."""

    status_code = 400

    def __init__(self, path: str, *, reason: str = "invalid_path") -> None:
        super().__init__("invalid_path", details={"path": path, "reason": reason})
        self.path = path
        self.reason = reason


class UnknownEntity(RelayError):
    """A resolved identifier is not declared in configuration.

    Attributes:
        kind: What was looked up ("source", "host" or "route").
        key: The identifier that was not found.
    """

    status_code = 404

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"Unknown {kind} '{key}'", details={"kind": kind, "key": key})
        self.kind = kind
        self.key = key


class AuthRejected(RelayError):
    """Inbound credential was rejected.

    The reason code stays on the exception for the debug log; the caller
    only ever sees "unauthorized".
    """

    status_code = 401

    def __init__(self, reason: str, *, source: str | None = None) -> None:
        super().__init__("unauthorized", details={"reason": reason, "source": source})
        self.reason = reason
        self.source = source


class ConfigFault(RelayError):
    """Deployment mistake: a required field or secret is absent or invalid.

    Fatal while loading configuration; reported as a 500 when detected
    lazily during a request.

    Attributes:
        field: The configuration field or environment variable at fault.
    """

    status_code = 500

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message, details={"field": field})
        self.field = field


class UpstreamTimeout(RelayError):
    """Destination did not answer within its deadline."""

    status_code = 504

    def __init__(self, destination: str, timeout_ms: int) -> None:
        super().__init__(
            f"upstream timeout after {timeout_ms} ms",
            details={"destination": destination, "timeout_ms": timeout_ms},
        )
        self.destination = destination
        self.timeout_ms = timeout_ms


class UpstreamTransportFailure(RelayError):
    """Connection, DNS, TLS or protocol failure talking to a destination."""

    status_code = 502

    def __init__(self, destination: str, message: str) -> None:
        super().__init__(message, details={"destination": destination})
        self.destination = destination
