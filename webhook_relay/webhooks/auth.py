"""Inbound authentication strategies.

Each source declares exactly one AuthKind. Every kind has one strategy
class, registered in STRATEGIES; a strategy is a pure check of an inbound
request against the configured secret and returns an AuthVerdict.

Strategies:
- signed_request: HMAC-SHA256 over the raw body, "sha256=<hex>" header
- bearer_secret: "Authorization: Bearer <secret>", exact match
- normalized_secret: exact match, then match with any "Bearer " prefix
  stripped from both sides
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from webhook_relay.webhooks.models import InboundRequest
from webhook_relay.webhooks.security import (
    BEARER_PREFIX,
    SIGNATURE_HEADER,
    SIGNATURE_PREFIX,
    constant_time_equals,
    strip_bearer,
    verify_signature,
)


class AuthKind(str, Enum):
    """Supported inbound authentication strategies."""

    SIGNED_REQUEST = "signed_request"
    BEARER_SECRET = "bearer_secret"
    NORMALIZED_SECRET = "normalized_secret"

    @classmethod
    def _missing_(cls, value: object) -> "AuthKind | None":
        if isinstance(value, str):
            return _AUTH_KIND_ALIASES.get(value.strip().lower())
        return None


_AUTH_KIND_ALIASES = {
    "github_signature": AuthKind.SIGNED_REQUEST,
    "hmac": AuthKind.SIGNED_REQUEST,
    "bearer": AuthKind.BEARER_SECRET,
    "raw": AuthKind.NORMALIZED_SECRET,
    "normalized": AuthKind.NORMALIZED_SECRET,
}


class AuthReason(str, Enum):
    """Why a verdict was reached."""

    OK = "ok"
    MISSING_SECRET_CONFIG = "missing_secret_config"
    MISSING_CREDENTIAL = "missing_credential"
    SCHEME_MISMATCH = "scheme_mismatch"
    SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass(frozen=True)
class AuthVerdict:
    """Accept/reject outcome of one strategy evaluation."""

    accepted: bool
    reason: AuthReason

    @classmethod
    def ok(cls) -> "AuthVerdict":
        return cls(accepted=True, reason=AuthReason.OK)

    @classmethod
    def reject(cls, reason: AuthReason) -> "AuthVerdict":
        return cls(accepted=False, reason=reason)

    @property
    def is_config_fault(self) -> bool:
        """True when the secret is not configured (a deployment mistake)."""
        return self.reason is AuthReason.MISSING_SECRET_CONFIG


class AuthStrategy(ABC):
    """Base class for one authentication strategy.

    Attributes:
        kind: The AuthKind this strategy implements.
        default_header: Header carrying the credential unless overridden.
    """

    kind: ClassVar[AuthKind]
    default_header: ClassVar[str] = "authorization"

    def __init__(self, header: str | None = None) -> None:
        self.header = (header or self.default_header).lower()

    def verify(self, request: InboundRequest, secret: str | None) -> AuthVerdict:
        """Evaluate a request against the configured secret.

        Args:
            request: Inbound request, body fully read.
            secret: Configured secret, None or empty when not configured.

        Returns:
            AuthVerdict with the reason code.
        """
        if not secret:
            return AuthVerdict.reject(AuthReason.MISSING_SECRET_CONFIG)
        provided = request.header(self.header)
        if not provided:
            return AuthVerdict.reject(AuthReason.MISSING_CREDENTIAL)
        return self._verify(request, provided, secret)

    @abstractmethod
    def _verify(
        self, request: InboundRequest, provided: str, secret: str
    ) -> AuthVerdict:
        """Check a present credential against a configured secret."""


class SignedRequestStrategy(AuthStrategy):
    """HMAC-SHA256 request signature over the exact raw body."""

    kind = AuthKind.SIGNED_REQUEST
    default_header = SIGNATURE_HEADER

    def _verify(
        self, request: InboundRequest, provided: str, secret: str
    ) -> AuthVerdict:
        if not provided.startswith(SIGNATURE_PREFIX):
            return AuthVerdict.reject(AuthReason.SCHEME_MISMATCH)
        if verify_signature(request.body, provided, secret):
            return AuthVerdict.ok()
        return AuthVerdict.reject(AuthReason.SIGNATURE_MISMATCH)


class BearerSecretStrategy(AuthStrategy):
    """Literal "Bearer <secret>" credential."""

    kind = AuthKind.BEARER_SECRET

    def _verify(
        self, request: InboundRequest, provided: str, secret: str  # noqa: ARG002
    ) -> AuthVerdict:
        if not provided.startswith(BEARER_PREFIX):
            return AuthVerdict.reject(AuthReason.SCHEME_MISMATCH)
        if constant_time_equals(provided, f"{BEARER_PREFIX}{secret}"):
            return AuthVerdict.ok()
        return AuthVerdict.reject(AuthReason.SIGNATURE_MISMATCH)


class NormalizedSecretStrategy(AuthStrategy):
    """Scheme-agnostic shared secret.

    Accepts the exact configured value, or the same value once an optional
    "Bearer " prefix is stripped from both the provided and configured
    credential.
    """

    kind = AuthKind.NORMALIZED_SECRET

    def _verify(
        self, request: InboundRequest, provided: str, secret: str  # noqa: ARG002
    ) -> AuthVerdict:
        if constant_time_equals(provided, secret):
            return AuthVerdict.ok()
        if constant_time_equals(strip_bearer(provided), strip_bearer(secret)):
            return AuthVerdict.ok()
        return AuthVerdict.reject(AuthReason.SIGNATURE_MISMATCH)


STRATEGIES: dict[AuthKind, type[AuthStrategy]] = {
    strategy.kind: strategy
    for strategy in (
        SignedRequestStrategy,
        BearerSecretStrategy,
        NormalizedSecretStrategy,
    )
}


def get_strategy(kind: AuthKind, header: str | None = None) -> AuthStrategy:
    """Instantiate the strategy for an auth kind.

    Args:
        kind: Declared auth kind.
        header: Optional credential header override.

    Returns:
        Strategy instance.
    """
    return STRATEGIES[kind](header)
