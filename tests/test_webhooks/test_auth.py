"""Tests for inbound authentication strategies."""

from unittest.mock import patch

import pytest

from webhook_relay.webhooks.auth import (
    STRATEGIES,
    AuthKind,
    AuthReason,
    AuthVerdict,
    BearerSecretStrategy,
    NormalizedSecretStrategy,
    SignedRequestStrategy,
    get_strategy,
)
from webhook_relay.webhooks.models import InboundRequest
from webhook_relay.webhooks.security import signature_header_value

SECRET = "s3cr3t"
BODY = b'{"zen":"Keep it logically awesome."}'


def make_request(headers=None, body=BODY):
    """Build an inbound request with the given headers."""
    return InboundRequest.build(
        method="POST",
        path="/v1/webhooks/apps/github/nima",
        body=body,
        headers=headers or {},
    )


# ============================================================================
# AuthKind Tests
# ============================================================================


class TestAuthKind:
    """Tests for AuthKind enum."""

    def test_values(self):
        """Should have expected values."""
        assert AuthKind.SIGNED_REQUEST.value == "signed_request"
        assert AuthKind.BEARER_SECRET.value == "bearer_secret"
        assert AuthKind.NORMALIZED_SECRET.value == "normalized_secret"

    @pytest.mark.parametrize(
        ("alias", "kind"),
        [
            ("github_signature", AuthKind.SIGNED_REQUEST),
            ("raw", AuthKind.NORMALIZED_SECRET),
            ("Bearer", AuthKind.BEARER_SECRET),
        ],
    )
    def test_legacy_aliases(self, alias, kind):
        """Should accept legacy strategy names."""
        assert AuthKind(alias) is kind

    def test_unknown_kind(self):
        """Should reject unknown names."""
        with pytest.raises(ValueError):
            AuthKind("basic")

    def test_every_kind_has_a_strategy(self):
        """Strategy table should cover the whole enum."""
        assert set(STRATEGIES) == set(AuthKind)
        for kind in AuthKind:
            assert get_strategy(kind).kind is kind


class TestAuthVerdict:
    """Tests for AuthVerdict."""

    def test_ok(self):
        """Accepted verdict carries the ok reason."""
        verdict = AuthVerdict.ok()
        assert verdict.accepted is True
        assert verdict.reason is AuthReason.OK
        assert verdict.is_config_fault is False

    def test_config_fault(self):
        """Missing secret is a config fault, not a plain rejection."""
        verdict = AuthVerdict.reject(AuthReason.MISSING_SECRET_CONFIG)
        assert verdict.accepted is False
        assert verdict.is_config_fault is True


# ============================================================================
# Shared behavior
# ============================================================================


class TestMissingSecret:
    """Every strategy checks the configured secret first."""

    @pytest.mark.parametrize("kind", list(AuthKind))
    @pytest.mark.parametrize("secret", [None, ""])
    def test_missing_secret(self, kind, secret):
        """Unconfigured secret yields missing_secret_config."""
        request = make_request({"authorization": "Bearer x", "x-hub-signature-256": "sha256=00"})

        verdict = get_strategy(kind).verify(request, secret)

        assert verdict.accepted is False
        assert verdict.reason is AuthReason.MISSING_SECRET_CONFIG

    @pytest.mark.parametrize("kind", list(AuthKind))
    def test_missing_credential(self, kind):
        """No credential header yields missing_credential."""
        verdict = get_strategy(kind).verify(make_request(), SECRET)

        assert verdict.reason is AuthReason.MISSING_CREDENTIAL


# ============================================================================
# SignedRequestStrategy Tests
# ============================================================================


class TestSignedRequestStrategy:
    """Tests for HMAC request signatures."""

    def test_valid_signature(self):
        """Correct signature over the raw body is accepted."""
        request = make_request({"X-Hub-Signature-256": signature_header_value(BODY, SECRET)})

        verdict = SignedRequestStrategy().verify(request, SECRET)

        assert verdict == AuthVerdict.ok()

    def test_sign_verify_tamper(self):
        """Changing one body byte invalidates a previously valid signature."""
        signature = signature_header_value(BODY, SECRET)
        tampered = BODY.replace(b"awesome", b"awesomE")

        ok = SignedRequestStrategy().verify(
            make_request({"x-hub-signature-256": signature}), SECRET
        )
        bad = SignedRequestStrategy().verify(
            make_request({"x-hub-signature-256": signature}, body=tampered), SECRET
        )

        assert ok.accepted is True
        assert bad.accepted is False
        assert bad.reason is AuthReason.SIGNATURE_MISMATCH

    def test_missing_prefix_is_scheme_mismatch(self):
        """Header without sha256= prefix is rejected without hashing."""
        bare = signature_header_value(BODY, SECRET).removeprefix("sha256=")
        request = make_request({"x-hub-signature-256": bare})

        with patch("webhook_relay.webhooks.auth.verify_signature") as mock_verify:
            verdict = SignedRequestStrategy().verify(request, SECRET)
            mock_verify.assert_not_called()

        assert verdict.reason is AuthReason.SCHEME_MISMATCH

    def test_other_algorithm_prefix(self):
        """sha1= signatures are a scheme mismatch."""
        request = make_request({"x-hub-signature-256": "sha1=abcdef"})

        verdict = SignedRequestStrategy().verify(request, SECRET)

        assert verdict.reason is AuthReason.SCHEME_MISMATCH

    def test_truncated_signature(self):
        """Shorter digest is a signature mismatch."""
        signature = signature_header_value(BODY, SECRET)[:-2]
        request = make_request({"x-hub-signature-256": signature})

        verdict = SignedRequestStrategy().verify(request, SECRET)

        assert verdict.reason is AuthReason.SIGNATURE_MISMATCH

    def test_uses_constant_time_compare(self):
        """Digest comparison goes through constant_time_equals."""
        request = make_request({"x-hub-signature-256": signature_header_value(BODY, SECRET)})

        with patch(
            "webhook_relay.webhooks.security.constant_time_equals", return_value=True
        ) as mock_cmp:
            SignedRequestStrategy().verify(request, SECRET)

        mock_cmp.assert_called_once()

    def test_delegates_to_verify_signature(self):
        """Digest check is the shared verify_signature helper."""
        signature = signature_header_value(BODY, SECRET)
        request = make_request({"x-hub-signature-256": signature})

        with patch(
            "webhook_relay.webhooks.auth.verify_signature", return_value=False
        ) as mock_verify:
            verdict = SignedRequestStrategy().verify(request, SECRET)

        mock_verify.assert_called_once_with(BODY, signature, SECRET)
        assert verdict.reason is AuthReason.SIGNATURE_MISMATCH

    def test_custom_header(self):
        """Signature header can be overridden."""
        request = make_request({"x-signature": signature_header_value(BODY, SECRET)})

        verdict = SignedRequestStrategy(header="X-Signature").verify(request, SECRET)

        assert verdict.accepted is True


# ============================================================================
# BearerSecretStrategy Tests
# ============================================================================


class TestBearerSecretStrategy:
    """Tests for bearer secret comparison."""

    def test_valid_bearer(self):
        """Exact "Bearer <secret>" is accepted."""
        request = make_request({"Authorization": f"Bearer {SECRET}"})

        assert BearerSecretStrategy().verify(request, SECRET).accepted is True

    def test_wrong_secret(self):
        """Different secret is a signature mismatch."""
        request = make_request({"authorization": "Bearer nope"})

        verdict = BearerSecretStrategy().verify(request, SECRET)

        assert verdict.reason is AuthReason.SIGNATURE_MISMATCH

    def test_raw_secret_without_scheme(self):
        """Secret without Bearer prefix is a scheme mismatch."""
        request = make_request({"authorization": SECRET})

        verdict = BearerSecretStrategy().verify(request, SECRET)

        assert verdict.reason is AuthReason.SCHEME_MISMATCH

    def test_lowercase_scheme_rejected(self):
        """Comparison is exact, "bearer" is not "Bearer"."""
        request = make_request({"authorization": f"bearer {SECRET}"})

        assert BearerSecretStrategy().verify(request, SECRET).accepted is False


# ============================================================================
# NormalizedSecretStrategy Tests
# ============================================================================


class TestNormalizedSecretStrategy:
    """Tests for scheme-agnostic secret comparison."""

    @pytest.mark.parametrize(
        ("provided", "configured"),
        [
            ("tok-1", "tok-1"),
            ("Bearer tok-1", "Bearer tok-1"),
            ("Bearer tok-1", "tok-1"),
            ("tok-1", "Bearer tok-1"),
            ("bearer tok-1", "BEARER tok-1"),
        ],
    )
    def test_accepts_with_or_without_prefix(self, provided, configured):
        """Prefix on either side does not matter."""
        request = make_request({"authorization": provided})

        assert NormalizedSecretStrategy().verify(request, configured).accepted is True

    def test_rejects_different_secret(self):
        """Different secret is rejected."""
        request = make_request({"authorization": "Bearer tok-2"})

        verdict = NormalizedSecretStrategy().verify(request, "tok-1")

        assert verdict.reason is AuthReason.SIGNATURE_MISMATCH

    @pytest.mark.parametrize("provided", ["Bearer  tok-1", "Bearer\ttok-1", " Bearer tok-1"])
    def test_loose_scheme_spacing_rejected(self, provided):
        """Only "Bearer " with a single space is treated as the scheme."""
        request = make_request({"authorization": provided})

        verdict = NormalizedSecretStrategy().verify(request, "tok-1")

        assert verdict.accepted is False

    def test_custom_header(self):
        """Credential header can be overridden."""
        request = make_request({"x-app-token": "tok-1"})

        assert NormalizedSecretStrategy(header="x-app-token").verify(request, "tok-1").accepted

    def test_does_not_apply_to_signed_requests(self):
        """Signed-request sources never fall back to secret comparison."""
        request = make_request({"x-hub-signature-256": SECRET})

        verdict = get_strategy(AuthKind.SIGNED_REQUEST).verify(request, SECRET)

        assert verdict.accepted is False
