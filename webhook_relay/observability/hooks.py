"""Request lifecycle log hooks.

The relay components call into a RelayObserver instead of logging the
lifecycle themselves, so every resolution, auth outcome and forward
outcome is reported with the same event names and context keys.
"""

from typing import Any

import structlog

from webhook_relay.errors import ConfigFault, RelayError
from webhook_relay.webhooks.auth import AuthVerdict
from webhook_relay.webhooks.resolver import ResolvedRoute

logger = structlog.get_logger(__name__)


class RelayObserver:
    """Leveled structured logging for one relay process."""

    def __init__(self, service_name: str, *, log: Any | None = None) -> None:
        """Initialize the observer.

        Args:
            service_name: Service identifier bound to every event.
            log: Logger to use (defaults to this module's structlog logger).
        """
        self.service_name = service_name
        self._log = log or logger

    def _bound(self) -> Any:
        return self._log.bind(service=self.service_name)

    def route_resolved(self, route: ResolvedRoute, *, prefix: str) -> None:
        self._bound().debug(
            "route_resolved",
            prefix=prefix,
            source=route.source,
            destination=route.destination,
            topic=route.topic,
        )

    def route_rejected(self, error: RelayError, *, path: str) -> None:
        self._bound().info(
            "route_rejected",
            path=path,
            status=error.status_code,
            error=error.message,
        )

    def auth_evaluated(
        self,
        verdict: AuthVerdict,
        *,
        source: str,
        destination: str,
        field: str | None = None,
    ) -> None:
        """Report an auth verdict.

        The reason code only goes to the debug channel; rejections are
        logged at warning level without it.
        """
        log = self._bound()
        log.debug(
            "auth_verdict",
            source=source,
            destination=destination,
            accepted=verdict.accepted,
            reason=verdict.reason.value,
        )
        if verdict.is_config_fault:
            log.error(
                "auth_config_missing",
                source=source,
                destination=destination,
                field=field,
            )
        elif not verdict.accepted:
            log.warning("webhook_unauthorized", source=source, destination=destination)

    def forward_completed(
        self,
        route: ResolvedRoute,
        *,
        status: int,
        bytes_sent: int,
        elapsed_ms: float,
    ) -> None:
        self._bound().info(
            "forward_completed",
            source=route.source,
            topic=route.topic,
            destination=route.destination,
            status=status,
            bytes=bytes_sent,
            elapsed_ms=round(elapsed_ms, 2),
        )

    def forward_failed(self, route: ResolvedRoute, error: RelayError) -> None:
        self._bound().error(
            "forward_failed",
            source=route.source,
            topic=route.topic,
            destination=route.destination,
            status=error.status_code,
            error=error.message,
        )

    def config_fault(self, error: ConfigFault) -> None:
        self._bound().error("config_fault", field=error.field, error=error.message)
