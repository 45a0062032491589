"""Relay configuration.

This module provides:
- Settings: process-level knobs read from environment variables
- RelayConfig: the validated, immutable config model built once at startup
- build_config / load_config: turn raw YAML data into a RelayConfig

Validation is all-or-nothing: any problem raises ConfigFault and no
partial model is ever returned.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from webhook_relay.errors import ConfigFault
from webhook_relay.observability.logging import LogLevel, parse_log_level
from webhook_relay.webhooks.auth import AuthKind
from webhook_relay.webhooks.events import WakeMode
from webhook_relay.webhooks.resolver import AddressingConvention

logger = structlog.get_logger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8787
DEFAULT_TIMEOUT_MS = 15000
DEFAULT_HOOK_PATH = "/hooks/agent"
DEFAULT_SERVICE_NAME = "webhook-relay"

DEFAULT_ROUTES: tuple[dict[str, str], ...] = (
    {"prefix": "/v1/webhooks/apps", "convention": "source_first"},
    {"prefix": "/v1/webhooks/hosts", "convention": "destination_first"},
)


def _get_bool_env(name: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set.

    Returns:
        Boolean value from environment.
    """
    value = os.getenv(name, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_int_env(name: str) -> int | None:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ConfigFault(f"Invalid env '{name}': must be integer", field=name) from e


@dataclass
class Settings:
    """Process settings loaded from environment variables.

    Attributes:
        CONFIG_PATH: Path of the YAML relay configuration.
        HOST: Listen host, used when the file does not set one.
        PORT: Listen port, used when the file does not set one.
        LOG_LEVEL: Log level, used when the file does not set one.
        LOG_JSON: Render logs as JSON lines.
    """

    CONFIG_PATH: str = "relay.yaml"
    HOST: str | None = None
    PORT: int | None = None
    LOG_LEVEL: str | None = None
    LOG_JSON: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.
        """
        return cls(
            CONFIG_PATH=os.getenv("RELAY_CONFIG", "relay.yaml"),
            HOST=os.getenv("HOST") or None,
            PORT=_get_int_env("PORT"),
            LOG_LEVEL=os.getenv("LOG_LEVEL") or None,
            LOG_JSON=_get_bool_env("LOG_JSON", default=False),
        )


# ============================================================================
# Config Model
# ============================================================================


class Destination(BaseModel):
    """A downstream agent/host receiving forwarded events."""

    model_config = ConfigDict(frozen=True)

    key: str
    base_url: str = Field(..., min_length=1)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    token: str = Field(..., min_length=1, description="Outbound credential")
    hook_path: str = Field(default=DEFAULT_HOOK_PATH)


class Source(BaseModel):
    """An external system emitting inbound webhook calls."""

    model_config = ConfigDict(frozen=True)

    key: str
    auth: AuthKind
    secret: str | None = Field(default=None, repr=False)
    secret_env: str | None = None
    header: str | None = Field(default=None, description="Credential header override")
    envelope: str | None = Field(default=None, description="Hook envelope name")

    @property
    def secret_field(self) -> str:
        """Name of the field or env var the secret comes from."""
        return self.secret_env or f"sources.{self.key}.secret"


class RouteBinding(BaseModel):
    """Association of a source with a destination.

    Explicit bindings (declared apps) carry a destination; implicit ones
    take it from the request path.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    destination: str | None = None
    topic: str | None = None
    envelope: str | None = None
    deliver: bool = True
    wake_mode: WakeMode = WakeMode.NOW


class RouteMount(BaseModel):
    """One HTTP prefix served under one addressing convention."""

    model_config = ConfigDict(frozen=True)

    prefix: str
    convention: AddressingConvention
    app: str | None = None

    @property
    def pattern(self) -> str:
        """Human-readable route pattern for /healthz."""
        if self.convention is AddressingConvention.FIXED:
            return self.prefix
        return f"{self.prefix}/*"


class RelayConfig(BaseModel):
    """Validated relay configuration. Read-only after startup."""

    model_config = ConfigDict(frozen=True)

    service_name: str = DEFAULT_SERVICE_NAME
    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, gt=0, lt=65536)
    log_level: LogLevel = LogLevel.INFO
    allowed_origins: tuple[str, ...] = ()
    destinations: dict[str, Destination] = Field(default_factory=dict)
    sources: dict[str, Source] = Field(default_factory=dict)
    bindings: dict[str, RouteBinding] = Field(default_factory=dict)
    routes: tuple[RouteMount, ...] = ()

    def get_source(self, key: str) -> Source | None:
        return self.sources.get(key)

    def get_destination(self, key: str) -> Destination | None:
        return self.destinations.get(key)

    def get_binding(self, source: str) -> RouteBinding | None:
        """Explicit binding declared for a source, if any."""
        return self.bindings.get(source)

    @property
    def app_keys(self) -> list[str]:
        return list(self.bindings)

    @property
    def plain_source_keys(self) -> list[str]:
        return [key for key in self.sources if key not in self.bindings]


# ============================================================================
# Building
# ============================================================================


def _section(raw: Mapping[str, Any], *names: str) -> dict[str, Any]:
    # At most one alias of a section may be declared
    declared = [name for name in names if raw.get(name) is not None]
    if len(declared) > 1:
        listed = ", ".join(f"'{name}'" for name in declared)
        raise ConfigFault(f"Declare only one of {listed}", field=declared[1])
    for name in names:
        value = raw.get(name)
        if value is None:
            continue
        if not isinstance(value, Mapping):
            raise ConfigFault(f"'{name}' must be a mapping", field=name)
        return dict(value)
    return {}


def _entry(section: str, key: Any, value: Any) -> dict[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigFault(f"'{section}.{key}' must be a mapping", field=f"{section}.{key}")
    return dict(value)


def _resolve_secret(
    entry: Mapping[str, Any],
    *,
    inline: str,
    env: str,
    field: str,
    environ: Mapping[str, str],
) -> tuple[str | None, str | None]:
    """Resolve a credential given inline or via a named env variable.

    Returns:
        (value or None, env variable name or None).
    """
    value = entry.get(inline)
    env_name = entry.get(env)
    if env_name is not None and not isinstance(env_name, str):
        raise ConfigFault(f"'{field}.{env}' must be a string", field=f"{field}.{env}")
    if value is not None and not isinstance(value, str):
        raise ConfigFault(f"'{field}.{inline}' must be a string", field=f"{field}.{inline}")
    if value and value.strip():
        return value, env_name
    if env_name:
        env_value = environ.get(env_name, "")
        return (env_value if env_value.strip() else None), env_name
    return None, None


def _validated(model: type[BaseModel], data: dict[str, Any], field: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or field}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigFault(f"Invalid '{field}': {problems}", field=field) from e


def _parse_auth_kind(value: Any, field: str) -> AuthKind:
    try:
        return AuthKind(value)
    except ValueError as e:
        choices = ", ".join(kind.value for kind in AuthKind)
        raise ConfigFault(
            f"Unknown auth kind {value!r} for '{field}' (expected one of: {choices})",
            field=field,
        ) from e


def _build_destinations(
    raw: Mapping[str, Any], environ: Mapping[str, str]
) -> dict[str, Destination]:
    destinations: dict[str, Destination] = {}
    for key, value in _section(raw, "destinations", "hosts", "agents").items():
        field = f"destinations.{key}"
        entry = _entry("destinations", key, value)

        base_url = str(entry.get("base_url") or entry.get("url") or "").strip()
        if not base_url:
            raise ConfigFault(f"Destination '{key}' has no base_url", field=f"{field}.base_url")

        token, token_env = _resolve_secret(
            entry, inline="token", env="token_env", field=field, environ=environ
        )
        if not token:
            missing = f"env '{token_env}'" if token_env else f"'{field}.token'"
            raise ConfigFault(
                f"Destination '{key}' has no outbound credential (missing {missing})",
                field=token_env or f"{field}.token",
            )

        data: dict[str, Any] = {"key": str(key), "base_url": base_url, "token": token}
        for name in ("timeout_ms", "hook_path"):
            if entry.get(name) is not None:
                data[name] = entry[name]
        destinations[str(key)] = _validated(Destination, data, field)
    return destinations


def _build_sources(
    raw: Mapping[str, Any], environ: Mapping[str, str]
) -> dict[str, Source]:
    sources: dict[str, Source] = {}
    for key, value in _section(raw, "sources").items():
        field = f"sources.{key}"
        entry = _entry("sources", key, value)
        if "auth" not in entry:
            raise ConfigFault(f"Source '{key}' has no auth kind", field=f"{field}.auth")

        secret, secret_env = _resolve_secret(
            entry, inline="secret", env="secret_env", field=field, environ=environ
        )
        if secret is None and secret_env is None:
            raise ConfigFault(
                f"Source '{key}' declares neither secret nor secret_env",
                field=f"{field}.secret_env",
            )
        if secret is None:
            logger.warning("source_secret_unset", source=key, env=secret_env)

        sources[str(key)] = _validated(
            Source,
            {
                "key": str(key),
                "auth": _parse_auth_kind(entry["auth"], f"{field}.auth"),
                "secret": secret,
                "secret_env": secret_env,
                "header": entry.get("header"),
                "envelope": entry.get("envelope"),
            },
            field,
        )
    return sources


def _build_apps(
    raw: Mapping[str, Any],
    environ: Mapping[str, str],
    destinations: Mapping[str, Destination],
    sources: Mapping[str, Source],
) -> tuple[dict[str, Source], dict[str, RouteBinding]]:
    app_sources: dict[str, Source] = {}
    bindings: dict[str, RouteBinding] = {}
    for key, value in _section(raw, "apps").items():
        field = f"apps.{key}"
        entry = _entry("apps", key, value)
        if str(key) in sources:
            raise ConfigFault(f"'{key}' is declared as both source and app", field=field)

        secret, secret_env = _resolve_secret(
            entry, inline="secret", env="secret_env", field=field, environ=environ
        )
        if not secret:
            missing = f"env '{secret_env}'" if secret_env else f"'{field}.secret'"
            raise ConfigFault(
                f"App '{key}' has no inbound credential (missing {missing})",
                field=secret_env or f"{field}.secret",
            )

        destination = str(entry.get("destination") or "").strip()
        if not destination:
            raise ConfigFault(f"App '{key}' has no destination", field=f"{field}.destination")
        if destination not in destinations:
            raise ConfigFault(
                f"App '{key}' references undeclared destination '{destination}'",
                field=f"{field}.destination",
            )

        app_sources[str(key)] = _validated(
            Source,
            {
                "key": str(key),
                "auth": _parse_auth_kind(entry.get("auth", "normalized_secret"), f"{field}.auth"),
                "secret": secret,
                "secret_env": secret_env,
                "header": entry.get("header"),
                "envelope": entry.get("envelope"),
            },
            field,
        )
        binding_data: dict[str, Any] = {
            "source": str(key),
            "destination": destination,
            "topic": entry.get("topic"),
            "envelope": entry.get("envelope"),
        }
        for name in ("deliver", "wake_mode"):
            if entry.get(name) is not None:
                binding_data[name] = entry[name]
        bindings[str(key)] = _validated(RouteBinding, binding_data, field)
    return app_sources, bindings


def _build_routes(
    raw: Mapping[str, Any], bindings: Mapping[str, RouteBinding]
) -> tuple[RouteMount, ...]:
    entries = raw.get("routes")
    if entries is None:
        entries = list(DEFAULT_ROUTES)
    if not isinstance(entries, list) or not entries:
        raise ConfigFault("'routes' must be a non-empty list", field="routes")

    mounts: list[RouteMount] = []
    seen: set[str] = set()
    for index, value in enumerate(entries):
        field = f"routes[{index}]"
        entry = _entry("routes", index, value)
        prefix = "/" + str(entry.get("prefix") or "").strip().strip("/")
        if prefix == "/":
            raise ConfigFault(f"Route {index} has no prefix", field=f"{field}.prefix")
        if prefix in seen:
            raise ConfigFault(f"Duplicate route prefix '{prefix}'", field=f"{field}.prefix")
        seen.add(prefix)

        try:
            convention = AddressingConvention(entry.get("convention"))
        except ValueError as e:
            choices = ", ".join(c.value for c in AddressingConvention)
            raise ConfigFault(
                f"Unknown convention {entry.get('convention')!r} for route '{prefix}' "
                f"(expected one of: {choices})",
                field=f"{field}.convention",
            ) from e

        app = entry.get("app")
        if convention is AddressingConvention.FIXED:
            if not app or app not in bindings:
                raise ConfigFault(
                    f"Fixed route '{prefix}' must name a declared app",
                    field=f"{field}.app",
                )
        elif app is not None:
            raise ConfigFault(
                f"Route '{prefix}' derives its app from the path; 'app' is only valid on fixed routes",
                field=f"{field}.app",
            )
        mounts.append(RouteMount(prefix=prefix, convention=convention, app=app))
    return tuple(mounts)


def _build_origins(raw: Mapping[str, Any]) -> tuple[str, ...]:
    if "allowed_origins" not in raw:
        return ()
    value = raw["allowed_origins"]
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        raise ConfigFault("'allowed_origins' must be a list", field="allowed_origins")
    origins = tuple(str(origin).strip() for origin in value if str(origin).strip())
    if not origins:
        raise ConfigFault(
            "'allowed_origins' must contain at least one origin",
            field="allowed_origins",
        )
    return origins


def build_config(
    raw: Mapping[str, Any] | None,
    *,
    settings: Settings | None = None,
    environ: Mapping[str, str] | None = None,
) -> RelayConfig:
    """Validate raw configuration data into a RelayConfig.

    Args:
        raw: Untyped data, e.g. parsed YAML.
        settings: Process settings supplying listen/log fallbacks.
        environ: Environment used to resolve *_env secrets (os.environ if None).

    Returns:
        Immutable RelayConfig.

    Raises:
        ConfigFault: On the first invalid or missing field.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigFault("Relay configuration must be a mapping", field="<root>")
    settings = settings or Settings()
    environ = os.environ if environ is None else environ

    listen = _section(raw, "listen")
    host = str(listen.get("host") or settings.HOST or DEFAULT_HOST)
    port = listen.get("port") or settings.PORT or DEFAULT_PORT

    level_name = raw.get("log_level") or settings.LOG_LEVEL
    try:
        log_level = parse_log_level(level_name)
    except ValueError as e:
        raise ConfigFault(
            f"Unknown log level {level_name!r} (expected error, warn, info or debug)",
            field="log_level",
        ) from e

    destinations = _build_destinations(raw, environ)
    sources = _build_sources(raw, environ)
    app_sources, bindings = _build_apps(raw, environ, destinations, sources)
    routes = _build_routes(raw, bindings)

    config = _validated(
        RelayConfig,
        {
            "service_name": raw.get("service_name") or DEFAULT_SERVICE_NAME,
            "host": host,
            "port": port,
            "log_level": log_level,
            "allowed_origins": _build_origins(raw),
            "destinations": destinations,
            "sources": {**sources, **app_sources},
            "bindings": bindings,
            "routes": routes,
        },
        "<root>",
    )

    logger.info(
        "config_loaded",
        destinations=list(config.destinations),
        sources=config.plain_source_keys,
        apps=config.app_keys,
        routes=[mount.pattern for mount in config.routes],
    )
    return config


def load_config(
    path: str | Path | None = None,
    *,
    settings: Settings | None = None,
    environ: Mapping[str, str] | None = None,
) -> RelayConfig:
    """Load and validate the YAML relay configuration.

    Args:
        path: Config file path (defaults to settings.CONFIG_PATH).
        settings: Process settings (defaults to Settings.from_env()).
        environ: Environment for *_env secrets.

    Returns:
        Immutable RelayConfig.

    Raises:
        ConfigFault: If the file is missing, unparsable or invalid.
    """
    settings = settings or Settings.from_env()
    config_path = Path(path or settings.CONFIG_PATH)
    if not config_path.exists():
        raise ConfigFault(f"Config file not found: {config_path}", field="RELAY_CONFIG")

    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigFault(f"Invalid YAML in {config_path}: {e}", field="RELAY_CONFIG") from e

    return build_config(raw, settings=settings, environ=environ)
