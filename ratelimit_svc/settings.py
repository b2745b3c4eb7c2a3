"""Service settings loaded from environment variables."""

from __future__ import annotations

import dataclasses
import datetime
import os
import re
import ssl
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from .tls import CAType, tls_config_from_files


class SettingsError(ValueError):
    """Raised when an environment variable cannot be converted to its setting."""


_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _parse_str(value: str) -> str:
    return value


def _parse_int(value: str) -> int:
    if value != value.strip():
        raise ValueError(f"invalid syntax: {value!r}")
    return int(value, 0)


def _parse_float(value: str) -> float:
    if value != value.strip():
        raise ValueError(f"invalid syntax: {value!r}")
    return float(value)


def _parse_bool(value: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"invalid syntax: {value!r}")


def _parse_map(value: str) -> dict[str, str]:
    result: dict[str, str] = {}
    if not value.strip():
        return result
    for pair in value.split(","):
        parts = pair.split(":")
        if len(parts) != 2:
            raise ValueError(f"invalid map item: {pair!r}")
        result[parts[0]] = parts[1]
    return result


def _parse_list(value: str) -> list[str]:
    if not value.strip():
        return []
    return value.split(",")


_NANOS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = re.compile(r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|s|m|h)")
_MAX_NANOS = 2**63 - 1


def _parse_duration(value: str) -> datetime.timedelta:
    """Parse durations such as ``300ms``, ``-1.5h`` or ``2h45m``."""
    text = value
    negative = False
    if text[:1] in ("-", "+"):
        negative = text[0] == "-"
        text = text[1:]
    if text == "0":
        return datetime.timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total = Decimal(0)
    position = 0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if match is None or not any(ch.isdigit() for ch in match.group(1)):
            raise ValueError(f"invalid duration {value!r}")
        try:
            number = Decimal(match.group(1))
        except InvalidOperation:
            raise ValueError(f"invalid duration {value!r}") from None
        total += number * _NANOS_PER_UNIT[match.group(2)]
        position = match.end()

    nanos = int(total)
    if nanos > _MAX_NANOS:
        raise ValueError(f"invalid duration {value!r}")
    if negative:
        nanos = -nanos
    return datetime.timedelta(microseconds=nanos // 1000)


def _setting(env: str, default: str, parse: Callable[[str], Any]) -> Any:
    metadata = {"env": env, "parse": parse}
    initial = parse(default)
    if isinstance(initial, (dict, list)):
        return field(default_factory=lambda: parse(default), metadata=metadata)
    return field(default=initial, metadata=metadata)


@dataclass
class Settings:
    """All runtime settings of the rate limit service."""

    # Chained into the unary server interceptor when set.
    grpc_unary_interceptor: Callable[..., Any] | None = None

    host: str = _setting("HOST", "0.0.0.0", _parse_str)
    port: int = _setting("PORT", "8080", _parse_int)
    debug_host: str = _setting("DEBUG_HOST", "0.0.0.0", _parse_str)
    debug_port: int = _setting("DEBUG_PORT", "6070", _parse_int)

    grpc_host: str = _setting("GRPC_HOST", "0.0.0.0", _parse_str)
    grpc_port: int = _setting("GRPC_PORT", "8081", _parse_int)
    grpc_server_tls_config: ssl.SSLContext | None = None
    grpc_max_connection_age: datetime.timedelta = _setting(
        "GRPC_MAX_CONNECTION_AGE", "24h", _parse_duration
    )
    grpc_max_connection_age_grace: datetime.timedelta = _setting(
        "GRPC_MAX_CONNECTION_AGE_GRACE", "1h", _parse_duration
    )
    grpc_server_use_tls: bool = _setting("GRPC_SERVER_USE_TLS", "false", _parse_bool)
    grpc_server_tls_cert: str = _setting("GRPC_SERVER_TLS_CERT", "", _parse_str)
    grpc_server_tls_key: str = _setting("GRPC_SERVER_TLS_KEY", "", _parse_str)
    grpc_client_tls_cacert: str = _setting("GRPC_CLIENT_TLS_CACERT", "", _parse_str)
    grpc_client_tls_san: str = _setting("GRPC_CLIENT_TLS_SAN", "", _parse_str)

    log_level: str = _setting("LOG_LEVEL", "WARN", _parse_str)
    log_format: str = _setting("LOG_FORMAT", "text", _parse_str)

    config_type: str = _setting("CONFIG_TYPE", "FILE", _parse_str)
    force_start_without_initial_config: bool = _setting(
        "FORCE_START_WITHOUT_INITIAL_CONFIG", "false", _parse_bool
    )

    config_grpc_xds_node_id: str = _setting("CONFIG_GRPC_XDS_NODE_ID", "default", _parse_str)
    config_grpc_xds_node_metadata: str = _setting("CONFIG_GRPC_XDS_NODE_METADATA", "", _parse_str)
    config_grpc_xds_server_url: str = _setting(
        "CONFIG_GRPC_XDS_SERVER_URL", "localhost:18000", _parse_str
    )
    config_grpc_xds_server_connect_retry_interval: datetime.timedelta = _setting(
        "CONFIG_GRPC_XDS_SERVER_CONNECT_RETRY_INTERVAL", "3s", _parse_duration
    )
    config_grpc_xds_client_additional_headers: dict[str, str] = _setting(
        "CONFIG_GRPC_XDS_CLIENT_ADDITIONAL_HEADERS", "", _parse_map
    )

    config_grpc_xds_tls_config: ssl.SSLContext | None = None
    config_grpc_xds_server_use_tls: bool = _setting(
        "CONFIG_GRPC_XDS_SERVER_USE_TLS", "false", _parse_bool
    )
    config_grpc_xds_client_tls_cert: str = _setting(
        "CONFIG_GRPC_XDS_CLIENT_TLS_CERT", "", _parse_str
    )
    config_grpc_xds_client_tls_key: str = _setting(
        "CONFIG_GRPC_XDS_CLIENT_TLS_KEY", "", _parse_str
    )
    config_grpc_xds_server_tls_cacert: str = _setting(
        "CONFIG_GRPC_XDS_SERVER_TLS_CACERT", "", _parse_str
    )
    config_grpc_xds_server_tls_san: str = _setting(
        "CONFIG_GRPC_XDS_SERVER_TLS_SAN", "", _parse_str
    )

    xds_client_backoff_initial_interval: datetime.timedelta = _setting(
        "XDS_CLIENT_BACKOFF_INITIAL_INTERVAL", "10s", _parse_duration
    )
    xds_client_backoff_max_interval: datetime.timedelta = _setting(
        "XDS_CLIENT_BACKOFF_MAX_INTERVAL", "60s", _parse_duration
    )
    xds_client_backoff_random_factor: float = _setting(
        "XDS_CLIENT_BACKOFF_RANDOM_FACTOR", "0.5", _parse_float
    )
    xds_client_backoff_jitter: bool = _setting("XDS_CLIENT_BACKOFF_JITTER", "true", _parse_bool)

    use_statsd: bool = _setting("USE_STATSD", "true", _parse_bool)
    statsd_host: str = _setting("STATSD_HOST", "localhost", _parse_str)
    statsd_port: int = _setting("STATSD_PORT", "8125", _parse_int)
    extra_tags: dict[str, str] = _setting("EXTRA_TAGS", "", _parse_map)

    runtime_path: str = _setting("RUNTIME_ROOT", "/srv/runtime_data/current", _parse_str)
    runtime_subdirectory: str = _setting("RUNTIME_SUBDIRECTORY", "", _parse_str)
    runtime_app_directory: str = _setting("RUNTIME_APPDIRECTORY", "config", _parse_str)
    runtime_ignore_dot_files: bool = _setting("RUNTIME_IGNOREDOTFILES", "false", _parse_bool)
    runtime_watch_root: bool = _setting("RUNTIME_WATCH_ROOT", "true", _parse_bool)

    expiration_jitter_max_seconds: int = _setting(
        "EXPIRATION_JITTER_MAX_SECONDS", "300", _parse_int
    )
    local_cache_size_in_bytes: int = _setting("LOCAL_CACHE_SIZE_IN_BYTES", "0", _parse_int)
    near_limit_ratio: float = _setting("NEAR_LIMIT_RATIO", "0.8", _parse_float)
    cache_key_prefix: str = _setting("CACHE_KEY_PREFIX", "", _parse_str)
    backend_type: str = _setting("BACKEND_TYPE", "redis", _parse_str)
    stop_cache_key_increment_when_overlimit: bool = _setting(
        "STOP_CACHE_KEY_INCREMENT_WHEN_OVERLIMIT", "false", _parse_bool
    )

    rate_limit_response_headers_enabled: bool = _setting(
        "LIMIT_RESPONSE_HEADERS_ENABLED", "false", _parse_bool
    )
    header_ratelimit_limit: str = _setting("LIMIT_LIMIT_HEADER", "RateLimit-Limit", _parse_str)
    header_ratelimit_remaining: str = _setting(
        "LIMIT_REMAINING_HEADER", "RateLimit-Remaining", _parse_str
    )
    header_ratelimit_reset: str = _setting("LIMIT_RESET_HEADER", "RateLimit-Reset", _parse_str)

    healthy_with_at_least_one_config_loaded: bool = _setting(
        "HEALTHY_WITH_AT_LEAST_ONE_CONFIG_LOADED", "false", _parse_bool
    )

    redis_socket_type: str = _setting("REDIS_SOCKET_TYPE", "unix", _parse_str)
    redis_type: str = _setting("REDIS_TYPE", "SINGLE", _parse_str)
    redis_url: str = _setting("REDIS_URL", "/var/run/nutcracker/ratelimit.sock", _parse_str)
    redis_pool_size: int = _setting("REDIS_POOL_SIZE", "10", _parse_int)
    redis_auth: str = _setting("REDIS_AUTH", "", _parse_str)
    redis_tls: bool = _setting("REDIS_TLS", "false", _parse_bool)
    redis_tls_config: ssl.SSLContext | None = None
    redis_tls_client_cert: str = _setting("REDIS_TLS_CLIENT_CERT", "", _parse_str)
    redis_tls_client_key: str = _setting("REDIS_TLS_CLIENT_KEY", "", _parse_str)
    redis_tls_cacert: str = _setting("REDIS_TLS_CACERT", "", _parse_str)
    redis_tls_skip_hostname_verification: bool = _setting(
        "REDIS_TLS_SKIP_HOSTNAME_VERIFICATION", "false", _parse_bool
    )
    # A zero window disables implicit pipelining.
    redis_pipeline_window: datetime.timedelta = _setting(
        "REDIS_PIPELINE_WINDOW", "0", _parse_duration
    )
    # A zero limit means pipelines are bounded only by the window.
    redis_pipeline_limit: int = _setting("REDIS_PIPELINE_LIMIT", "0", _parse_int)
    redis_per_second: bool = _setting("REDIS_PERSECOND", "false", _parse_bool)
    redis_per_second_socket_type: str = _setting(
        "REDIS_PERSECOND_SOCKET_TYPE", "unix", _parse_str
    )
    redis_per_second_type: str = _setting("REDIS_PERSECOND_TYPE", "SINGLE", _parse_str)
    redis_per_second_url: str = _setting(
        "REDIS_PERSECOND_URL", "/var/run/nutcracker/ratelimitpersecond.sock", _parse_str
    )
    redis_per_second_pool_size: int = _setting("REDIS_PERSECOND_POOL_SIZE", "10", _parse_int)
    redis_per_second_auth: str = _setting("REDIS_PERSECOND_AUTH", "", _parse_str)
    redis_per_second_tls: bool = _setting("REDIS_PERSECOND_TLS", "false", _parse_bool)
    redis_per_second_pipeline_window: datetime.timedelta = _setting(
        "REDIS_PERSECOND_PIPELINE_WINDOW", "0", _parse_duration
    )
    redis_per_second_pipeline_limit: int = _setting(
        "REDIS_PERSECOND_PIPELINE_LIMIT", "0", _parse_int
    )
    redis_health_check_active_connection: bool = _setting(
        "REDIS_HEALTH_CHECK_ACTIVE_CONNECTION", "false", _parse_bool
    )

    memcache_host_port: list[str] = _setting("MEMCACHE_HOST_PORT", "", _parse_list)
    memcache_max_idle_conns: int = _setting("MEMCACHE_MAX_IDLE_CONNS", "2", _parse_int)
    memcache_srv: str = _setting("MEMCACHE_SRV", "", _parse_str)
    memcache_srv_refresh: datetime.timedelta = _setting(
        "MEMCACHE_SRV_REFRESH", "0", _parse_duration
    )

    global_shadow_mode: bool = _setting("SHADOW_MODE", "false", _parse_bool)
    merge_domain_configurations: bool = _setting("MERGE_DOMAIN_CONFIG", "false", _parse_bool)

    tracing_enabled: bool = _setting("TRACING_ENABLED", "false", _parse_bool)
    tracing_service_name: str = _setting("TRACING_SERVICE_NAME", "RateLimit", _parse_str)
    tracing_service_namespace: str = _setting("TRACING_SERVICE_NAMESPACE", "", _parse_str)
    tracing_service_instance_id: str = _setting("TRACING_SERVICE_INSTANCE_ID", "", _parse_str)
    tracing_exporter_protocol: str = _setting("TRACING_EXPORTER_PROTOCOL", "http", _parse_str)
    tracing_sampling_rate: float = _setting("TRACING_SAMPLING_RATE", "1", _parse_float)


Option = Callable[[Settings], None]


def _from_environment(environ: Mapping[str, str]) -> Settings:
    values: dict[str, Any] = {}
    for spec in dataclasses.fields(Settings):
        env = spec.metadata.get("env")
        if env is None or env not in environ:
            continue
        raw = environ[env]
        try:
            values[spec.name] = spec.metadata["parse"](raw)
        except ValueError as exc:
            raise SettingsError(
                f"assigning {env} to {spec.name}: converting {raw!r}: {exc}"
            ) from exc
    return Settings(**values)


def new_settings(*args: Option) -> Settings:
    """Load settings from the environment, then apply ``args`` and the TLS defaults."""
    settings = _from_environment(os.environ)
    for option in (*args, with_grpc_server_tls(), with_grpc_xds_server_tls(), with_redis_tls()):
        option(settings)
    return settings


def with_redis_tls() -> Option:
    """Build the redis TLS context; system roots are used unless TLS files are configured."""

    def apply(settings: Settings) -> None:
        settings.redis_tls_config = ssl.create_default_context()
        if settings.redis_tls or settings.redis_per_second_tls:
            settings.redis_tls_config = tls_config_from_files(
                settings.redis_tls_client_cert,
                settings.redis_tls_client_key,
                settings.redis_tls_cacert,
                CAType.SERVER,
                settings.redis_tls_skip_hostname_verification,
            )

    return apply


def with_grpc_server_tls() -> Option:
    """Build the gRPC server TLS context when server TLS is enabled."""

    def apply(settings: Settings) -> None:
        if not settings.grpc_server_use_tls:
            return
        context = tls_config_from_files(
            settings.grpc_server_tls_cert,
            settings.grpc_server_tls_key,
            settings.grpc_client_tls_cacert,
            CAType.CLIENT,
            False,
        )
        context.verify_mode = (
            ssl.CERT_REQUIRED if settings.grpc_client_tls_cacert else ssl.CERT_NONE
        )
        settings.grpc_server_tls_config = context

    return apply


def with_grpc_xds_server_tls() -> Option:
    """Build the TLS context for connecting to the xDS config server when enabled."""

    def apply(settings: Settings) -> None:
        if not settings.config_grpc_xds_server_use_tls:
            return
        # This is a client-side context: the server is always verified, so no
        # client-certificate policy applies here.
        settings.config_grpc_xds_tls_config = tls_config_from_files(
            settings.config_grpc_xds_client_tls_cert,
            settings.config_grpc_xds_client_tls_key,
            settings.config_grpc_xds_server_tls_cacert,
            CAType.SERVER,
            False,
        )

    return apply


def grpc_unary_interceptor(interceptor: Callable[..., Any]) -> Option:
    """Return an option that installs ``interceptor`` on the settings."""

    def apply(settings: Settings) -> None:
        settings.grpc_unary_interceptor = interceptor

    return apply