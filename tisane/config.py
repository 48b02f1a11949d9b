"""
Declarative client configuration.

``TransportConfig`` and ``TLSConfig`` are option objects merged onto a copy
of the default transport settings when a client is built: a field only
takes effect when it is explicitly set (non-zero, non-empty, True), so
leaving a field alone keeps the default.
"""

from __future__ import annotations

import ssl
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

import httpx

from .errors import ConfigValidationError
from .log import parse_format, parse_level

DEFAULT_USER_AGENT = "tisane/0.1.0"
DEFAULT_ACCEPT_ENCODING = "gzip, deflate, br"

# Oldest protocol version the client will negotiate.
MINIMUM_TLS_VERSION = ssl.TLSVersion.TLSv1_2

_TLS_VERSION_NAMES = {
    "1.2": ssl.TLSVersion.TLSv1_2,
    "1.3": ssl.TLSVersion.TLSv1_3,
    "tls1.2": ssl.TLSVersion.TLSv1_2,
    "tls1.3": ssl.TLSVersion.TLSv1_3,
    "tlsv1_2": ssl.TLSVersion.TLSv1_2,
    "tlsv1_3": ssl.TLSVersion.TLSv1_3,
}


def parse_tls_version(value: ssl.TLSVersion | int | str | None) -> ssl.TLSVersion | None:
    """
    Accept an ``ssl.TLSVersion``, its wire value (0x0303, 0x0304) or a name
    such as "1.2" / "TLSv1_3". None passes through.
    """
    if value is None or value == "" or value == 0:
        return None
    if isinstance(value, ssl.TLSVersion):
        return value
    if isinstance(value, int):
        try:
            return ssl.TLSVersion(value)
        except ValueError:
            raise ConfigValidationError(f"invalid TLS version: {value:#06x}") from None
    key = str(value).strip().lower()
    if key not in _TLS_VERSION_NAMES:
        raise ConfigValidationError(
            f"invalid TLS version '{value}' expected one of: {', '.join(_TLS_VERSION_NAMES)}"
        )
    return _TLS_VERSION_NAMES[key]


def _positive(value: int) -> int | None:
    return value if value > 0 else None


def _smallest(*values: int) -> int | None:
    limited = [v for v in values if v > 0]
    return min(limited) if limited else None


@dataclass
class TransportSettings:
    """
    Effective transport settings for one client.

    ``defaults()`` plays the part of the platform default transport: every
    client starts from a fresh copy and layers its options on top.
    """

    tls_handshake_timeout: float | None = 10.0
    response_header_timeout: float | None = None
    write_timeout: float | None = None
    pool_timeout: float | None = None
    # httpx does not implement Expect: 100-continue; kept for configuration parity.
    expect_continue_timeout: float | None = 1.0
    idle_conn_timeout: float | None = 90.0
    max_idle_conns: int = 100
    max_idle_conns_per_host: int = 100
    max_conns_per_host: int = 100
    disable_keep_alives: bool = False
    disable_compression: bool = False
    force_attempt_http2: bool = True
    proxy: str | None = None
    local_address: str | None = None

    @classmethod
    def defaults(cls) -> TransportSettings:
        return cls()

    def copy(self) -> TransportSettings:
        return replace(self)

    def limits(self) -> httpx.Limits:
        # httpx pools globally, so the per-host caps bound the whole pool.
        keepalive = _smallest(self.max_idle_conns, self.max_idle_conns_per_host)
        if self.disable_keep_alives:
            keepalive = 0
        return httpx.Limits(
            max_connections=_positive(self.max_conns_per_host),
            max_keepalive_connections=keepalive,
            keepalive_expiry=self.idle_conn_timeout,
        )

    def timeout(self, overall: float | None = None) -> httpx.Timeout:
        def pick(phase: float | None) -> float | None:
            return phase if phase else overall

        return httpx.Timeout(
            connect=pick(self.tls_handshake_timeout),
            read=pick(self.response_header_timeout),
            write=pick(self.write_timeout),
            pool=pick(self.pool_timeout),
        )

    def accept_encoding(self) -> str:
        return "identity" if self.disable_compression else DEFAULT_ACCEPT_ENCODING

    def build(self, ssl_context: ssl.SSLContext) -> httpx.HTTPTransport:
        """Build the pooled transport; it never retries."""
        return httpx.HTTPTransport(
            verify=ssl_context,
            http2=self.force_attempt_http2,
            limits=self.limits(),
            proxy=self.proxy,
            local_address=self.local_address,
            retries=0,
        )


@dataclass
class TransportConfig:
    """Transport options; only explicitly set fields override the defaults."""

    tls_handshake_timeout: float | None = None
    response_header_timeout: float | None = None
    write_timeout: float | None = None
    pool_timeout: float | None = None
    expect_continue_timeout: float | None = None
    idle_conn_timeout: float | None = None
    max_idle_conns: int = 0
    max_idle_conns_per_host: int = 0
    max_conns_per_host: int = 0
    disable_keep_alives: bool = False
    disable_compression: bool = False
    force_attempt_http2: bool = False
    proxy: str | None = None
    local_address: str | None = None

    def apply(self, settings: TransportSettings | None) -> None:
        if settings is None:
            return
        for f in fields(self):
            value = getattr(self, f.name)
            # zero, empty, None and False all mean "not set"
            if value:
                setattr(settings, f.name, value)


@dataclass
class TLSConfig:
    """TLS options; the minimum version is never lowered below TLS 1.2."""

    insecure_skip_verify: bool = False
    min_version: ssl.TLSVersion | int | str | None = None
    ca_file: str | None = None

    def __post_init__(self) -> None:
        self.min_version = parse_tls_version(self.min_version)

    def apply(self, context: ssl.SSLContext | None) -> None:
        if context is None:
            return
        if self.insecure_skip_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if self.min_version is not None and self.min_version > context.minimum_version:
            context.minimum_version = self.min_version


_NUMBER_FIELDS = (
    "timeout",
    "tls_handshake_timeout",
    "response_header_timeout",
    "expect_continue_timeout",
    "idle_conn_timeout",
)
_COUNT_FIELDS = ("max_idle_conns", "max_idle_conns_per_host", "max_conns_per_host")
_KEY_ALIASES = {"continue_timeout": "expect_continue_timeout"}


@dataclass
class ClientConfig:
    """
    Flat client configuration, typically loaded from a settings file.

    Values are validated on construction; bad values raise a
    ConfigValidationError subclass naming the offending field.
    """

    user_agent: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    tls_handshake_timeout: float | None = None
    insecure_skip_verify: bool = False
    tls_min_version: ssl.TLSVersion | int | str | None = None
    response_header_timeout: float | None = None
    expect_continue_timeout: float | None = None
    idle_conn_timeout: float | None = None
    max_idle_conns: int = 0
    max_idle_conns_per_host: int = 0
    max_conns_per_host: int = 0
    log_level: str | None = None
    log_format: str | None = None

    def __post_init__(self) -> None:
        for name in _NUMBER_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigValidationError(f"{name} must be a number of seconds, got {value!r}")
            if value < 0:
                raise ConfigValidationError(f"{name} must not be negative, got {value!r}")
        for name in _COUNT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigValidationError(f"{name} must be a non-negative integer, got {value!r}")
        if not isinstance(self.headers, Mapping):
            raise ConfigValidationError(f"headers must be a mapping, got {self.headers!r}")
        self.headers = {str(k): str(v) for k, v in self.headers.items()}
        self.tls_min_version = parse_tls_version(self.tls_min_version)
        if self.log_level is not None:
            parse_level(self.log_level)
        if self.log_format is not None:
            parse_format(self.log_format)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ClientConfig:
        """Build a config from snake_case keys, rejecting unknown ones."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = _KEY_ALIASES.get(key, key)
            if name not in known:
                raise ConfigValidationError(f"unknown client config key '{key}'")
            values[name] = value
        return cls(**values)

    def resolved_headers(self) -> dict[str, str]:
        """Configured headers, with ``user_agent`` filled in when no User-Agent is present."""
        headers = dict(self.headers)
        if self.user_agent and not any(k.lower() == "user-agent" for k in headers):
            headers["User-Agent"] = self.user_agent
        return headers

    def transport_config(self) -> TransportConfig:
        return TransportConfig(
            tls_handshake_timeout=self.tls_handshake_timeout,
            response_header_timeout=self.response_header_timeout,
            expect_continue_timeout=self.expect_continue_timeout,
            idle_conn_timeout=self.idle_conn_timeout,
            max_idle_conns=self.max_idle_conns,
            max_idle_conns_per_host=self.max_idle_conns_per_host,
            max_conns_per_host=self.max_conns_per_host,
        )

    def tls_config(self) -> TLSConfig:
        return TLSConfig(
            insecure_skip_verify=self.insecure_skip_verify,
            min_version=self.tls_min_version,
        )
