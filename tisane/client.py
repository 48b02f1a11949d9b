"""
Root client configuration.

A Client owns the pooled httpx client, the cookie jar and the TLS and
transport settings every Session derived from it shares.
"""

from __future__ import annotations

import ssl
import threading
from collections.abc import Mapping
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import TYPE_CHECKING, Any

import certifi
import httpx

from .config import (
    DEFAULT_USER_AGENT,
    MINIMUM_TLS_VERSION,
    ClientConfig,
    TLSConfig,
    TransportConfig,
    TransportSettings,
)
from .cookies import Jar, with_logger
from .headers import copy_headers
from .log import LoggerLike, configure_logging, get_logger

if TYPE_CHECKING:
    from .session import Session


def _create_ssl_context(tls_configs: list[TLSConfig], log: LoggerLike) -> ssl.SSLContext:
    ca_file = next((tls.ca_file for tls in reversed(tls_configs) if tls.ca_file), None)
    ctx = ssl.create_default_context(cafile=ca_file or certifi.where())
    ctx.minimum_version = MINIMUM_TLS_VERSION
    for tls in tls_configs:
        tls.apply(ctx)
    if ctx.verify_mode == ssl.CERT_NONE:
        log.warning("TLS verification disabled")
    return ctx


def _isolated_cookies() -> CookieJar:
    # httpx keeps its own cookie store; refusing every domain leaves the Jar
    # as the only place cookies live.
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


class Client:
    """
    Root configuration shared by every Session derived from it.

    The pooled ``httpx.Client`` is built on first use and reused for the
    lifetime of the root. Transport and TLS options are merged onto a copy
    of ``TransportSettings.defaults()``; a field only applies when set.

    Args:
        config: Flat ClientConfig (user agent, headers, timeouts, pool sizes)
        headers: Extra headers, overriding those from ``config``
        timeout: Overall timeout in seconds applied to every phase without its own
        transport: Concrete httpx transport, bypassing transport settings entirely
        transport_config: TransportConfig layered over ``config``
        tls: TLSConfig layered over ``config``
        jar: Cookie jar to share; one is created when omitted
        no_cookie_jar: Do not store or send cookies at all
        follow_redirects: Follow redirects (default: True)
        logger: Logger for the root and the sessions it creates
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
        transport_config: TransportConfig | None = None,
        tls: TLSConfig | None = None,
        jar: Jar | None = None,
        no_cookie_jar: bool = False,
        follow_redirects: bool = True,
        logger: LoggerLike | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        if self.config.log_level or self.config.log_format:
            configure_logging(self.config.log_level or "info", self.config.log_format or "text")

        self._logger = logger
        self.log: LoggerLike = logger or get_logger("client")
        self._extra_headers = dict(headers or {})
        self.headers: dict[str, str] = self.config.resolved_headers()
        copy_headers(self.headers, self._extra_headers, overwrite=True)

        self._timeout = timeout
        self.timeout = timeout if timeout is not None else self.config.timeout
        self.transport = transport
        self.transport_config = transport_config
        self.tls = tls
        self.follow_redirects = follow_redirects
        self.no_cookie_jar = no_cookie_jar

        if jar is None and not no_cookie_jar:
            jar = Jar(with_logger(logger)) if logger is not None else Jar()
        self.jar = jar

        self.transport_settings = TransportSettings.defaults().copy()
        self.config.transport_config().apply(self.transport_settings)
        if transport_config is not None:
            transport_config.apply(self.transport_settings)

        self._tls_configs = [self.config.tls_config()]
        if tls is not None:
            self._tls_configs.append(tls)

        self._http: httpx.Client | None = None
        self._lock = threading.Lock()

    @property
    def user_agent(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "user-agent":
                return value
        return DEFAULT_USER_AGENT

    def default_headers(self) -> dict[str, str]:
        """
        Root headers over the transport defaults.

        Filled into a request only where neither interceptors nor the
        session set the header, however the session was built.
        """
        headers = dict(self.headers)
        copy_headers(
            headers,
            {
                "User-Agent": self.user_agent,
                "Accept": "*/*",
                "Accept-Encoding": self.transport_settings.accept_encoding(),
            },
            overwrite=False,
        )
        return headers

    def http_client(self) -> httpx.Client:
        """Return the pooled httpx client, building it on first call."""
        client = self._http
        if client is not None:
            return client
        with self._lock:
            if self._http is None:
                self._http = self._build()
            return self._http

    def _build(self) -> httpx.Client:
        hooks: dict[str, list[Any]] = {"request": [], "response": []}
        if self.jar is not None:
            hooks["request"].append(self.jar.attach_cookies)
            hooks["response"].append(self.jar.extract_cookies)

        if self.transport is not None:
            transport = self.transport
        else:
            transport = self.transport_settings.build(_create_ssl_context(self._tls_configs, self.log))

        client = httpx.Client(
            transport=transport,
            timeout=self.transport_settings.timeout(self.timeout),
            follow_redirects=self.follow_redirects,
            cookies=_isolated_cookies(),
            event_hooks=hooks,
        )
        self.log.debug(
            "http client initialized",
            extra={
                "http2": self.transport_settings.force_attempt_http2,
                "custom_transport": self.transport is not None,
                "cookie_jar": self.jar is not None,
            },
        )
        return client

    def session(self) -> Session:
        """Return a new Session bound to this root, seeded with its headers."""
        from .session import Session

        return Session(client=self, headers=self.headers, logger=self._logger)

    def clone(self, **changes: Any) -> Client:
        """
        Copy the declarative configuration, overriding any keyword in ``changes``.

        The jar is shared unless replaced; the built httpx client is not.
        """
        params: dict[str, Any] = {
            "config": self.config,
            "headers": self._extra_headers,
            "timeout": self._timeout,
            "transport": self.transport,
            "transport_config": self.transport_config,
            "tls": self.tls,
            "jar": self.jar,
            "no_cookie_jar": self.no_cookie_jar,
            "follow_redirects": self.follow_redirects,
            "logger": self._logger,
        }
        params.update(changes)
        return Client(**params)

    def close(self) -> None:
        with self._lock:
            if self._http is not None:
                self._http.close()
                self._http = None
                self.log.debug("http client closed")

    def __enter__(self) -> Client:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self._http is not None else "idle"
        return f"<Client {state} jar={'yes' if self.jar is not None else 'no'}>"
