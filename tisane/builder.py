"""
Session construction from option functions.

An option is a callable taking a Session and changing one aspect of it.
Options that touch the root (config, transport, TLS, jar) swap the
session's Client for a modified clone, so sessions sharing that root are
unaffected.

Example:
    session = (
        SessionBuilder()
        .client(root)
        .add_headers({"Accept": "application/json"})
        .on_request(set_random_user_agent)
        .new()
    )
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping

import httpx

from .client import Client
from .config import ClientConfig, TLSConfig, TransportConfig
from .cookies import Jar
from .headers import copy_headers
from .interceptors import RequestInterceptor, ResponseInterceptor
from .log import LoggerLike
from .session import Session

Option = Callable[[Session], None]


def use_logger(log: LoggerLike) -> Option:
    def option(session: Session) -> None:
        session.log = log

    return option


def use_client(client: Client) -> Option:
    def option(session: Session) -> None:
        session.client = client

    return option


def _replace_root(**changes) -> Option:
    def option(session: Session) -> None:
        session.client = session.client.clone(**changes)

    return option


def use_config(config: ClientConfig) -> Option:
    return _replace_root(config=config)


def use_transport(transport: httpx.BaseTransport) -> Option:
    return _replace_root(transport=transport)


def use_transport_config(transport_config: TransportConfig) -> Option:
    return _replace_root(transport_config=transport_config)


def use_tls(tls: TLSConfig) -> Option:
    return _replace_root(tls=tls)


def use_cookie_jar(jar: Jar) -> Option:
    return _replace_root(jar=jar, no_cookie_jar=False)


def use_headers(headers: Mapping[str, str], replace: bool = False) -> Option:
    """Add ``headers`` to the snapshot (overwriting per name), or replace it outright."""
    snapshot = dict(headers)

    def option(session: Session) -> None:
        if replace:
            session._headers = {}
        copy_headers(session._headers, snapshot, overwrite=True)

    return option


def use_request_interceptors(*interceptors: RequestInterceptor, replace: bool = False) -> Option:
    def option(session: Session) -> None:
        chain = () if replace else session.request_interceptors
        session.request_interceptors = chain + tuple(interceptors)

    return option


def use_response_interceptors(*interceptors: ResponseInterceptor, replace: bool = False) -> Option:
    def option(session: Session) -> None:
        chain = () if replace else session.response_interceptors
        session.response_interceptors = chain + tuple(interceptors)

    return option


def apply_options(session: Session, options: Iterable[Option]) -> Session:
    """Apply ``options`` to ``session`` in place and return it."""
    for option in options:
        option(session)
    return session


def make_session(session: Session, options: Iterable[Option]) -> Session:
    """Apply ``options`` to a clone of ``session``; the original is untouched."""
    return apply_options(session.clone(), options)


def new_session(options: Iterable[Option]) -> Session:
    """Apply ``options`` to a fresh Session."""
    return apply_options(Session(), options)


class SessionBuilder:
    """
    Fluent accumulator of session options.

    Args:
        target: Session that ``apply()`` and ``make()`` work on. Without one
            both behave like ``new()``.
    """

    def __init__(self, target: Session | None = None) -> None:
        self._target = target
        self._options: list[Option] = []

    @property
    def options(self) -> list[Option]:
        return list(self._options)

    def _add(self, option: Option) -> SessionBuilder:
        self._options.append(option)
        return self

    def logger(self, log: LoggerLike) -> SessionBuilder:
        return self._add(use_logger(log))

    def client(self, client: Client) -> SessionBuilder:
        return self._add(use_client(client))

    def config(self, config: ClientConfig) -> SessionBuilder:
        return self._add(use_config(config))

    def transport(self, transport: httpx.BaseTransport) -> SessionBuilder:
        return self._add(use_transport(transport))

    def transport_config(self, transport_config: TransportConfig) -> SessionBuilder:
        return self._add(use_transport_config(transport_config))

    def tls(self, tls: TLSConfig) -> SessionBuilder:
        return self._add(use_tls(tls))

    def add_headers(self, headers: Mapping[str, str]) -> SessionBuilder:
        return self._add(use_headers(headers))

    def set_headers(self, headers: Mapping[str, str]) -> SessionBuilder:
        return self._add(use_headers(headers, replace=True))

    def cookie_jar(self, jar: Jar) -> SessionBuilder:
        return self._add(use_cookie_jar(jar))

    def on_request(self, *interceptors: RequestInterceptor, replace: bool = False) -> SessionBuilder:
        return self._add(use_request_interceptors(*interceptors, replace=replace))

    def on_response(self, *interceptors: ResponseInterceptor, replace: bool = False) -> SessionBuilder:
        return self._add(use_response_interceptors(*interceptors, replace=replace))

    def apply(self) -> Session:
        if self._target is None:
            return self.new()
        return apply_options(self._target, self._options)

    def make(self) -> Session:
        if self._target is None:
            return self.new()
        return make_session(self._target, self._options)

    def new(self) -> Session:
        return new_session(self._options)
