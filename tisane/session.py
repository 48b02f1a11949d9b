"""
The Session: one request in the making, built by clone-on-write fluent
calls and executed once through the interceptor chains and the root's
pooled httpx client.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Union

import httpx

from .client import Client
from .errors import ConstructionError, InterceptorError, SessionStateError, TransportError
from .headers import copy_headers
from .interceptors import (
    RequestInterceptor,
    ResponseInterceptor,
    run_request_interceptors,
    run_response_interceptors,
)
from .log import LoggerLike, get_logger, with_fields
from .models import Result

if TYPE_CHECKING:
    from .builder import SessionBuilder
    from .cookies import Jar

IDLE = "idle"
EXECUTING = "executing"
COMPLETED = "completed"

RequestBody = Union[bytes, str, Iterable[bytes], None]


class Session:
    """
    One request in the making.

    Fluent calls (``with_url``, ``with_header`` ...) return a clone with one
    field changed and leave the receiver alone, so a configured session can
    serve as a template. Terminal calls (``get``, ``post`` ...) execute the
    request once; a completed session refuses to run again.

    Args:
        client: Root Client; a default one is created on first use when omitted
        headers: Header snapshot merged into every request (copy-missing)
        logger: Logger used for execution diagnostics
        request_interceptors: Callables run on the outbound httpx.Request
        response_interceptors: Callables run on the httpx.Response
    """

    def __init__(
        self,
        client: Client | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        logger: LoggerLike | None = None,
        request_interceptors: Iterable[RequestInterceptor] = (),
        response_interceptors: Iterable[ResponseInterceptor] = (),
    ) -> None:
        self._client = client
        self.log: LoggerLike = logger or get_logger("session")
        self._headers: dict[str, str] = {}
        copy_headers(self._headers, headers, overwrite=True)
        self.request_interceptors: tuple[RequestInterceptor, ...] = tuple(request_interceptors)
        self.response_interceptors: tuple[ResponseInterceptor, ...] = tuple(response_interceptors)

        self.url: httpx.URL | None = None
        self.body: RequestBody = None
        self.error: Exception | None = None
        self.state = IDLE

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client()
        return self._client

    @client.setter
    def client(self, client: Client) -> None:
        self._client = client

    @property
    def jar(self) -> Jar | None:
        return self.client.jar

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def http_client(self) -> httpx.Client:
        return self.client.http_client()

    def mutate(self) -> SessionBuilder:
        """Return a SessionBuilder bound to this session."""
        from .builder import SessionBuilder

        return SessionBuilder(self)

    def clone(self) -> Session:
        """
        Copy the header snapshot and pending request fields.

        The root, logger and interceptor chains are shared; the clone starts
        idle whatever state this session is in.
        """
        other = copy.copy(self)
        other._client = self.client
        other._headers = dict(self._headers)
        other.state = IDLE
        return other

    def with_url(self, url: str | httpx.URL) -> Session:
        other = self.clone()
        other.url = None
        other.error = None
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as exc:
            other.error = ConstructionError(f"invalid URL {url!r}: {exc}")
            return other
        if parsed.scheme not in ("http", "https") or not parsed.host:
            other.error = ConstructionError(f"URL needs an http(s) scheme and a host: {url!r}")
            return other
        other.url = parsed
        return other

    def with_headers(self, headers: Mapping[str, str]) -> Session:
        """Replace the header snapshot."""
        other = self.clone()
        other._headers = {}
        copy_headers(other._headers, headers, overwrite=True)
        return other

    def with_header(self, name: str, value: str) -> Session:
        other = self.clone()
        copy_headers(other._headers, [(name, value)], overwrite=True)
        return other

    def with_body(self, body: RequestBody) -> Session:
        other = self.clone()
        other.body = body
        return other

    def request(self, method: str, *, timeout: float | None = None) -> Result:
        """
        Execute the pending request.

        Never raises for request failures: construction, interceptor and
        transport errors are returned on ``Result.error``.
        """
        if self.state != IDLE:
            return Result(error=SessionStateError("session already executed, clone it for a new request"))
        self.state = EXECUTING
        try:
            return self._fetch(method.upper(), timeout)
        finally:
            self.state = COMPLETED

    def head(self, *, timeout: float | None = None) -> Result:
        return self.request("HEAD", timeout=timeout)

    def get(self, *, timeout: float | None = None) -> Result:
        return self.request("GET", timeout=timeout)

    def post(self, *, timeout: float | None = None) -> Result:
        return self.request("POST", timeout=timeout)

    def put(self, *, timeout: float | None = None) -> Result:
        return self.request("PUT", timeout=timeout)

    def patch(self, *, timeout: float | None = None) -> Result:
        return self.request("PATCH", timeout=timeout)

    def delete(self, *, timeout: float | None = None) -> Result:
        return self.request("DELETE", timeout=timeout)

    def options(self, *, timeout: float | None = None) -> Result:
        return self.request("OPTIONS", timeout=timeout)

    def _fetch(self, method: str, timeout: float | None) -> Result:
        log = with_fields(self.log, method=method, url=str(self.url) if self.url else None)
        if self.error is not None:
            log.debug("request not sent", extra={"error": str(self.error)})
            return Result(error=self.error)
        if self.url is None:
            return Result(error=ConstructionError("no URL set"))

        root = self.client
        try:
            request = httpx.Request(method, self.url, content=self.body)
        except (TypeError, ValueError) as exc:
            return Result(error=ConstructionError(f"cannot build {method} request: {exc}"))
        if timeout is not None:
            request.extensions = {**request.extensions, "timeout": httpx.Timeout(timeout).as_dict()}

        try:
            run_request_interceptors(self.request_interceptors, request)
        except InterceptorError as exc:
            log.debug("request interceptor aborted", extra={"error": str(exc)})
            return Result(request=request, error=exc)

        # Interceptors win over the session, the session over root headers and transport defaults.
        copy_headers(request.headers, self._headers, overwrite=False)
        copy_headers(request.headers, root.default_headers(), overwrite=False)

        try:
            response = root.http_client().send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.debug("request failed", extra={"error": str(exc)})
            return Result(request=request, error=_transport_error(exc))

        result = Result(request=request, response=response)
        try:
            result.body = response.read()
        except httpx.HTTPError as exc:
            log.debug("reading response body failed", extra={"error": str(exc)})
            result.error = _transport_error(exc)
            return result
        finally:
            response.close()

        try:
            run_response_interceptors(self.response_interceptors, response)
        except InterceptorError as exc:
            log.debug("response interceptor aborted", extra={"error": str(exc)})
            result.error = exc
            return result

        log.debug("request complete", extra={"status": response.status_code, "bytes": len(result.body)})
        return result

    def __repr__(self) -> str:
        return f"<Session {self.state} {self.url or '-'}>"


def _transport_error(exc: Exception) -> TransportError:
    err = TransportError(f"{type(exc).__name__}: {exc}")
    err.__cause__ = exc
    return err
