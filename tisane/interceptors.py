"""
Request and response interceptors.

An interceptor is a plain callable receiving the outbound ``httpx.Request``
(or the inbound ``httpx.Response``) which it may modify in place. Raising
any exception aborts the remaining chain; the session turns it into an
``InterceptorError`` on the Result.
"""

from __future__ import annotations

import base64
import random
from collections.abc import Callable, Iterable, Mapping

import httpx

from .errors import ContentTypeError, InterceptorError, StatusCodeError, UserAgentError

RequestInterceptor = Callable[[httpx.Request], None]
ResponseInterceptor = Callable[[httpx.Response], None]

USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:133.0) Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (Windows NT 10.0; rv:115.0) Gecko/20100101 Firefox/115.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/101.0.4951.64 Safari/537.36 Edg/101.0.1210.47",
    "Mozilla/5.0 (Linux; Android 14; Pixel 7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
)


def _run(chain: Iterable[Callable], target: object, stage: str) -> None:
    for handler in chain:
        try:
            handler(target)
        except InterceptorError as exc:
            if exc.stage is None:
                exc.stage = stage
            raise
        except Exception as exc:
            name = getattr(handler, "__name__", type(handler).__name__)
            raise InterceptorError(f"{stage} interceptor {name} failed: {exc}", stage=stage) from exc


def run_request_interceptors(
    chain: Iterable[RequestInterceptor], request: httpx.Request
) -> None:
    """Run ``chain`` in order; the first failure raises InterceptorError."""
    _run(chain, request, "request")


def run_response_interceptors(
    chain: Iterable[ResponseInterceptor], response: httpx.Response
) -> None:
    """Run ``chain`` in order; the first failure raises InterceptorError."""
    _run(chain, response, "response")


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def set_random_user_agent(request: httpx.Request) -> None:
    """Rotate the User-Agent header through a pool of browser user agents."""
    request.headers["User-Agent"] = random_user_agent()


def user_agent(value: str | Callable[[], str]) -> RequestInterceptor:
    """Set a fixed User-Agent, or one produced per request by ``value()``."""

    def set_user_agent(request: httpx.Request) -> None:
        agent = value() if callable(value) else value
        if not agent or not agent.strip() or "\n" in agent or "\r" in agent:
            raise UserAgentError(agent or "")
        request.headers["User-Agent"] = agent

    return set_user_agent


def set_headers(headers: Mapping[str, str]) -> RequestInterceptor:
    """Overwrite ``headers`` on every request."""
    fixed = dict(headers)

    def apply_headers(request: httpx.Request) -> None:
        for name, value in fixed.items():
            request.headers[name] = value

    return apply_headers


def basic_auth(username: str, password: str) -> RequestInterceptor:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")

    def authorize(request: httpx.Request) -> None:
        request.headers["Authorization"] = f"Basic {token}"

    return authorize


def bearer_token(token: str | Callable[[], str]) -> RequestInterceptor:
    def authorize(request: httpx.Request) -> None:
        value = token() if callable(token) else token
        request.headers["Authorization"] = f"Bearer {value}"

    return authorize


def require_status(*codes: int) -> ResponseInterceptor:
    """Fail unless the status is one of ``codes`` (any 2xx when none are given)."""

    def check_status(response: httpx.Response) -> None:
        if codes:
            if response.status_code not in codes:
                raise StatusCodeError(response.status_code, tuple(codes))
        elif not response.is_success:
            raise StatusCodeError(response.status_code)

    return check_status


def require_content_type(*content_types: str) -> ResponseInterceptor:
    """Fail unless the response media type is one of ``content_types``."""
    wanted = tuple(ct.lower() for ct in content_types)

    def check_content_type(response: httpx.Response) -> None:
        raw = response.headers.get("content-type", "")
        media_type = raw.split(";")[0].strip().lower()
        if media_type not in wanted:
            raise ContentTypeError(raw, wanted)

    return check_content_type
