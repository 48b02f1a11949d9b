"""
Cookie storage tolerant of non-conforming cookie names.

The standard library store (like most strict stores) only accepts cookie
names that are RFC 6265 tokens, yet plenty of real servers hand out names
with spaces, brackets or other separators. Those cookies still have to be
sent back for the server to work. In lenient mode the Jar stores every
cookie under a generated token name and maps it back to the original name
when cookies are read, so the underlying store never sees a name it would
reject.

Neither ``set_cookies`` nor ``cookies`` raises for bad input. Malformed
targets are logged and passed to the jar's error handler.
"""

from __future__ import annotations

import queue
import re
import threading
import time
import urllib.request
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from http.cookiejar import Cookie, CookieJar, DefaultCookiePolicy, parse_ns_headers

import httpx

from .errors import JarInputError
from .headers import cookie_header, has_header
from .log import LoggerLike, get_logger

# RFC 6265 cookie-name is an RFC 2616 token: no CTLs, whitespace or separators.
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

ErrorHandler = Callable[[Exception], bool]


def is_valid_cookie_name(name: str) -> bool:
    return bool(name) and _TOKEN_RE.match(name) is not None


def _new_token() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class CookieRecord:
    """A single cookie as handed to and returned from the Jar."""

    name: str
    value: str
    domain: str | None = None
    path: str | None = None
    expires: int | None = None
    secure: bool = False
    http_only: bool = False
    same_site: str | None = None

    def renamed(self, name: str) -> CookieRecord:
        return replace(self, name=name)

    def to_cookie(self, host: str, default_path: str) -> Cookie:
        domain_specified = bool(self.domain) and self.domain.lstrip(".") != ""
        if domain_specified:
            domain = "." + self.domain.lstrip(".").lower()
        else:
            domain = host.lower()
        rest: dict[str, str | None] = {}
        if self.http_only:
            rest["HttpOnly"] = None
        if self.same_site:
            rest["SameSite"] = self.same_site
        return Cookie(
            version=0,
            name=self.name,
            value=self.value,
            port=None,
            port_specified=False,
            domain=domain,
            domain_specified=domain_specified,
            domain_initial_dot=domain_specified,
            path=self.path or default_path,
            path_specified=bool(self.path),
            secure=self.secure,
            expires=self.expires,
            discard=self.expires is None,
            comment=None,
            comment_url=None,
            rest=rest,
        )

    @classmethod
    def from_cookie(cls, cookie: Cookie) -> CookieRecord:
        return cls(
            name=cookie.name,
            value=cookie.value or "",
            domain=cookie.domain if cookie.domain_specified else None,
            path=cookie.path,
            expires=cookie.expires,
            secure=cookie.secure,
            http_only=cookie.has_nonstandard_attr("HttpOnly"),
            same_site=cookie.get_nonstandard_attr("SameSite"),
        )


def parse_set_cookie(header: str, now: float | None = None) -> CookieRecord | None:
    """
    Parse one Set-Cookie header value without validating the cookie name.

    Returns None when the header carries no ``name=value`` pair.
    """
    parsed = parse_ns_headers([header])
    if not parsed:
        return None
    pairs = parsed[0]
    name, value = pairs[0]
    if value is None:
        return None
    if len(value) > 1 and value.startswith('"') and value.endswith('"'):
        value = value[1:-1]

    attrs: dict[str, str | int | None] = {}
    for key, val in pairs[1:]:
        attrs[key.lower()] = val

    expires = attrs.get("expires")
    max_age = attrs.get("max-age")
    if max_age is not None:
        try:
            expires = int(now if now is not None else time.time()) + int(max_age)
        except ValueError:
            pass

    return CookieRecord(
        name=name,
        value=value,
        domain=attrs.get("domain") or None,
        path=attrs.get("path") or None,
        expires=int(expires) if isinstance(expires, (int, float)) else None,
        secure="secure" in attrs,
        http_only="httponly" in attrs,
        same_site=attrs.get("samesite") or None,
    )


def default_cookie_path(path: str) -> str:
    # RFC 6265 5.1.4
    if not path or not path.startswith("/") or path.count("/") == 1:
        return "/"
    return path[: path.rfind("/")]


class TokenNamePolicy(DefaultCookiePolicy):
    """Cookie policy that refuses names which are not RFC 6265 tokens."""

    def set_ok(self, cookie: Cookie, request) -> bool:
        if not is_valid_cookie_name(cookie.name):
            return False
        return super().set_ok(cookie, request)


class NameMapping:
    """
    Bijection between original cookie names and opaque token names.

    A name keeps its token for the lifetime of the mapping and no two names
    ever share a token.
    """

    def __init__(self, token_factory: Callable[[], str] | None = None) -> None:
        self._tokens: dict[str, str] = {}
        self._names: dict[str, str] = {}
        self._new_token = token_factory or _new_token
        self._lock = threading.Lock()

    def token_for(self, name: str) -> str:
        """Return the token for ``name``, assigning a new one on first sight."""
        with self._lock:
            token = self._tokens.get(name)
            if token is not None:
                return token
            token = self._new_token()
            while token in self._names or not is_valid_cookie_name(token):
                token = self._new_token()
            self._tokens[name] = token
            self._names[token] = name
            return token

    def token(self, name: str) -> str | None:
        with self._lock:
            return self._tokens.get(name)

    def original(self, token: str) -> str | None:
        with self._lock:
            return self._names.get(token)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tokens

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __repr__(self) -> str:
        return f"<NameMapping {len(self)} names>"


JarOption = Callable[["Jar"], None]


def with_logger(log: LoggerLike) -> JarOption:
    def option(jar: Jar) -> None:
        jar.log = log

    return option


def with_store(store: CookieJar) -> JarOption:
    def option(jar: Jar) -> None:
        jar.store = store

    return option


def strict(jar: Jar) -> None:
    jar.strict = True


def handle_errors(handler: ErrorHandler) -> JarOption:
    def option(jar: Jar) -> None:
        jar.error_handler = handler

    return option


def collect_errors(errors: queue.SimpleQueue) -> JarOption:
    def option(jar: Jar) -> None:
        jar.errors = errors

    return option


def new_store() -> CookieJar:
    try:
        return CookieJar(policy=TokenNamePolicy())
    except Exception as exc:  # pragma: no cover
        raise RuntimeError(f"cookie store construction must not fail: {exc}") from exc


class Jar:
    """
    Scheme and host scoped cookie jar wrapping an ``http.cookiejar.CookieJar``.

    Args:
        *options: Jar options (with_logger, with_store, strict, handle_errors,
            collect_errors) applied in order.
    """

    def __init__(self, *options: JarOption) -> None:
        self.strict = False
        self.log: LoggerLike | None = None
        self.store: CookieJar | None = None
        self.error_handler: ErrorHandler | None = None
        self.errors: queue.SimpleQueue | None = None
        self.names = NameMapping()

        for option in options:
            option(self)

        if self.log is None:
            self.log = get_logger("cookies")
        else:
            self.log.debug("cookie jar using provided logger")
        if self.error_handler is None:
            self.error_handler = self._default_error_handler
        if self.store is None:
            self.store = new_store()
            self.log.debug("new cookie store created")

    def _default_error_handler(self, err: Exception) -> bool:
        if self.errors is not None:
            self.errors.put(err)
        return True

    def _report(self, err: Exception) -> None:
        self.log.error(str(err))
        # False escalates: the error goes to the queue, nothing is raised.
        if not self.error_handler(err) and self.errors is not None:
            self.errors.put(err)

    @staticmethod
    def _parse_target(target: str | httpx.URL | None) -> httpx.URL | None:
        if target is None:
            return None
        try:
            return httpx.URL(target)
        except (httpx.InvalidURL, TypeError):
            return None

    def set_cookies(
        self, target: str | httpx.URL | None, cookies: Iterable[CookieRecord]
    ) -> None:
        """Store ``cookies`` as received from ``target``."""
        records = list(cookies or [])
        url = self._parse_target(target)
        if url is None or not url.scheme or not url.host:
            self._report(JarInputError(f"empty input: {target!r} {records!r}"))
            return

        if not self.strict:
            records = [record.renamed(self.names.token_for(record.name)) for record in records]
        if not records:
            self.log.debug("no cookies to set", extra={"host": url.host})
            return

        request = urllib.request.Request(str(url))
        path = default_cookie_path(url.path)
        now = time.time()
        for record in records:
            cookie = record.to_cookie(url.host, path)
            if cookie.expires is not None and cookie.expires <= now:
                self._expire(cookie)
                continue
            self.store.set_cookie_if_ok(cookie, request)

    def _expire(self, cookie: Cookie) -> None:
        try:
            self.store.clear(cookie.domain, cookie.path, cookie.name)
        except KeyError:
            pass

    def cookies(self, target: str | httpx.URL | None) -> list[CookieRecord]:
        """Return the cookies to send to ``target``'s scheme and host under their original names."""
        url = self._parse_target(target)
        if url is None or not url.scheme or not url.host:
            self.log.error("cookie lookup needs a scheme and host", extra={"target": str(target)})
            return []

        host = url.host.lower()
        now = time.time()
        found: list[CookieRecord] = []
        for cookie in list(self.store):
            if not _cookie_matches(cookie, url.scheme, host, now):
                continue
            record = CookieRecord.from_cookie(cookie)
            original = self.names.original(record.name)
            if original is not None:
                record = record.renamed(original)
            found.append(record)

        if not found:
            # Usually means the store dropped the cookies when they were set.
            self.log.debug(
                "no cookies found",
                extra={"scheme": url.scheme, "host": host, "strict": self.strict},
            )
        return found

    def attach_cookies(self, request: httpx.Request) -> None:
        """httpx request hook: add a Cookie header unless the request already has one."""
        if has_header(request.headers, "Cookie"):
            return
        value = cookie_header((c.name, c.value) for c in self.cookies(request.url))
        if value:
            request.headers["Cookie"] = value

    def extract_cookies(self, response: httpx.Response) -> None:
        """httpx response hook: store every Set-Cookie header of ``response``."""
        headers = response.headers.get_list("set-cookie")
        if not headers:
            return
        now = time.time()
        records = []
        for header in headers:
            record = parse_set_cookie(header, now)
            if record is not None:
                records.append(record)
        self.set_cookies(response.request.url, records)

    def clear(self) -> None:
        self.store.clear()

    def __len__(self) -> int:
        return len(self.store)

    def __repr__(self) -> str:
        mode = "strict" if self.strict else "lenient"
        return f"<Jar {mode} {len(self)} cookies>"


def _cookie_matches(cookie: Cookie, scheme: str, host: str, now: float) -> bool:
    if cookie.secure and scheme != "https":
        return False
    if cookie.is_expired(now):
        return False
    domain = cookie.domain.lstrip(".").lower()
    if cookie.domain_specified:
        return host == domain or host.endswith("." + domain)
    return host == domain


class JarBuilder:
    """
    Fluent Jar construction. Each ``new()`` call returns a separate Jar.

    Example:
        jar = JarBuilder().logger(log).strict().new()
    """

    def __init__(self) -> None:
        self._options: list[JarOption] = []

    def logger(self, log: LoggerLike) -> JarBuilder:
        self._options.append(with_logger(log))
        return self

    def store(self, store: CookieJar) -> JarBuilder:
        self._options.append(with_store(store))
        return self

    def strict(self) -> JarBuilder:
        self._options.append(strict)
        return self

    def handle_errors(self, handler: ErrorHandler) -> JarBuilder:
        self._options.append(handle_errors(handler))
        return self

    def errors(self, errors: queue.SimpleQueue) -> JarBuilder:
        self._options.append(collect_errors(errors))
        return self

    def new(self) -> Jar:
        return Jar(*self._options)
