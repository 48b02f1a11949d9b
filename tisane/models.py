"""Result of an executed request."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx

from .errors import RequestFailedError


class Result:
    """
    Outcome of one executed request.

    Holds the outbound request, the response, the fully read body and the
    error, any of which may be missing depending on where execution
    stopped. The whole body is read into memory, so this is not meant for
    large downloads.
    """

    def __init__(
        self,
        request: httpx.Request | None = None,
        response: httpx.Response | None = None,
        body: bytes = b"",
        error: Exception | None = None,
    ) -> None:
        self.request = request
        self.response = response
        self.body = body
        self.error = error

    @property
    def status_code(self) -> int:
        if self.response is None:
            return 0
        return self.response.status_code

    @property
    def status(self) -> str:
        if self.response is None:
            return "-"
        return f"{self.response.status_code} {self.response.reason_phrase}".strip()

    @property
    def status_message(self) -> str:
        """``"<status>  <METHOD>  <url>"`` with ``-`` standing in for missing parts."""
        method = self.request.method if self.request is not None else "-"
        url = str(self.request.url) if self.request is not None else "-"
        return f"{self.status}  {method}  {url}"

    @property
    def ok(self) -> bool:
        return self.error is None and self.response is not None and not self.response.is_error

    @property
    def content(self) -> bytes:
        return self.body

    @property
    def text(self) -> str:
        encoding = "utf-8"
        ctype = self.response.headers.get("content-type") if self.response is not None else None
        if ctype and "charset=" in ctype:
            encoding = ctype.split("charset=")[-1].split(";")[0].strip().strip('"') or encoding
        try:
            return self.body.decode(encoding, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")

    def json(self) -> object:
        return json.loads(self.text)

    def history(self) -> list[httpx.Request]:
        """Requests of the redirect chain, most recent first."""
        if self.response is None:
            return []
        requests = [self.response.request]
        for previous in reversed(self.response.history):
            requests.append(previous.request)
        return requests

    def locations(self) -> list[httpx.URL]:
        return [request.url for request in self.history()]

    def dump(self) -> str:
        lines: list[str] = []
        if self.request is not None:
            lines.append(f"{self.request.method} {self.request.url}")
            for name, value in self.request.headers.items():
                lines.append(f"\t{name}: {value}")
        if self.response is not None:
            lines.append(self.response.http_version)
            lines.append(f"{self.status} {self.response.request.url}")
            for name, value in self.response.headers.items():
                lines.append(f"\t{name}: {value}")
        if self.error is not None:
            lines.append(f"ERROR: {self.error}")
        lines.append(f"BODY: {self.text}")
        return "\n" + "\n".join(lines)

    def dump_log(self, logfunc: Callable[..., None], msg: str) -> None:
        """Log the exchange through ``logfunc`` (e.g. ``log.debug``) with the parts as extra fields."""
        logfunc(
            msg,
            extra={
                "request": repr(self.request),
                "response": repr(self.response),
                "body": self.text,
            },
        )

    def raise_for_error(self) -> Result:
        """Raise RequestFailedError for an errored or non-2xx/3xx exchange, else return self."""
        url = str(self.request.url) if self.request is not None else None
        if self.error is not None:
            raise RequestFailedError(self.status, url, str(self.error)) from self.error
        if self.response is None:
            raise RequestFailedError(self.status, url, "no response")
        if self.response.is_error:
            raise RequestFailedError(self.status, url)
        return self

    def __repr__(self) -> str:
        if self.error is not None:
            return f"<Result error={type(self.error).__name__}>"
        return f"<Result [{self.status_code}] {len(self.body)} bytes>"
