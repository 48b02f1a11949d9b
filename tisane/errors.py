from __future__ import annotations


class TisaneError(Exception):
    """Base error for Tisane."""


class ConstructionError(TisaneError):
    """Raised when a request cannot be built (bad or missing URL)."""


class SessionStateError(ConstructionError):
    """Raised when a completed Session is executed a second time."""


class TransportError(TisaneError):
    """Raised when the network, connection or TLS layer fails a request."""


class InterceptorError(TisaneError):
    """Raised when a request or response interceptor aborts the pipeline."""

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class StatusCodeError(InterceptorError):
    """Raised for an unexpected HTTP status code."""

    def __init__(self, status_code: int, expected: tuple[int, ...] = ()) -> None:
        self.status_code = status_code
        self.expected = expected
        if not expected:
            msg = f"unexpected HTTP status code: '{status_code}'"
        else:
            wanted = ", ".join(str(code) for code in expected)
            msg = f"unexpected HTTP status code: '{status_code}' (expected '{wanted}')"
        super().__init__(msg, stage="response")


class ContentTypeError(InterceptorError):
    """Raised for an unsupported response content type."""

    def __init__(self, content_type: str, expected: tuple[str, ...] = ()) -> None:
        self.content_type = content_type
        self.expected = expected
        if not expected:
            msg = f"unsupported HTTP content type: '{content_type}'"
        else:
            msg = (
                f"unsupported HTTP content type: '{content_type}' "
                f"(expected '{', '.join(expected)}')"
            )
        super().__init__(msg, stage="response")


class UserAgentError(InterceptorError):
    """Raised when an empty or malformed User-Agent is supplied."""

    def __init__(self, user_agent: str) -> None:
        self.user_agent = user_agent
        super().__init__(f"invalid user agent: '{user_agent}'", stage="request")


class RequestFailedError(TisaneError):
    """Raised by Result.raise_for_error() for a failed exchange."""

    def __init__(self, status: str, url: str | None = None, reason: str = "") -> None:
        self.status = status
        self.url = url
        self.reason = reason
        parts = [status]
        if url:
            parts.append(url)
        if reason:
            parts.append(reason)
        super().__init__(" ".join(parts))


class JarInputError(TisaneError):
    """Malformed target URL given to the cookie jar. Routed to the jar's error handler, never raised."""


class CookieError(TisaneError):
    """Raised when cookies cannot be loaded."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or "Unexpected cookie error")


class NoCookiesFoundError(CookieError):
    """Raised when a cookie loader finds nothing for the requested hosts."""

    def __init__(self, hosts: list[str] | tuple[str, ...] | None = None) -> None:
        self.hosts = list(hosts or [])
        if not self.hosts:
            super().__init__("No cookies found")
        else:
            super().__init__(f"No cookies found for: {self.hosts}")


class NilCookieJarError(CookieError):
    """Raised when a cookie loader has no jar to load into."""

    def __init__(self) -> None:
        super().__init__("Nil cookie jar value")


class ConfigValidationError(TisaneError, ValueError):
    """Raised eagerly for invalid configuration values."""


class InvalidLogLevelError(ConfigValidationError):
    """Raised for an unrecognized log level."""

    def __init__(self, value: str, choices: tuple[str, ...] = ()) -> None:
        self.value = value
        super().__init__(
            f"invalid log level '{value}' expected one of: {', '.join(choices)}"
        )


class InvalidLogFormatError(ConfigValidationError):
    """Raised for an unrecognized log format."""

    def __init__(self, value: str, choices: tuple[str, ...] = ()) -> None:
        self.value = value
        super().__init__(
            f"invalid log format '{value}' expected one of: {', '.join(choices)}"
        )


class MissingFieldError(ConfigValidationError):
    """Raised when a required configuration field is empty."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(
            f"Found empty value where non-empty value expected: `{field}`"
        )
