"""Header helpers shared by sessions, options and the cookie jar."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping

_LINE_BREAKS = str.maketrans("", "", "\r\n\x00")


def sanitize_header(name: str, value: str) -> tuple[str, str]:
    """Drop CR, LF and NUL so a header pair cannot split the header block."""
    return name.translate(_LINE_BREAKS), value.translate(_LINE_BREAKS)


def _find(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key in headers:
        if key.lower() == lowered:
            return key
    return None


def copy_headers(
    dst: MutableMapping[str, str],
    src: Mapping[str, str] | Iterable[tuple[str, str]] | None,
    overwrite: bool,
) -> MutableMapping[str, str]:
    """
    Copy ``src`` headers into ``dst`` comparing names case-insensitively.

    With ``overwrite`` an existing header is replaced; without it only
    headers missing from ``dst`` are filled in. Works on plain dicts and on
    ``httpx.Headers`` alike.
    """
    if not src:
        return dst
    items = src.items() if isinstance(src, Mapping) else src
    for name, value in items:
        name, value = sanitize_header(name, value)
        existing = _find(dst, name)
        if existing is None:
            dst[name] = value
        elif overwrite:
            del dst[existing]
            dst[name] = value
    return dst


def has_header(headers: Mapping[str, str], name: str) -> bool:
    return _find(headers, name) is not None


def cookie_header(pairs: Iterable[tuple[str, str]]) -> str | None:
    """Render ``name=value`` pairs as a Cookie header value."""
    rendered = "; ".join(f"{name}={value}" for name, value in pairs)
    return rendered or None
