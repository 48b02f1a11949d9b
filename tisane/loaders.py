"""
Importers pushing persisted browser cookies into a Jar.
"""

from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Protocol

from .cookies import CookieRecord, Jar
from .errors import CookieError, MissingFieldError, NilCookieJarError, NoCookiesFoundError
from .log import LoggerLike, get_logger

# Firefox nsICookie sameSite values.
_SAME_SITE = {0: "None", 1: "Lax", 2: "Strict"}

# Expiry values this large are milliseconds (newer Firefox releases).
_MS_EXPIRY_THRESHOLD = 10**11


class CookieLoader(Protocol):
    @property
    def jar(self) -> Jar | None: ...

    def set_jar(self, jar: Jar) -> CookieLoader: ...

    def to_jar(self, jar: Jar, *keys: str) -> None: ...

    def load(self, *hosts: str) -> None: ...


def _location(host: str, secure: bool) -> str:
    return f"{'https' if secure else 'http'}://{host.lstrip('.')}"


class FirefoxCookieLoader:
    """
    Load cookies from a Firefox profile's ``cookies.sqlite``.

    The database is opened read-only and immutable, so a running browser
    holding the file is not disturbed.

    Args:
        jar: Jar receiving the cookies
        data_path: Firefox data directory (the one holding ``Profiles``)
        profile: Profile directory name under ``Profiles``
        logger: Logger for load diagnostics
    """

    table = "moz_cookies"

    def __init__(
        self,
        jar: Jar | None = None,
        *,
        data_path: str | Path | None = None,
        profile: str | None = None,
        logger: LoggerLike | None = None,
    ) -> None:
        self._jar = jar
        self.data_path = data_path
        self.profile = profile
        self.log = logger or get_logger("loaders")

    @property
    def jar(self) -> Jar | None:
        return self._jar

    def set_jar(self, jar: Jar) -> FirefoxCookieLoader:
        self._jar = jar
        return self

    def to_jar(self, jar: Jar, *keys: str) -> None:
        """Copy the loaded cookies for each URL in ``keys`` into ``jar``."""
        if self._jar is None:
            raise NilCookieJarError()
        for key in keys:
            jar.set_cookies(key, self._jar.cookies(key))

    def database_path(self) -> Path:
        if not self.data_path:
            raise MissingFieldError("data_path")
        if not self.profile:
            raise MissingFieldError("profile")
        return Path(self.data_path) / "Profiles" / self.profile / "cookies.sqlite"

    def _query(self, path: Path, hosts: list[str]) -> list[sqlite3.Row]:
        sql = (
            "SELECT name, value, host, path, expiry, isSecure, isHttpOnly, sameSite "
            f"FROM {self.table}"
        )
        if hosts:
            sql += f" WHERE host IN ({', '.join('?' for _ in hosts)})"
        uri = path.resolve().as_uri() + "?immutable=1"
        try:
            with closing(sqlite3.connect(uri, uri=True)) as conn:
                conn.row_factory = sqlite3.Row
                return conn.execute(sql, hosts).fetchall()
        except sqlite3.Error as exc:
            raise CookieError(f"reading {path}: {exc}") from exc

    def load(self, *hosts: str) -> None:
        """
        Read cookies for ``hosts`` (all hosts when none are given) into the jar.

        Raises:
            MissingFieldError: data_path or profile not set
            NilCookieJarError: No jar to load into
            NoCookiesFoundError: The database holds no cookies for ``hosts``
            CookieError: Unreadable database or a cookie without a host
        """
        path = self.database_path()
        if self._jar is None:
            raise NilCookieJarError()
        if not path.is_file():
            raise CookieError(f"cookie database not found: {path}")

        wanted = [host.strip() for host in hosts if host and host.strip()]
        self.log.debug("loading Firefox cookies", extra={"path": str(path), "hosts": wanted})
        rows = self._query(path, wanted)
        if not rows:
            raise NoCookiesFoundError(wanted)
        self.log.debug("%d cookies found", len(rows))

        grouped: dict[tuple[str, bool], list[CookieRecord]] = {}
        for row in rows:
            host = row["host"]
            if not host:
                raise CookieError(f"no host on cookie: {row['name']!r}")
            grouped.setdefault((host, bool(row["isSecure"])), []).append(_record(row))

        for (host, secure), records in grouped.items():
            location = _location(host, secure)
            self._jar.set_cookies(location, records)
            if not self._jar.cookies(location):
                raise CookieError(f"empty cookie jar after setting {host!r}: {len(records)} cookies")
        self.log.debug("cookie jar loaded", extra={"hosts": len(grouped), "cookies": len(rows)})


def _record(row: sqlite3.Row) -> CookieRecord:
    host = row["host"]
    expiry = row["expiry"]
    if expiry and expiry > _MS_EXPIRY_THRESHOLD:
        expiry //= 1000
    return CookieRecord(
        name=row["name"],
        value=row["value"] or "",
        domain=host if host.startswith(".") else None,
        path=row["path"] or "/",
        expires=int(expiry) if expiry else None,
        secure=bool(row["isSecure"]),
        http_only=bool(row["isHttpOnly"]),
        same_site=_SAME_SITE.get(row["sameSite"]),
    )
