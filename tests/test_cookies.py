"""Tests for tisane.cookies module."""

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from http.cookiejar import CookieJar

import httpx
import pytest

from tisane.cookies import (
    CookieRecord,
    Jar,
    JarBuilder,
    NameMapping,
    collect_errors,
    default_cookie_path,
    handle_errors,
    is_valid_cookie_name,
    parse_set_cookie,
    strict,
    with_logger,
    with_store,
)
from tisane.errors import JarInputError


class TestCookieNames:
    """Tests for cookie-name validation."""

    def test_token_names_are_valid(self):
        assert is_valid_cookie_name("session")
        assert is_valid_cookie_name("__Host-id")
        assert is_valid_cookie_name("a.b_c~d")

    def test_separators_are_invalid(self):
        assert not is_valid_cookie_name("bad name")
        assert not is_valid_cookie_name("a[0]")
        assert not is_valid_cookie_name("x;y")
        assert not is_valid_cookie_name("")


class TestNameMapping:
    """Tests for the original-name to token bijection."""

    def test_token_is_stable(self):
        """Test the same name always maps to the same token."""
        names = NameMapping()
        first = names.token_for("bad name")
        assert names.token_for("bad name") == first
        assert len(names) == 1

    def test_distinct_names_get_distinct_tokens(self):
        names = NameMapping()
        tokens = {names.token_for(f"name {i}") for i in range(50)}
        assert len(tokens) == 50

    def test_reverse_lookup(self):
        names = NameMapping()
        token = names.token_for("a[0]")
        assert names.original(token) == "a[0]"
        assert names.token("a[0]") == token
        assert "a[0]" in names

    def test_unknown_lookups_return_none(self):
        names = NameMapping()
        assert names.original("nope") is None
        assert names.token("nope") is None
        assert "nope" not in names

    def test_tokens_are_valid_cookie_names(self):
        names = NameMapping()
        assert is_valid_cookie_name(names.token_for("spaces and ; semicolons"))

    def test_concurrent_assignment_keeps_bijection(self):
        """Test threads assigning overlapping names all see one token per name."""
        names = NameMapping()
        wanted = [f"name {i % 20}" for i in range(200)]
        barrier = threading.Barrier(8, timeout=5)

        def assign(_):
            barrier.wait()
            return [names.token_for(name) for name in wanted]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(assign, range(8)))

        assert all(tokens == results[0] for tokens in results)
        assert len(names) == 20
        assert len(set(results[0])) == 20
        for name, token in zip(wanted, results[0]):
            assert names.original(token) == name
            assert names.token(name) == token

    def test_colliding_token_is_regenerated(self):
        """Test a factory handing out a used token does not break the bijection."""
        tokens = iter(["tok1", "tok1", "tok2"])
        names = NameMapping(token_factory=lambda: next(tokens))

        assert names.token_for("first") == "tok1"
        assert names.token_for("second") == "tok2"
        assert names.original("tok1") == "first"
        assert names.original("tok2") == "second"


class TestParseSetCookie:
    """Tests for lenient Set-Cookie parsing."""

    def test_simple_pair(self):
        record = parse_set_cookie("session=abc123")
        assert record.name == "session"
        assert record.value == "abc123"
        assert record.domain is None
        assert record.expires is None

    def test_non_token_name_survives(self):
        record = parse_set_cookie("bad name=v; Path=/")
        assert record.name == "bad name"
        assert record.path == "/"

    def test_attributes(self):
        record = parse_set_cookie(
            "id=1; Domain=example.com; Path=/app; Secure; HttpOnly; SameSite=Lax"
        )
        assert record.domain == "example.com"
        assert record.path == "/app"
        assert record.secure
        assert record.http_only
        assert record.same_site == "Lax"

    def test_max_age_overrides_expires(self):
        record = parse_set_cookie(
            "id=1; Expires=Wed, 09 Jun 2021 10:18:14 GMT; Max-Age=60", now=1000
        )
        assert record.expires == 1060

    def test_quoted_value_is_unquoted(self):
        assert parse_set_cookie('id="abc"').value == "abc"

    def test_no_value_returns_none(self):
        assert parse_set_cookie("justaname") is None


class TestDefaultCookiePath:
    """Tests for the RFC 6265 default path."""

    def test_root_paths(self):
        assert default_cookie_path("") == "/"
        assert default_cookie_path("/") == "/"
        assert default_cookie_path("/login") == "/"

    def test_nested_path(self):
        assert default_cookie_path("/app/login") == "/app"


class TestJar:
    """Tests for the Jar."""

    def test_round_trip_valid_name(self, jar):
        """Test a token-named cookie comes back unchanged."""
        jar.set_cookies("https://example.com", [CookieRecord("valid_name", "v1")])

        cookies = jar.cookies("https://example.com")
        assert len(cookies) == 1
        assert cookies[0].name == "valid_name"
        assert cookies[0].value == "v1"

    def test_round_trip_non_token_name(self, jar):
        """Test a cookie name with a space survives in lenient mode."""
        jar.set_cookies("https://example.com", [CookieRecord("bad name", "v2")])

        cookies = jar.cookies("https://example.com")
        assert [(c.name, c.value) for c in cookies] == [("bad name", "v2")]

    def test_store_only_sees_tokens(self, jar):
        jar.set_cookies("https://example.com", [CookieRecord("bad name", "v")])
        stored = [cookie.name for cookie in jar.store]
        assert stored == [jar.names.token("bad name")]

    def test_repeated_set_overwrites(self, jar):
        jar.set_cookies("https://example.com", [CookieRecord("a b", "old")])
        jar.set_cookies("https://example.com", [CookieRecord("a b", "new")])

        cookies = jar.cookies("https://example.com")
        assert [(c.name, c.value) for c in cookies] == [("a b", "new")]
        assert len(jar.names) == 1

    def test_caller_records_not_mutated(self, jar):
        record = CookieRecord("bad name", "v")
        jar.set_cookies("https://example.com", [record])
        assert record.name == "bad name"

    def test_host_scoped(self, jar):
        jar.set_cookies("https://example.com", [CookieRecord("a", "1")])
        jar.set_cookies("https://other.com", [CookieRecord("b", "2")])

        assert [c.name for c in jar.cookies("https://example.com")] == ["a"]
        assert [c.name for c in jar.cookies("https://other.com")] == ["b"]
        assert jar.cookies("https://unknown.com") == []

    def test_lookup_ignores_path(self, jar):
        jar.set_cookies("https://example.com/app/login", [CookieRecord("a", "1", path="/app")])
        assert [c.name for c in jar.cookies("https://example.com/")] == ["a"]

    def test_domain_cookie_matches_subdomain(self, jar):
        jar.set_cookies("https://example.com", [CookieRecord("a", "1", domain="example.com")])
        assert [c.name for c in jar.cookies("https://www.example.com")] == ["a"]

    def test_host_only_cookie_does_not_match_subdomain(self, jar):
        jar.set_cookies("https://example.com", [CookieRecord("a", "1")])
        assert jar.cookies("https://www.example.com") == []

    def test_secure_cookie_needs_https(self, jar):
        jar.set_cookies("https://example.com", [CookieRecord("a", "1", secure=True)])
        assert jar.cookies("http://example.com") == []
        assert len(jar.cookies("https://example.com")) == 1

    def test_expired_cookie_removes_existing(self, jar):
        jar.set_cookies("https://example.com", [CookieRecord("a", "1")])
        jar.set_cookies("https://example.com", [CookieRecord("a", "", expires=int(time.time()) - 10)])
        assert jar.cookies("https://example.com") == []

    def test_missing_host_reports_one_error(self):
        """Test a target without a host reaches the error handler exactly once."""
        seen = []

        def handler(err):
            seen.append(err)
            return True

        jar = Jar(handle_errors(handler))
        jar.set_cookies("https://", [CookieRecord("a", "1")])

        assert len(seen) == 1
        assert isinstance(seen[0], JarInputError)
        assert len(jar) == 0

    def test_missing_scheme_is_rejected(self, jar):
        jar.set_cookies("example.com", [CookieRecord("a", "1")])
        assert len(jar) == 0

    def test_none_target_is_rejected(self, jar):
        jar.set_cookies(None, [CookieRecord("a", "1")])
        assert len(jar) == 0

    def test_handler_false_escalates_to_queue(self):
        errors = queue.SimpleQueue()
        jar = Jar(handle_errors(lambda err: False), collect_errors(errors))

        jar.set_cookies("", [CookieRecord("a", "1")])

        assert isinstance(errors.get_nowait(), JarInputError)
        assert errors.empty()

    def test_default_handler_forwards_to_queue(self):
        errors = queue.SimpleQueue()
        jar = Jar(collect_errors(errors))
        jar.set_cookies("https://", [])
        assert isinstance(errors.get_nowait(), JarInputError)

    def test_cookies_with_bad_target_returns_empty(self, jar):
        assert jar.cookies("not a url") == []
        assert jar.cookies(None) == []

    def test_empty_records_log_debug(self, caplog):
        jar = Jar()
        with caplog.at_level(logging.DEBUG, logger="tisane"):
            jar.set_cookies("https://example.com", [])
        assert "no cookies to set" in caplog.text

    def test_miss_logs_debug(self, caplog):
        jar = Jar()
        with caplog.at_level(logging.DEBUG, logger="tisane"):
            assert jar.cookies("https://example.com") == []
        assert "no cookies found" in caplog.text

    def test_repr(self, jar):
        assert repr(jar) == "<Jar lenient 0 cookies>"


class TestStrictJar:
    """Tests for strict mode."""

    def test_non_token_name_dropped(self):
        jar = Jar(strict)
        jar.set_cookies(
            "https://example.com",
            [CookieRecord("bad name", "x"), CookieRecord("good", "y")],
        )

        cookies = jar.cookies("https://example.com")
        assert [(c.name, c.value) for c in cookies] == [("good", "y")]
        assert len(jar.names) == 0

    def test_repr(self):
        assert repr(Jar(strict)).startswith("<Jar strict")


class TestJarHooks:
    """Tests for the httpx hook methods."""

    def test_attach_cookies(self, jar):
        jar.set_cookies("https://example.com", [CookieRecord("a b", "1")])
        request = httpx.Request("GET", "https://example.com/x")

        jar.attach_cookies(request)

        assert request.headers["Cookie"] == "a b=1"

    def test_attach_keeps_existing_cookie_header(self, jar):
        jar.set_cookies("https://example.com", [CookieRecord("a", "1")])
        request = httpx.Request("GET", "https://example.com/", headers={"Cookie": "mine=1"})

        jar.attach_cookies(request)

        assert request.headers["Cookie"] == "mine=1"

    def test_attach_without_cookies_adds_nothing(self, jar):
        request = httpx.Request("GET", "https://example.com/")
        jar.attach_cookies(request)
        assert "Cookie" not in request.headers

    def test_extract_cookies(self, jar):
        request = httpx.Request("GET", "https://example.com/login")
        response = httpx.Response(
            200,
            headers=[("Set-Cookie", "weird name=1"), ("Set-Cookie", "plain=2; Path=/")],
            request=request,
        )

        jar.extract_cookies(response)

        values = {c.name: c.value for c in jar.cookies("https://example.com/")}
        assert values == {"weird name": "1", "plain": "2"}


class TestJarBuilder:
    """Tests for fluent jar construction."""

    def test_builds_independent_jars(self):
        builder = JarBuilder()
        assert builder.new() is not builder.new()

    def test_options_applied(self):
        log = logging.getLogger("test.jar")
        store = CookieJar()
        errors = queue.SimpleQueue()

        jar = JarBuilder().logger(log).store(store).strict().errors(errors).new()

        assert jar.log is log
        assert jar.store is store
        assert jar.strict
        assert jar.errors is errors

    def test_custom_handler(self):
        seen = []
        jar = JarBuilder().handle_errors(lambda err: seen.append(err) or True).new()
        jar.set_cookies("", [])
        assert len(seen) == 1

    def test_option_functions(self):
        store = CookieJar()
        log = logging.getLogger("test.jar")
        jar = Jar(with_store(store), with_logger(log))
        assert jar.store is store
        assert jar.log is log

    def test_default_store_created(self):
        jar = Jar()
        assert isinstance(jar.store, CookieJar)


@pytest.mark.parametrize(
    "target",
    ["https://example.com", httpx.URL("https://example.com/path?q=1")],
)
def test_accepts_str_and_url_targets(jar, target):
    jar.set_cookies(target, [CookieRecord("k", "v")])
    assert [c.name for c in jar.cookies(target)] == ["k"]
