"""Pytest configuration and fixtures."""

import httpx
import pytest

from tisane.client import Client
from tisane.cookies import Jar


class CountingStream(httpx.SyncByteStream):
    """Response body stream that records how often it is closed."""

    def __init__(self, chunks, fail_after=None):
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.close_calls = 0

    def __iter__(self):
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise httpx.ReadError("connection dropped")
            yield chunk

    def close(self):
        self.close_calls += 1


def echo(request: httpx.Request) -> httpx.Response:
    """Answer with the request method, path and headers as JSON."""
    return httpx.Response(
        200,
        json={
            "method": request.method,
            "path": request.url.path,
            "headers": dict(request.headers),
            "body": request.content.decode("utf-8", errors="replace"),
        },
    )


@pytest.fixture
def jar():
    """Create a lenient cookie jar."""
    return Jar()


@pytest.fixture
def make_client():
    """Build Clients served by an in-process handler; closed after the test."""
    clients = []

    def factory(handler=echo, **kwargs):
        client = Client(transport=httpx.MockTransport(handler), **kwargs)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def client(make_client):
    """Create a Client answering every request with an echo of it."""
    return make_client()
