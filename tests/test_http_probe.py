"""Tests for the HTTP probe (inetmon.http_probe) against a local aiohttp server."""
import asyncio
import time

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from unittest.mock import patch

from inetmon.http_probe import is_success_status, run_http_probe


def make_app(release: asyncio.Event) -> web.Application:
    async def ok(request):
        return web.Response(text="x" * 100_000)

    async def redirect(request):
        raise web.HTTPFound("/elsewhere")

    async def unavailable(request):
        return web.Response(status=503)

    async def user_agent(request):
        if request.headers.get("User-Agent") == "inetmon-test":
            return web.Response(text="ok")
        return web.Response(status=403)

    async def hang(request):
        await release.wait()
        return web.Response(text="late")

    app = web.Application()
    app.router.add_get("/ok", ok)
    app.router.add_get("/redirect", redirect)
    app.router.add_get("/unavailable", unavailable)
    app.router.add_get("/ua", user_agent)
    app.router.add_get("/hang", hang)
    return app


def test_success_status_range():
    assert is_success_status(200)
    assert is_success_status(204)
    assert is_success_status(301)
    assert is_success_status(399)
    assert not is_success_status(199)
    assert not is_success_status(400)
    assert not is_success_status(503)


@pytest.mark.asyncio
async def test_ok_response_is_success_with_elapsed():
    release = asyncio.Event()
    async with TestServer(make_app(release)) as server:
        result = await run_http_probe(str(server.make_url("/ok")), 5000)
    assert result.success is True
    assert result.elapsed_ms is not None
    assert result.elapsed_ms >= 0
    assert isinstance(result.elapsed_ms, int)


@pytest.mark.asyncio
async def test_redirect_counts_as_success_without_following():
    release = asyncio.Event()
    async with TestServer(make_app(release)) as server:
        result = await run_http_probe(str(server.make_url("/redirect")), 5000)
    # /elsewhere does not exist; success means the 302 itself was classified
    assert result.success is True


@pytest.mark.asyncio
async def test_server_error_is_failure():
    release = asyncio.Event()
    async with TestServer(make_app(release)) as server:
        result = await run_http_probe(str(server.make_url("/unavailable")), 5000)
    assert result.success is False
    assert result.reason == "HTTP:503"
    assert result.elapsed_ms is None


@pytest.mark.asyncio
async def test_custom_user_agent_is_sent():
    release = asyncio.Event()
    async with TestServer(make_app(release)) as server:
        result = await run_http_probe(str(server.make_url("/ua")), 5000, user_agent="inetmon-test")
    assert result.success is True


@pytest.mark.asyncio
async def test_connection_refused_is_failure():
    result = await run_http_probe("http://127.0.0.1:1/", 2000)
    assert result.success is False
    assert result.elapsed_ms is None


@pytest.mark.asyncio
async def test_malformed_url_is_failure():
    result = await run_http_probe("not a url", 1000)
    assert result.success is False
    assert result.elapsed_ms is None


@pytest.mark.asyncio
async def test_slow_server_times_out():
    release = asyncio.Event()
    async with TestServer(make_app(release)) as server:
        start = time.perf_counter()
        try:
            result = await run_http_probe(str(server.make_url("/hang")), 200)
        finally:
            release.set()
        elapsed = time.perf_counter() - start
    assert result.success is False
    assert result.reason == "TIMEOUT"
    assert elapsed < 2.0


class _HangingRequest:
    """Stands in for session.get(): never produces a response, records cancellation."""

    def __init__(self):
        self.cancelled = False

    async def __aenter__(self):
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            self.cancelled = True
            raise

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    def __init__(self, request):
        self.request = request
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False

    def get(self, url, **kwargs):
        return self.request


@pytest.mark.asyncio
async def test_timeout_cancels_in_flight_request():
    request = _HangingRequest()
    session = _FakeSession(request)
    with patch("inetmon.http_probe.aiohttp.ClientSession", side_effect=lambda *a, **k: session):
        result = await run_http_probe("https://example.invalid/", 100)
    assert result.success is False
    assert result.reason == "TIMEOUT"
    assert request.cancelled is True
    assert session.closed is True
