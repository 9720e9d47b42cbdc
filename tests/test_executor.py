"""Unit tests for the cycle executor (inetmon.executor)."""
import asyncio
import logging

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from functools import partial
from unittest.mock import AsyncMock, patch

from inetmon.config import MonitorConfig
from inetmon.executor import CycleResult, ProbeExecutor
from inetmon.http_probe import run_http_probe
from inetmon.ping import ProbeResult

OK = ProbeResult(success=True, elapsed_ms=10.0)
FAIL = ProbeResult.failed("TIMEOUT")


@pytest.fixture
def config():
    return MonitorConfig(ping_address="192.0.2.1", http_test_url="http://192.0.2.1/")


def test_fully_successful_requires_both():
    assert CycleResult(ping=OK, http=OK).fully_successful is True
    assert CycleResult(ping=OK, http=FAIL).fully_successful is False
    assert CycleResult(ping=FAIL, http=OK).fully_successful is False


@pytest.mark.asyncio
async def test_ping_runs_before_http(config):
    order = []

    async def ping():
        order.append("ping")
        return OK

    async def http():
        order.append("http")
        return OK

    result = await ProbeExecutor(config, ping_probe=ping, http_probe=http).run_cycle()
    assert order == ["ping", "http"]
    assert result == CycleResult(ping=OK, http=OK)


@pytest.mark.asyncio
async def test_http_runs_even_when_ping_fails(config):
    http = AsyncMock(return_value=OK)
    result = await ProbeExecutor(config, ping_probe=AsyncMock(return_value=FAIL), http_probe=http).run_cycle()
    http.assert_awaited_once()
    assert result.ping == FAIL
    assert result.http == OK


@pytest.mark.asyncio
async def test_probe_defect_becomes_failed_result(config, caplog):
    async def broken():
        raise KeyError("boom")

    with caplog.at_level(logging.ERROR, logger="inetmon.executor"):
        result = await ProbeExecutor(config, ping_probe=broken, http_probe=AsyncMock(return_value=OK)).run_cycle()
    assert result.ping.success is False
    assert result.ping.elapsed_ms is None
    assert result.ping.reason == "DEFECT:KeyError"
    assert result.http == OK
    assert "raised unexpectedly" in caplog.text


@pytest.mark.asyncio
async def test_non_result_return_is_defect(config):
    executor = ProbeExecutor(config, ping_probe=AsyncMock(return_value=OK), http_probe=AsyncMock(return_value=None))
    result = await executor.run_cycle()
    assert result.http.success is False


@pytest.mark.asyncio
async def test_cancellation_propagates(config):
    async def slow():
        await asyncio.sleep(60)
        return OK

    task = asyncio.ensure_future(ProbeExecutor(config, ping_probe=slow, http_probe=slow).run_cycle())
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_default_probes_use_config():
    config = MonitorConfig(
        ping_address="1.1.1.1",
        ping_method="tcp",
        ping_port=853,
        ping_timeout=1500,
        http_test_url="https://example.com/",
        http_timeout=3000,
        user_agent="ua",
    )
    with patch("inetmon.executor.run_ping", new_callable=AsyncMock, return_value=OK) as ping, \
         patch("inetmon.executor.run_http_probe", new_callable=AsyncMock, return_value=OK) as http:
        result = await ProbeExecutor(config).run_cycle()
    ping.assert_awaited_once_with("1.1.1.1", 1500, "tcp", 853)
    http.assert_awaited_once_with("https://example.com/", 3000, "ua")
    assert result.fully_successful


@pytest.mark.asyncio
async def test_http_timeout_fails_cycle_after_instant_ping(config):
    release = asyncio.Event()

    async def hang(request):
        await release.wait()
        return web.Response(text="late")

    app = web.Application()
    app.router.add_get("/hang", hang)
    async with TestServer(app) as server:
        executor = ProbeExecutor(
            config,
            ping_probe=AsyncMock(return_value=OK),
            http_probe=partial(run_http_probe, str(server.make_url("/hang")), 200),
        )
        try:
            result = await executor.run_cycle()
        finally:
            release.set()
    assert result.ping == OK
    assert result.http.reason == "TIMEOUT"
    assert result.fully_successful is False
