"""
Application-layer probe: one HTTP GET via aiohttp.
2xx and 3xx count as success (redirects are not followed). Body is drained, not buffered.
The whole request runs under asyncio.wait_for, so a timeout cancels it in flight.
"""
import asyncio
import logging
import time

import aiohttp

from inetmon.config import DEFAULT_USER_AGENT
from inetmon.ping import ProbeResult, round_ms

logger = logging.getLogger("inetmon.http")

DRAIN_CHUNK_BYTES = 16 * 1024


def is_success_status(status: int) -> bool:
    return 200 <= status < 400


async def _fetch(url: str, timeout_s: float, user_agent: str) -> ProbeResult:
    timeout = aiohttp.ClientTimeout(total=timeout_s)
    headers = {"User-Agent": user_agent}
    start = time.perf_counter()
    async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
        async with session.get(url, allow_redirects=False) as resp:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            async for _chunk in resp.content.iter_chunked(DRAIN_CHUNK_BYTES):
                pass
            if is_success_status(resp.status):
                return ProbeResult(success=True, elapsed_ms=round_ms(elapsed_ms))
            return ProbeResult.failed(f"HTTP:{resp.status}")


async def run_http_probe(url: str, timeout_ms: int, user_agent: str = DEFAULT_USER_AGENT) -> ProbeResult:
    """
    GET url once. Returns ProbeResult; timeout, DNS, refused connection and
    malformed URLs all resolve to success=False with no elapsed time.
    """
    timeout_s = timeout_ms / 1000.0
    try:
        result = await asyncio.wait_for(_fetch(url, timeout_s, user_agent), timeout=timeout_s)
    except asyncio.TimeoutError:
        result = ProbeResult.failed("TIMEOUT")
    except aiohttp.ClientConnectorError as e:
        result = ProbeResult.failed(f"UNREACHABLE:{e.os_error.__class__.__name__}")
    except aiohttp.ClientError as e:
        result = ProbeResult.failed(f"ERROR:{type(e).__name__}")
    except (OSError, ValueError) as e:
        result = ProbeResult.failed(f"ERROR:{type(e).__name__}")
    if not result.success:
        logger.debug("HTTP %s failed: %s", url, result.reason)
    return result
