"""
One check cycle: ping probe, then HTTP probe, strictly in that order.
Ping runs first for its latency figure; HTTP always runs after it, whatever ping returned.
No judgement on the outcome here; that belongs to the aggregator (inetmon.state).
"""
import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, Optional

from inetmon.config import MonitorConfig
from inetmon.http_probe import run_http_probe
from inetmon.ping import ProbeResult, run_ping

logger = logging.getLogger("inetmon.executor")

Probe = Callable[[], Awaitable[ProbeResult]]


@dataclass(frozen=True)
class CycleResult:
    ping: ProbeResult
    http: ProbeResult

    @property
    def fully_successful(self) -> bool:
        return self.ping.success and self.http.success


class ProbeExecutor:
    """Runs both probes for a cycle. Probe callables are injectable (strategy per platform, tests)."""

    def __init__(
        self,
        config: MonitorConfig,
        ping_probe: Optional[Probe] = None,
        http_probe: Optional[Probe] = None,
    ) -> None:
        self._config = config
        self._ping_probe = ping_probe or partial(
            run_ping, config.ping_address, config.ping_timeout, config.ping_method, config.ping_port
        )
        self._http_probe = http_probe or partial(
            run_http_probe, config.http_test_url, config.http_timeout, config.user_agent
        )

    async def run_cycle(self) -> CycleResult:
        ping = await self._guarded("ping", self._ping_probe)
        http = await self._guarded("http", self._http_probe)
        return CycleResult(ping=ping, http=http)

    async def _guarded(self, name: str, probe: Probe) -> ProbeResult:
        """A probe that raises is a defect, not an outage: log it and record a failure."""
        try:
            result = await probe()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Probe %s raised unexpectedly: %s", name, e)
            return ProbeResult.failed(f"DEFECT:{type(e).__name__}")
        if not isinstance(result, ProbeResult):
            logger.error("Probe %s returned %r instead of a ProbeResult", name, result)
            return ProbeResult.failed("DEFECT:result")
        return result
