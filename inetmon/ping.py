"""
Network-layer reachability probe.
ICMP: one packet via the platform ping command. Windows: ping -n 1 -w <timeout_ms> <host>.
Linux/macOS: ping -c 1 -W <timeout_s> <host>.
TCP: connect to host:port (default 53) and close; for hosts where ping is unavailable or blocked.
Never raises: every failure mode becomes a failed ProbeResult.
"""
import asyncio
import logging
import math
import re
import sys
import time
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("inetmon.ping")

# How long to wait for a killed ping process to be reaped
REAP_GRACE_S = 2.0


@dataclass(frozen=True)
class ProbeResult:
    success: bool
    elapsed_ms: Optional[float]  # whole milliseconds; None whenever success is False
    reason: str = "OK"  # "OK", "TIMEOUT", "UNREACHABLE", "HTTP:<status>", "ERROR:<detail>"

    @classmethod
    def failed(cls, reason: str) -> "ProbeResult":
        return cls(success=False, elapsed_ms=None, reason=reason)


def round_ms(value: float) -> int:
    """All probes report latency in whole milliseconds, halves rounded up."""
    return int(math.floor(value + 0.5))


def _timeout_seconds(timeout_ms: int) -> int:
    return max(1, (timeout_ms + 999) // 1000)


def build_ping_command(host: str, timeout_ms: int, platform: str = sys.platform) -> list[str]:
    """Single-packet ping argv; the tool's own reply wait mirrors the probe timeout."""
    if platform == "win32":
        return ["ping", "-n", "1", "-w", str(timeout_ms), host]
    return ["ping", "-c", "1", "-W", str(_timeout_seconds(timeout_ms)), host]


async def run_ping(host: str, timeout_ms: int, method: str = "icmp", port: int = 53) -> ProbeResult:
    """Run one reachability probe with the configured strategy."""
    if method == "tcp":
        return await run_tcp_ping(host, port, timeout_ms)
    return await run_icmp_ping(host, timeout_ms)


async def run_icmp_ping(host: str, timeout_ms: int) -> ProbeResult:
    """
    Run one ping, waiting at most timeout_ms in total (name resolution included).
    On timeout the child process is killed and reaped, not left running.
    """
    cmd = build_ping_command(host, timeout_ms)
    start = time.perf_counter()
    proc = None
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_ms / 1000.0)
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        result = _interpret(proc.returncode or 0, stdout.decode("utf-8", errors="replace"), elapsed_ms)
    except asyncio.TimeoutError:
        await _terminate(proc)
        result = ProbeResult.failed("TIMEOUT")
    except asyncio.CancelledError:
        await _terminate(proc)
        raise
    except Exception as e:
        result = ProbeResult.failed(f"ERROR:{getattr(e, 'errno', None) or type(e).__name__}")
    if not result.success:
        logger.debug("Ping %s failed: %s", host, result.reason)
    return result


async def _terminate(proc: Optional[asyncio.subprocess.Process]) -> None:
    if proc is None or proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=REAP_GRACE_S)
    except asyncio.TimeoutError:
        logger.warning("Ping process %s did not exit after kill", proc.pid)


async def run_tcp_ping(host: str, port: int, timeout_ms: int) -> ProbeResult:
    """Open and immediately close a TCP connection; the connect time is the latency."""
    start = time.perf_counter()
    try:
        _reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout_ms / 1000.0
        )
    except asyncio.TimeoutError:
        logger.debug("TCP connect %s:%s timed out", host, port)
        return ProbeResult.failed("TIMEOUT")
    except OSError as e:
        logger.debug("TCP connect %s:%s failed: %s", host, port, e)
        reason = "UNREACHABLE" if isinstance(e, ConnectionRefusedError) else f"ERROR:{e.errno or type(e).__name__}"
        return ProbeResult.failed(reason)
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return ProbeResult(success=True, elapsed_ms=round_ms(elapsed_ms))


def _interpret(returncode: int, output: str, elapsed_ms: float) -> ProbeResult:
    """Interpret ping return code; a parsed round-trip time beats the wall clock."""
    if returncode == 0:
        lat = _parse_latency(output)
        return ProbeResult(success=True, elapsed_ms=round_ms(lat if lat is not None else elapsed_ms))
    output_lower = output.lower()
    if "timed out" in output_lower or "timeout" in output_lower:
        reason = "TIMEOUT"
    elif "unreachable" in output_lower:
        reason = "UNREACHABLE"
    else:
        reason = f"ERROR:{returncode}"
    return ProbeResult.failed(reason)


def _parse_latency(output: str) -> Optional[float]:
    """Extract round-trip time in ms from ping output."""
    # Windows summary: "Minimum = 22ms, Maximum = 22ms, Average = 22ms"
    m = re.search(r"Average\s*=\s*(\d+(?:\.\d+)?)\s*ms", output, re.I)
    if m:
        return float(m.group(1))
    # Linux/macOS: "time=12.3 ms"; Windows reply: "time=23ms" or "time<1ms"
    m = re.search(r"time\s*[=<]\s*(\d+(?:\.\d+)?)\s*ms", output, re.I)
    if m:
        return float(m.group(1))
    return None
