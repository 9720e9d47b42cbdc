"""
Asyncio scheduler for the connectivity engine.
Two states: IDLE (timer armed or not) and RUNNING (one cycle in flight).
First cycle runs immediately on start; the single-shot timer is armed only after a cycle has
fully completed, so cycles never overlap. stop() clears the timer; a cycle still in flight may
finish but its result is dropped.
"""
import asyncio
import logging
from datetime import datetime
from enum import Enum
from queue import Full, Queue
from typing import Optional

from inetmon.config import MonitorConfig
from inetmon.executor import CycleResult, ProbeExecutor
from inetmon.notify import Notifier
from inetmon.ping import ProbeResult
from inetmon.state import StatusRecord, apply_cycle

logger = logging.getLogger("inetmon.monitor")


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"


def _ms(value: Optional[float]) -> str:
    return f"{value:.0f}ms" if value is not None else "-"


def format_time(ts: Optional[datetime]) -> str:
    return ts.strftime("%H:%M") if ts is not None else "never"


def format_history(history: tuple[bool, ...]) -> str:
    return "".join("●" if ok else "○" for ok in history)


def format_status_line(record: StatusRecord, show_details: bool = True) -> str:
    """One-line rendering: 'Online | last checked 14:05 | ping 12ms | http 140ms | ●●○'."""
    parts = ["Online" if record.is_connected else "Offline"]
    if show_details:
        parts.append(f"last checked {format_time(record.last_checked_at)}")
        if record.is_connected:
            if record.last_ping_ms is not None:
                parts.append(f"ping {_ms(record.last_ping_ms)}")
            if record.last_http_ms is not None:
                parts.append(f"http {_ms(record.last_http_ms)}")
        if record.history:
            parts.append(format_history(record.history))
    return " | ".join(parts)


def _describe(result: ProbeResult) -> str:
    return f"OK {_ms(result.elapsed_ms)}" if result.success else f"FAIL {result.reason}"


class ConnectivityMonitor:
    """
    Owns the StatusRecord for one engine instance. Readers get immutable snapshots via .status,
    notifier status listeners, or status_queue (thread-safe, for a UI on another thread).
    """

    def __init__(
        self,
        config: MonitorConfig,
        executor: Optional[ProbeExecutor] = None,
        notifier: Optional[Notifier] = None,
        status_queue: Optional[Queue] = None,
    ) -> None:
        config.validate()
        self.config = config
        self.notifier = notifier or Notifier(config.alert_on_disconnect)
        self.status_queue = status_queue
        self._executor = executor or ProbeExecutor(config)
        self._record = StatusRecord.initial()
        self._state = SchedulerState.IDLE
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._cycle_task: Optional[asyncio.Task] = None
        self._started = False
        self._closing = False
        self._stopped = asyncio.Event()
        self.cycles_completed = 0

    @property
    def status(self) -> StatusRecord:
        return self._record

    @property
    def scheduler_state(self) -> SchedulerState:
        return self._state

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    @property
    def stopped(self) -> bool:
        return self._closing

    def start(self) -> None:
        """Begin monitoring; must be called from inside the running event loop."""
        if self._closing:
            raise RuntimeError("Monitor already stopped")
        if self._started:
            raise RuntimeError("Monitor already started")
        self._loop = asyncio.get_running_loop()
        self._started = True
        self._record = StatusRecord.initial()
        logger.info(
            "Monitor started: ping %s (%s), http %s, every %.0fs",
            self.config.ping_address,
            self.config.ping_method,
            self.config.http_test_url,
            self.config.update_interval,
        )
        self._begin_cycle()

    def check_now(self) -> bool:
        """Run a cycle immediately unless one is already in flight. Returns True if started."""
        if not self._started or self._closing:
            return False
        if self._state is SchedulerState.RUNNING:
            logger.debug("Check requested while a cycle is running; ignored")
            return False
        self._cancel_timer()
        self._begin_cycle()
        return True

    def stop(self) -> None:
        if self._closing:
            return
        self._closing = True
        self._cancel_timer()
        self._stopped.set()
        if self._state is SchedulerState.RUNNING:
            logger.info("Monitor stopping; in-flight cycle result will be discarded")
        else:
            logger.info("Monitor stopped")

    async def wait_closed(self) -> None:
        """Wait for an in-flight cycle, if any, to finish after stop()."""
        task = self._cycle_task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    async def run(self) -> None:
        """Start and run until stop(). Cancelling run() stops and cancels the in-flight cycle."""
        self.start()
        try:
            await self._stopped.wait()
        except asyncio.CancelledError:
            self.stop()
            if self._cycle_task is not None:
                self._cycle_task.cancel()
            await self.wait_closed()
            raise
        await self.wait_closed()

    async def run_once(self) -> StatusRecord:
        """Single cycle without scheduling (e.g. a one-shot CLI check)."""
        if self._started:
            raise RuntimeError("run_once() cannot be used on a started monitor")
        self._state = SchedulerState.RUNNING
        try:
            cycle = await self._execute()
        finally:
            self._state = SchedulerState.IDLE
        self._complete(cycle)
        return self._record

    def _begin_cycle(self) -> None:
        self._state = SchedulerState.RUNNING
        self._cycle_task = self._loop.create_task(self._run_cycle())

    def _on_timer(self) -> None:
        self._timer = None
        if not self._closing:
            self._begin_cycle()

    def _arm_timer(self) -> None:
        self._timer = self._loop.call_later(self.config.update_interval, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _execute(self) -> CycleResult:
        try:
            return await self._executor.run_cycle()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Cycle failed unexpectedly: %s", e)
            failed = ProbeResult.failed(f"DEFECT:{type(e).__name__}")
            return CycleResult(ping=failed, http=failed)

    async def _run_cycle(self) -> None:
        try:
            cycle = await self._execute()
        finally:
            self._state = SchedulerState.IDLE
        if self._closing:
            logger.debug("Discarding cycle result after stop")
            return
        self._complete(cycle)
        self._arm_timer()

    def _complete(self, cycle: CycleResult) -> None:
        prev = self._record
        record, transitioned = apply_cycle(prev, cycle, self.config)
        self._record = record
        self.cycles_completed += 1

        logger.info(
            "Check: ping %s, http %s -> %s (failures %d)",
            _describe(cycle.ping),
            _describe(cycle.http),
            "UP" if record.is_connected else "DOWN",
            record.consecutive_failures,
        )
        if transitioned:
            if record.is_connected:
                logger.info("DOWN->UP internet reachable")
            else:
                logger.warning("UP->DOWN after %d failed checks", record.consecutive_failures)
            self.notifier.on_transition(record)

        self.notifier.publish_status(record)
        if self.status_queue is not None:
            try:
                self.status_queue.put(record, block=False)
            except Full:
                logger.debug("Status queue full; snapshot dropped")
