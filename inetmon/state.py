"""
Connectivity state with hysteresis.
UP -> DOWN only after considerDownAfterFails consecutive failed cycles; DOWN -> UP on the first
fully successful cycle. Below the threshold the previous state and latency figures are held.
Records are immutable: each cycle produces a new StatusRecord, readers only ever see snapshots.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from inetmon.config import MonitorConfig
from inetmon.executor import CycleResult


@dataclass(frozen=True)
class StatusRecord:
    is_connected: bool
    last_checked_at: datetime
    last_connected_at: Optional[datetime] = None
    consecutive_failures: int = 0
    history: tuple[bool, ...] = ()  # most recent first
    last_ping_ms: Optional[float] = None
    last_http_ms: Optional[float] = None

    @classmethod
    def initial(cls, now: Optional[datetime] = None) -> "StatusRecord":
        """Start-of-engine record: not connected, no history."""
        return cls(is_connected=False, last_checked_at=now or datetime.now())


def apply_cycle(
    record: StatusRecord,
    cycle: CycleResult,
    config: MonitorConfig,
    now: Optional[datetime] = None,
) -> tuple[StatusRecord, bool]:
    """
    Fold one cycle into the record. Returns (new_record, transitioned), where transitioned
    is True when is_connected differs from the record passed in.
    """
    now = now or datetime.now()
    was_connected = record.is_connected

    if cycle.fully_successful:
        updated = replace(
            record,
            is_connected=True,
            last_checked_at=now,
            last_connected_at=now,
            consecutive_failures=0,
            last_ping_ms=cycle.ping.elapsed_ms,
            last_http_ms=cycle.http.elapsed_ms,
        )
    else:
        failures = record.consecutive_failures + 1
        is_connected = record.is_connected
        if failures >= config.consider_down_after_fails:
            is_connected = False
        # Optimistic hold: latency fields keep the last good cycle's figures
        updated = replace(
            record,
            is_connected=is_connected,
            last_checked_at=now,
            consecutive_failures=failures,
        )

    history = ((updated.is_connected,) + updated.history)[: config.max_history]
    updated = replace(updated, history=history)
    return updated, updated.is_connected != was_connected
