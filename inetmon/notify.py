"""
Edge-triggered notifications. UP -> DOWN: INTERNET_DISCONNECTED (+ SHOW_ALERT if alertOnDisconnect).
DOWN -> UP: INTERNET_CONNECTED. Nothing on cycles that do not change the state.
Delivery is fire-and-forget: listener errors are logged, coroutine listeners are scheduled, never awaited.
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from inetmon.state import StatusRecord

logger = logging.getLogger("inetmon.notify")

ALERT_TITLE = "Internet Connection Lost"
ALERT_MESSAGE = "Your internet connection appears to be down"
ALERT_DURATION_MS = 10000


class Event(Enum):
    CONNECTED = "INTERNET_CONNECTED"
    DISCONNECTED = "INTERNET_DISCONNECTED"
    ALERT = "SHOW_ALERT"


@dataclass(frozen=True)
class Alert:
    title: str
    message: str
    duration_ms: int


@dataclass(frozen=True)
class Notification:
    event: Event
    alert: Optional[Alert] = None


Listener = Callable[[Any], Any]


class Notifier:
    def __init__(self, alert_on_disconnect: bool = False) -> None:
        self.alert_on_disconnect = alert_on_disconnect
        self._listeners: list[Listener] = []
        self._status_listeners: list[Listener] = []
        self._pending: set[asyncio.Task] = set()

    def add_listener(self, cb: Listener) -> None:
        """cb(Notification); may be a plain function or a coroutine function."""
        self._listeners.append(cb)

    def add_status_listener(self, cb: Listener) -> None:
        """cb(StatusRecord) after every cycle."""
        self._status_listeners.append(cb)

    def on_transition(self, record: StatusRecord) -> list[Notification]:
        """Emit the events for a state change to record.is_connected. Returns what was emitted."""
        if record.is_connected:
            emitted = [Notification(Event.CONNECTED)]
        else:
            emitted = [Notification(Event.DISCONNECTED)]
            if self.alert_on_disconnect:
                alert = Alert(title=ALERT_TITLE, message=ALERT_MESSAGE, duration_ms=ALERT_DURATION_MS)
                emitted.append(Notification(Event.ALERT, alert))
        for n in emitted:
            logger.info("Notify: %s", n.event.value)
            for cb in list(self._listeners):
                self._deliver(cb, n)
        return emitted

    def publish_status(self, record: StatusRecord) -> None:
        for cb in list(self._status_listeners):
            self._deliver(cb, record)

    def _deliver(self, cb: Listener, payload: Any) -> None:
        try:
            result = cb(payload)
        except Exception as e:
            logger.exception("Notification listener failed: %s", e)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Notification listener failed: %s", exc, exc_info=exc)
