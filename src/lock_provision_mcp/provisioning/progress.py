"""Progress notifications emitted while provisioning a lock.

The state machine and the transport only talk to the
:class:`ProgressReporter` protocol. :class:`EventLog` is the in-process
implementation used by the MCP server: it keeps the step list the way an
operator display shows it, the raw USB hex dumps, and any alerts.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

logger = logging.getLogger(__name__)

PENDING = "pending"
SUCCESS = "success"
FAILED = "failed"
DONE = "Done"

MAX_EVENTS = 500
MAX_DUMPS = 2000


@dataclass
class ProgressEvent:
    """One step line: a label, its state, and optional structured payload."""

    step: str
    state: str | None = None
    payload: dict[str, Any] | None = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"step": self.step, "timestamp": self.timestamp}
        if self.state is not None:
            result["state"] = self.state
        if self.payload is not None:
            result["payload"] = self.payload
        return result


class ProgressReporter(Protocol):
    def start_run(self) -> None: ...

    def step(
        self, name: str, state: str | None = PENDING, payload: dict[str, Any] | None = None
    ) -> None: ...

    def data(self, direction: str, hex_dump: str) -> None: ...

    def lock_info(self, record: Any) -> None: ...

    def connected(self, flag: bool) -> None: ...

    def alert(self, message: str) -> None: ...


class NullReporter:
    """Reporter that drops every notification."""

    def start_run(self) -> None:
        pass

    def step(self, name, state=PENDING, payload=None) -> None:
        pass

    def data(self, direction, hex_dump) -> None:
        pass

    def lock_info(self, record) -> None:
        pass

    def connected(self, flag) -> None:
        pass

    def alert(self, message) -> None:
        pass


class EventLog:
    """Thread-safe reporter that records notifications for later inspection.

    Step semantics follow the operator display:

    - a notification for the same step as the last entry replaces it;
    - a new step marks a trailing ``pending`` entry as ``success``.
    """

    def __init__(self, max_events: int = MAX_EVENTS, max_dumps: int = MAX_DUMPS) -> None:
        self._lock = threading.Lock()
        self._events: deque[ProgressEvent] = deque(maxlen=max_events)
        self._dumps: deque[dict[str, str]] = deque(maxlen=max_dumps)
        self._alerts: list[str] = []
        self._lock_info: dict[str, Any] | None = None
        self._connected = False

    def start_run(self) -> None:
        """Forget the previous run's steps, alerts and lock; hex dumps are kept."""
        with self._lock:
            self._events.clear()
            self._alerts.clear()
            self._lock_info = None

    def step(
        self, name: str, state: str | None = PENDING, payload: dict[str, Any] | None = None
    ) -> None:
        logger.info("Step: %s (%s)", name, state or "-")
        event = ProgressEvent(step=name, state=state, payload=payload)
        with self._lock:
            last = self._events[-1] if self._events else None
            if last is not None and last.step == name:
                self._events[-1] = event
                return
            if last is not None and last.state == PENDING:
                last.state = SUCCESS
            self._events.append(event)

    def data(self, direction: str, hex_dump: str) -> None:
        logger.debug("%s: %s", direction, hex_dump)
        with self._lock:
            self._dumps.append({"direction": direction, "data": hex_dump})

    def lock_info(self, record: Any) -> None:
        info = record.to_dict() if hasattr(record, "to_dict") else dict(record)
        with self._lock:
            self._lock_info = info

    def connected(self, flag: bool) -> None:
        logger.info("Lock %s", "connected" if flag else "disconnected")
        with self._lock:
            self._connected = flag

    def alert(self, message: str) -> None:
        logger.error("Provisioning failed: %s", message)
        with self._lock:
            self._alerts.append(message)

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def events(self) -> list[ProgressEvent]:
        with self._lock:
            return list(self._events)

    @property
    def dumps(self) -> list[dict[str, str]]:
        with self._lock:
            return list(self._dumps)

    @property
    def alerts(self) -> list[str]:
        with self._lock:
            return list(self._alerts)

    @property
    def current_lock(self) -> dict[str, Any] | None:
        with self._lock:
            return dict(self._lock_info) if self._lock_info is not None else None

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._dumps.clear()
            self._alerts.clear()
            self._lock_info = None
