"""Typed event system for scan reporting.

The session emits one event per scan phase. Listeners (the ActivityLog,
loggers, anything a host wants to notify) subscribe via the EventBus and
receive typed dataclass payloads.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventKind(str, Enum):
    SCAN_START = "scan_start"
    THREATS_DETECTED = "threats_detected"
    SCAN_SAFE = "scan_safe"
    SCAN_END = "scan_end"


@dataclass(frozen=True)
class Event:
    """Base event payload."""
    kind: EventKind
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000))


@dataclass(frozen=True)
class ScanStartEvent(Event):
    kind: EventKind = field(default=EventKind.SCAN_START, init=False)
    url: str = ""


@dataclass(frozen=True)
class ThreatsDetectedEvent(Event):
    kind: EventKind = field(default=EventKind.THREATS_DETECTED, init=False)
    count: int = 0
    # Serialised findings
    matches: List[Dict[str, Any]] = field(default_factory=list)
    # title, url, timestamp
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScanSafeEvent(Event):
    kind: EventKind = field(default=EventKind.SCAN_SAFE, init=False)
    count: int = 0


@dataclass(frozen=True)
class ScanEndEvent(Event):
    kind: EventKind = field(default=EventKind.SCAN_END, init=False)
    url: str = ""
    threat_count: int = 0
    sanitized_count: int = 0
    duration_ms: int = 0


# ---------------------------------------------------------------------------
# Event bus
# ---------------------------------------------------------------------------

Listener = Callable[[Event], None]


class EventBus:
    """Simple synchronous pub/sub for scan events.

    Listeners are called inline, so keep them fast. A failing listener is
    logged and never affects the scan or the other listeners.
    """

    def __init__(self):
        self._listeners: Dict[EventKind, List[Listener]] = {}
        self._global_listeners: List[Listener] = []

    def on(self, kind: EventKind, listener: Listener) -> None:
        """Subscribe to a specific event kind."""
        self._listeners.setdefault(kind, []).append(listener)

    def on_all(self, listener: Listener) -> None:
        """Subscribe to every event kind."""
        self._global_listeners.append(listener)

    def emit(self, event: Event) -> None:
        """Dispatch an event to all matching listeners."""
        for listener in self._global_listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Global event listener error for %s", event.kind)

        for listener in self._listeners.get(event.kind, []):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener error for %s", event.kind)
