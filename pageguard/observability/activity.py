"""In-memory activity log of scans that found something.

Listens for ThreatsDetectedEvent on the EventBus and keeps the newest
entries first, capped at `max_entries`.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List

from pageguard.observability.events import EventBus, EventKind, ThreatsDetectedEvent

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100


@dataclass
class ActivityEntry:
    id: int
    timestamp: str
    title: str
    url: str
    threat_count: int
    threat_type: str
    details: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ActivityLog:
    """Bounded newest-first log of detections.

    Usage:
        bus = EventBus()
        log = ActivityLog(max_entries=100)
        log.attach(bus)
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.max_entries = max_entries
        self._entries: Deque[ActivityEntry] = deque(maxlen=max_entries)
        self._next_id = 1

    def attach(self, bus: EventBus) -> None:
        bus.on(EventKind.THREATS_DETECTED, self._on_threats)

    def _on_threats(self, event: ThreatsDetectedEvent) -> None:
        context = event.context or {}
        matches = event.matches or []

        timestamp = context.get("timestamp") or datetime.fromtimestamp(
            event.timestamp_ms / 1000, tz=timezone.utc
        ).isoformat()
        subtypes = [str(m.get("subtype") or m.get("type", "")) for m in matches]

        entry = ActivityEntry(
            id=self._next_id,
            timestamp=timestamp,
            title=context.get("title") or "Untitled page",
            url=context.get("url") or "",
            threat_count=event.count,
            threat_type=str(matches[0].get("type", "")) if matches else "",
            details=", ".join(s for s in subtypes if s),
        )
        self._next_id += 1
        self._entries.appendleft(entry)
        logger.debug("Activity #%d: %d threat(s) on %s", entry.id, entry.threat_count, entry.url or entry.title)

    def entries(self) -> List[ActivityEntry]:
        return list(self._entries)

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
