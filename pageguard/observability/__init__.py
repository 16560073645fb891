from pageguard.observability.activity import ActivityEntry, ActivityLog
from pageguard.observability.events import (
    Event,
    EventBus,
    EventKind,
    ScanEndEvent,
    ScanSafeEvent,
    ScanStartEvent,
    ThreatsDetectedEvent,
)

__all__ = [
    "ActivityEntry",
    "ActivityLog",
    "Event",
    "EventBus",
    "EventKind",
    "ScanEndEvent",
    "ScanSafeEvent",
    "ScanStartEvent",
    "ThreatsDetectedEvent",
]
