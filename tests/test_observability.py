"""Unit tests for pageguard.observability: EventBus and ActivityLog."""

from pageguard.observability.activity import ActivityLog
from pageguard.observability.events import (
    EventBus,
    EventKind,
    ScanEndEvent,
    ScanSafeEvent,
    ScanStartEvent,
    ThreatsDetectedEvent,
)


def _threats(count=1, title="Page", url="https://example.com", subtype="System Override"):
    return ThreatsDetectedEvent(
        count=count,
        matches=[{"type": "MALICIOUS_DIRECTIVE", "subtype": subtype}] * count,
        context={"title": title, "url": url, "timestamp": "2026-01-01T00:00:00+00:00"},
    )


class TestEventKind:
    def test_all_kinds(self):
        assert EventKind.SCAN_START == "scan_start"
        assert EventKind.THREATS_DETECTED == "threats_detected"
        assert EventKind.SCAN_SAFE == "scan_safe"
        assert EventKind.SCAN_END == "scan_end"

    def test_fixed_kind_per_event(self):
        assert ScanStartEvent().kind is EventKind.SCAN_START
        assert ScanSafeEvent().kind is EventKind.SCAN_SAFE
        assert ScanEndEvent().kind is EventKind.SCAN_END
        assert _threats().kind is EventKind.THREATS_DETECTED


class TestEventBus:
    def test_emit_and_receive(self):
        bus = EventBus()
        received = []
        bus.on(EventKind.SCAN_SAFE, received.append)
        bus.emit(ScanSafeEvent())
        bus.emit(ScanStartEvent())
        assert [e.kind for e in received] == [EventKind.SCAN_SAFE]

    def test_global_listener(self):
        bus = EventBus()
        received = []
        bus.on_all(received.append)
        bus.emit(ScanStartEvent(url="u"))
        bus.emit(ScanEndEvent(url="u"))
        assert len(received) == 2

    def test_listener_error_is_isolated(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise ValueError("boom")

        bus.on(EventKind.SCAN_SAFE, broken)
        bus.on(EventKind.SCAN_SAFE, received.append)
        bus.emit(ScanSafeEvent())
        assert len(received) == 1


class TestActivityLog:
    def test_records_threats_newest_first(self):
        bus = EventBus()
        log = ActivityLog()
        log.attach(bus)

        bus.emit(_threats(title="First"))
        bus.emit(_threats(count=2, title="Second", subtype="Mode Switching"))

        entries = log.to_list()
        assert [e["title"] for e in entries] == ["Second", "First"]
        assert entries[0] == {
            "id": 2,
            "timestamp": "2026-01-01T00:00:00+00:00",
            "title": "Second",
            "url": "https://example.com",
            "threat_count": 2,
            "threat_type": "MALICIOUS_DIRECTIVE",
            "details": "Mode Switching, Mode Switching",
        }

    def test_ignores_safe_scans(self):
        bus = EventBus()
        log = ActivityLog()
        log.attach(bus)
        bus.emit(ScanSafeEvent())
        assert len(log) == 0

    def test_capped(self):
        bus = EventBus()
        log = ActivityLog(max_entries=3)
        log.attach(bus)
        for i in range(5):
            bus.emit(_threats(title=f"page {i}"))
        assert [e.title for e in log.entries()] == ["page 4", "page 3", "page 2"]

    def test_missing_context(self):
        bus = EventBus()
        log = ActivityLog()
        log.attach(bus)
        bus.emit(ThreatsDetectedEvent(count=0))
        entry = log.entries()[0]
        assert entry.title == "Untitled page"
        assert entry.threat_type == ""
        assert entry.timestamp

    def test_clear(self):
        bus = EventBus()
        log = ActivityLog()
        log.attach(bus)
        bus.emit(_threats())
        log.clear()
        assert log.to_list() == []
