"""
Snapshot gate tests.

A closed year with a posted closing snapshot is answered from the stored
document verbatim; everything else falls through to live computation.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from bilanz_reporting.snapshot import SnapshotGate

POSTED_AT = datetime(2025, 3, 31, 12, 0, tzinfo=timezone.utc)


class StubSnapshot:
    def __init__(self, data: dict, posted_at: datetime = POSTED_AT):
        self.data = data
        self.posted_at = posted_at


class StubSnapshotSource:
    def __init__(self, snapshot: StubSnapshot | None = None):
        self.snapshot = snapshot
        self.requested: list = []

    def closing_snapshot(self, fiscal_year_id):
        self.requested.append(fiscal_year_id)
        return self.snapshot


class TestSnapshotGate:
    def test_open_year_is_never_served_from_snapshot(self, open_year):
        source = StubSnapshotSource(StubSnapshot({"balanced": True}))
        assert SnapshotGate(source).load(open_year) is None
        assert source.requested == []

    def test_closed_year_served_verbatim(self, open_year, captured_logs):
        stored = {"balanced": False, "aktiva": {"total": "1.00"}, "custom": [1, 2]}
        source = StubSnapshotSource(StubSnapshot(stored))
        closed = replace(open_year, closed=True)

        data = SnapshotGate(source).load(closed)

        assert data == {
            "balanced": False,
            "aktiva": {"total": "1.00"},
            "custom": [1, 2],
            "stored": True,
            "posted_at": "2025-03-31T12:00:00+00:00",
        }
        assert source.requested == [closed.id]
        assert any(r["message"] == "snapshot_served" for r in captured_logs())

    def test_stored_document_is_not_mutated(self, open_year):
        stored = {"aktiva": {"total": "1.00"}}
        gate = SnapshotGate(StubSnapshotSource(StubSnapshot(stored)))

        data = gate.load(replace(open_year, closed=True))
        data["aktiva"]["total"] = "2.00"

        assert stored == {"aktiva": {"total": "1.00"}}

    def test_closed_year_without_snapshot_falls_through(self, open_year, captured_logs):
        gate = SnapshotGate(StubSnapshotSource(None))
        assert gate.load(replace(open_year, closed=True)) is None
        assert any(r["message"] == "closed_year_snapshot_missing" for r in captured_logs())
