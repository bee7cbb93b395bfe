"""
Unit tests for the SQLAlchemy calibration store, against in-memory SQLite.
"""

from datetime import datetime, timezone

import pytest

from door_sense.calibration.models import (
    CalibrationHistoryEntry,
    CalibrationRecord,
    ComparisonState,
    HistoryKind,
    Position,
)
from door_sense.calibration.service import CalibrationService
from door_sense.calibration.sql_store import SqlCalibrationStore, build_store
from door_sense.calibration.stability import StabilityAnalyzer
from door_sense.calibration.store import (
    CalibrationStore,
    CalibrationStoreError,
    ConcurrentUpdateError,
    InMemoryCalibrationStore,
)
from door_sense.sensing.samples import PositionSample
from door_sense.services.telemetry import TelemetryHistory
from tests.fixtures.telemetry import FakeClock, StepDatetimeClock


@pytest.fixture
def store():
    sql_store = SqlCalibrationStore("sqlite:///:memory:")
    yield sql_store
    sql_store.close()


def make_record(x: float = 1.0) -> CalibrationRecord:
    return CalibrationRecord(
        sensor_id="s1",
        closed_reference=Position(x, 2.0, 63.0),
        tolerance=0.5,
        confidence=0.9,
        calibrated_at=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
        calibrated_by="installer",
    )


class TestSqlCalibrationStore:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, CalibrationStore)

    def test_load_unknown_sensor(self, store):
        snapshot = store.load("nobody")
        assert snapshot.active is None
        assert snapshot.version == 0

    def test_save_and_load_round_trip(self, store):
        record = make_record()
        entry = CalibrationHistoryEntry(kind=HistoryKind.CALIBRATION, record=record, timestamp=record.calibrated_at)

        saved = store.save(store.load("s1").with_active(record, entry))
        loaded = store.load("s1")

        assert saved.version == 1
        assert loaded == saved
        assert loaded.active.calibrated_at == record.calibrated_at
        assert loaded.history[0].kind == HistoryKind.CALIBRATION
        assert store.sensor_ids() == ["s1"]

    def test_clearing_active_record(self, store):
        store.save(store.load("s1").with_active(make_record()))
        cleared = store.save(store.load("s1").with_active(None))

        assert cleared.active is None
        assert store.load("s1").version == 2

    def test_stale_snapshot_is_rejected(self, store):
        stale = store.load("s1")
        store.save(stale.with_active(make_record(1.0)))

        with pytest.raises(ConcurrentUpdateError):
            store.save(stale.with_active(make_record(5.0)))

        assert store.load("s1").active.closed_reference.x == 1.0

    def test_bad_url_raises_store_error(self):
        with pytest.raises(CalibrationStoreError):
            SqlCalibrationStore("sqlite:////nonexistent-dir/sub/calibrations.db")


class TestSqlStoreWithService:
    def test_history_bound_and_compare(self, store):
        history = TelemetryHistory()
        clock = FakeClock()
        history.record_sample("s1", PositionSample(0.0, 0.0, 64.0, clock()))
        service = CalibrationService(store, StabilityAnalyzer(history, clock=clock), now=StepDatetimeClock())

        for i in range(11):
            assert service.calibrate("s1", position=Position(float(i), 0.0, 64.0)).success

        snapshot = store.load("s1")
        assert len(snapshot.history) == 10
        assert snapshot.history[0].record.closed_reference.x == 1.0
        assert service.compare("s1", Position(10.0, 0.0, 64.0)) == ComparisonState.CLOSED


class TestBuildStore:
    def test_memory_without_url(self):
        assert isinstance(build_store(None), InMemoryCalibrationStore)

    def test_sql_with_url(self):
        sql_store = build_store("sqlite:///:memory:")
        try:
            assert isinstance(sql_store, SqlCalibrationStore)
        finally:
            sql_store.close()
