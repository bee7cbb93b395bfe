"""
SQLAlchemy-backed calibration store
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Column, DateTime, Integer, JSON, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from door_sense.calibration.models import CalibrationHistoryEntry, CalibrationRecord
from door_sense.calibration.store import (
    CalibrationStoreError,
    ConcurrentUpdateError,
    InMemoryCalibrationStore,
    SensorCalibration,
    SensorLocks,
)

logger = logging.getLogger(__name__)

Base = declarative_base()


class SensorCalibrationRow(Base):
    """Active calibration and bounded history of one sensor."""
    __tablename__ = "sensor_calibrations"

    sensor_id = Column(String(100), primary_key=True)
    active = Column(JSON, nullable=True)
    history = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False,
                        default=lambda: datetime.now(timezone.utc))

    def to_snapshot(self) -> SensorCalibration:
        return SensorCalibration(
            sensor_id=self.sensor_id,
            active=CalibrationRecord.from_dict(self.active) if self.active else None,
            history=tuple(CalibrationHistoryEntry.from_dict(e) for e in (self.history or [])),
            version=self.version,
        )

    def __repr__(self):
        return f"<SensorCalibrationRow(sensor_id='{self.sensor_id}', version={self.version})>"


def create_db_engine(database_url: str, echo: bool = False):
    """Create a synchronous engine; in-memory SQLite shares one connection."""
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


class SqlCalibrationStore(SensorLocks):
    """Calibration store persisted in a relational database."""

    def __init__(self, database_url: str, echo: bool = False, create_tables: bool = True):
        super().__init__()
        try:
            self._engine = create_db_engine(database_url, echo=echo)
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
            if create_tables:
                self.create_tables()
        except SQLAlchemyError as e:
            raise CalibrationStoreError(f"Failed to initialize calibration database: {e}") from e
        logger.info("SQL calibration store ready (%s)", self._engine.url.render_as_string(hide_password=True))

    def create_tables(self) -> None:
        Base.metadata.create_all(self._engine)

    def close(self) -> None:
        self._engine.dispose()

    def load(self, sensor_id: str) -> SensorCalibration:
        try:
            with self._session_factory() as session:
                row = session.get(SensorCalibrationRow, sensor_id)
                if row is None:
                    return SensorCalibration(sensor_id=sensor_id)
                return row.to_snapshot()
        except SQLAlchemyError as e:
            raise CalibrationStoreError(f"Failed to load calibration of sensor {sensor_id}: {e}") from e

    def save(self, calibration: SensorCalibration) -> SensorCalibration:
        sensor_id = calibration.sensor_id
        try:
            with self._session_factory() as session, session.begin():
                row = session.get(SensorCalibrationRow, sensor_id, with_for_update=True)
                current_version = row.version if row is not None else 0
                if calibration.version != current_version:
                    raise ConcurrentUpdateError(
                        f"Calibration of sensor {sensor_id} changed "
                        f"(version {current_version}, expected {calibration.version})"
                    )
                if row is None:
                    row = SensorCalibrationRow(sensor_id=sensor_id)
                    session.add(row)
                row.active = calibration.active.to_dict() if calibration.active else None
                row.history = [entry.to_dict() for entry in calibration.history]
                row.version = current_version + 1
                row.updated_at = datetime.now(timezone.utc)
                saved = row.to_snapshot()
        except SQLAlchemyError as e:
            raise CalibrationStoreError(f"Failed to save calibration of sensor {sensor_id}: {e}") from e
        return saved

    def sensor_ids(self) -> List[str]:
        try:
            with self._session_factory() as session:
                return list(session.scalars(select(SensorCalibrationRow.sensor_id)))
        except SQLAlchemyError as e:
            raise CalibrationStoreError(f"Failed to list calibrated sensors: {e}") from e


def build_store(database_url: Optional[str], echo: bool = False):
    """SQL store when a database URL is configured, in-memory otherwise."""
    if database_url:
        return SqlCalibrationStore(database_url, echo=echo)
    logger.warning("No database_url configured, calibrations are kept in memory only")
    return InMemoryCalibrationStore()
