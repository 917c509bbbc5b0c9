"""Shared test fixtures."""
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from attendance.models.sync import SyncLog  # noqa: F401
from attendance.models.record import LogSchema
from attendance.storage.event_log import EventLog

V2_HEADER = "date,time,student_id,student_name,status,synced\n"
V1_HEADER = "date,student_id,status,synced\n"


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="log_path")
def log_path_fixture(tmp_path: Path) -> Path:
    return tmp_path / "attendance.csv"


@pytest.fixture(name="event_log")
def event_log_fixture(log_path: Path) -> EventLog:
    """A fresh V2 log (header only) on disk."""
    log = EventLog(log_path)
    log.open()
    return log


@pytest.fixture(name="v1_log")
def v1_log_fixture(log_path: Path) -> EventLog:
    """A legacy V1 log holding two unsynced records."""
    log_path.write_text(V1_HEADER + "19/5,1,present,0\n19/5,2,present,0\n", encoding="utf-8")
    return EventLog(log_path, schema=LogSchema.V2)
