"""Integration tests for /sync routes."""
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from attendance.models.sync import SyncLog, SyncReport
from attendance.api.main import create_app
from attendance.api.routes import sync as sync_routes
from attendance.deps import get_history
from attendance.storage.event_log import LogIOError
from attendance.sync.history import SyncHistory


@pytest.fixture(name="client")
def client_fixture(engine):
    app = create_app()
    app.dependency_overrides[get_history] = lambda: SyncHistory(engine)
    with patch("attendance.api.main.get_engine", return_value=engine), TestClient(app) as c:
        yield c


class TestSyncRoutes:
    def test_trigger_returns_200(self, client):
        # Patch _do_sync so the background task doesn't hit the collector
        with patch("attendance.api.routes.sync._do_sync", new=MagicMock()) as mock_sync:
            resp = client.post("/sync/trigger")
        assert resp.status_code == 200
        assert "started" in resp.json()["message"].lower()
        mock_sync.assert_called_once()

    def test_status_never_run(self, client):
        resp = client.get("/sync/status")
        assert resp.status_code == 200
        assert resp.json()["status"] == "never_run"

    def test_status_after_log_created(self, client, engine):
        with Session(engine) as s:
            s.add(SyncLog(
                started_at=datetime(2025, 5, 17, 9, 0, tzinfo=timezone.utc),
                finished_at=datetime(2025, 5, 17, 9, 1, tzinfo=timezone.utc),
                status="success",
                records_attempted=4,
                records_synced=4,
            ))
            s.commit()
        resp = client.get("/sync/status")
        assert resp.status_code == 200
        assert resp.json()["status"] == "success"
        assert resp.json()["records_synced"] == 4

    def test_status_returns_most_recent(self, client, engine):
        with Session(engine) as s:
            s.add(SyncLog(
                started_at=datetime(2025, 5, 17, 9, 0, tzinfo=timezone.utc),
                status="success",
            ))
            s.add(SyncLog(
                started_at=datetime(2025, 5, 17, 9, 15, tzinfo=timezone.utc),
                status="rejected",
                error_message="HTTP 500",
            ))
            s.commit()
        resp = client.get("/sync/status")
        assert resp.json()["status"] == "rejected"
        assert resp.json()["error_message"] == "HTTP 500"


class TestDoSync:
    def test_runs_one_cycle(self):
        coordinator = MagicMock()
        coordinator.run_cycle.return_value = SyncReport.nothing_to_sync()
        with patch("attendance.api.routes.sync.get_coordinator", return_value=coordinator):
            sync_routes._do_sync()
        coordinator.run_cycle.assert_called_once_with()

    def test_log_error_is_logged_not_raised(self, caplog):
        coordinator = MagicMock()
        coordinator.run_cycle.side_effect = LogIOError("flash unreadable")
        with patch("attendance.api.routes.sync.get_coordinator", return_value=coordinator):
            sync_routes._do_sync()
        assert "On-demand sync failed" in caplog.text
