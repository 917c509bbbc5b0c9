"""Tests for environment-driven settings."""
from pathlib import Path

from attendance.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("COLLECTOR_URL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.log_path == Path("./attendance.csv")
        assert settings.log_schema == "v2"
        assert settings.collector_url == ""
        assert settings.batch_command == "batch_attendance"
        assert settings.http_timeout_seconds == 20.0
        assert settings.treat_read_timeout_as_delivered is True

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("COLLECTOR_URL", "https://collector.example/exec")
        monkeypatch.setenv("SYNC_INTERVAL_MINUTES", "5")
        monkeypatch.setenv("TREAT_READ_TIMEOUT_AS_DELIVERED", "false")
        monkeypatch.setenv("ROSTER_PATH", "/etc/attendance/roster.json")

        settings = Settings(_env_file=None)

        assert settings.collector_url == "https://collector.example/exec"
        assert settings.sync_interval_minutes == 5
        assert settings.treat_read_timeout_as_delivered is False
        assert settings.roster_path == Path("/etc/attendance/roster.json")
