from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    log_path: Path = Path("./attendance.csv")
    log_schema: str = "v2"  # only used when creating a new log; "v1" or "v2"
    collector_url: str = ""
    sheet_name: str = "Attendance"
    batch_command: str = "batch_attendance"
    http_timeout_seconds: float = 20.0
    treat_read_timeout_as_delivered: bool = True
    sync_interval_minutes: int = 15
    database_url: str = "sqlite:///./attendance.db"
    roster_path: Optional[Path] = None
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
