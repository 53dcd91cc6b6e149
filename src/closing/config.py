"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from .env or CLOSING_* environment variables."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "CLOSING_"}

    # Stand-in for an authenticated user until real auth exists
    mock_user_id: str = "user-1"

    # Push Notifications
    pushover_user_key: str = ""
    pushover_api_token: str = ""
    ntfy_topic: str = ""
    ntfy_server: str = "https://ntfy.sh"

    # Application
    data_dir: str = "./data"
    db_name: str = "closing.db"
    default_closing_days: int = 45
    web_host: str = "127.0.0.1"
    web_port: int = 5001

    @property
    def data_path(self) -> Path:
        p = Path(self.data_dir).expanduser()
        p.mkdir(parents=True, exist_ok=True)
        return p

    @property
    def db_path(self) -> Path:
        return self.data_path / self.db_name

    def has_pushover(self) -> bool:
        return bool(self.pushover_user_key and self.pushover_api_token)

    def has_ntfy(self) -> bool:
        return bool(self.ntfy_topic)


def get_settings() -> Settings:
    return Settings()
