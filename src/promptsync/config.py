from typing import Dict, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./promptsync.db"
    store_backend: str = "sql"  # "sql" or "memory"
    api_tokens: Dict[str, str] = {}  # bearer token -> user id
    environment: str = "development"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    sync_enabled: bool = True
    desktop_connected_window_minutes: int = 60
    stale_session_minutes: int = 30
    session_sweep_interval_minutes: int = 5  # 0 disables the sweeper

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
