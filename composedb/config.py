"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class ComposeDBSettings(BaseSettings):
    db_path: Path = Path("composes.db")
    migrations_dir: Path | None = None  # None = packaged catalog
    log_level: str = "INFO"
    log_json: bool = False

    # Seconds to wait on SQLite locks (the migration lock included)
    lock_timeout: float = 60.0
    query_timeout: float = 5.0

    model_config = {"env_prefix": "COMPOSEDB_"}


settings = ComposeDBSettings()
