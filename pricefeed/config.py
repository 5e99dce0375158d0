from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from dotenv import load_dotenv
from sqlalchemy.engine import URL

load_dotenv()


@dataclass(slots=True)
class Settings:
    """Central configuration driven by environment variables."""

    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8080"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    api_base_url: str | None = os.getenv("API_BASE_URL")
    request_timeout_seconds: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "60"))

    database_url_raw: str | None = os.getenv("DATABASE_URL")
    db_driver: str = os.getenv("DB_DRIVER", "mysql+pymysql")
    db_user: str | None = os.getenv("DB_USER")
    db_password: str | None = os.getenv("DB_PASS")
    db_host: str | None = os.getenv("DB_HOST")
    db_name: str | None = os.getenv("DB_NAME")

    data_dir: Path = field(default_factory=lambda: Path(os.getenv("DATA_DIR", "./data")))
    sqlite_filename: str = os.getenv("SQLITE_FILENAME", "prices.db")

    ingest_batch_size: int = int(os.getenv("INGEST_BATCH_SIZE", "1000"))
    default_page_limit: int = int(os.getenv("DEFAULT_PAGE_LIMIT", "10"))
    max_page_limit: int = int(os.getenv("MAX_PAGE_LIMIT", "1000"))
    max_reported_skips: int = int(os.getenv("MAX_REPORTED_SKIPS", "50"))

    def ensure_paths(self) -> None:
        """Create expected directories if they do not exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        (self.data_dir / "export").mkdir(parents=True, exist_ok=True)

    @property
    def resolved_api_base_url(self) -> str:
        if self.api_base_url:
            return self.api_base_url.rstrip("/")
        host = "127.0.0.1" if self.api_host == "0.0.0.0" else self.api_host
        return f"http://{host}:{self.api_port}"

    @property
    def sqlite_path(self) -> Path:
        return self.data_dir / self.sqlite_filename

    @property
    def database_url(self) -> str | URL:
        """DATABASE_URL wins; otherwise build from DB_* parts, falling back to a local sqlite file."""
        if self.database_url_raw:
            return self.database_url_raw
        if self.db_host:
            host, _, port = self.db_host.partition(":")
            return URL.create(
                self.db_driver,
                username=self.db_user or None,
                password=self.db_password or None,
                host=host,
                port=int(port) if port else None,
                database=self.db_name or None,
            )
        self.ensure_paths()
        return f"sqlite:///{self.sqlite_path}"


# Singleton-style settings import
settings: Final[Settings] = Settings()
