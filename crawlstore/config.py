"""Centralised settings for crawlstore.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CRAWLSTORE_WORKSPACE", Path.home() / ".crawlstore")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "frontier.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    busy_timeout: float = field(
        default_factory=lambda: float(os.environ.get("CRAWLSTORE_BUSY_TIMEOUT", "5.0"))
    )

    # ------------------------------------------------------------------
    # Logging / CLI
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("CRAWLSTORE_LOG_LEVEL", "INFO")
    )
    frontier_page: int = field(
        default_factory=lambda: int(os.environ.get("CRAWLSTORE_FRONTIER_PAGE", "20"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton — import this everywhere:
#   from crawlstore.config import settings
settings = Settings()
