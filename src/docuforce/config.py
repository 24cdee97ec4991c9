"""Environment-based configuration and application constants."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from docuforce.constants import (
    DEFAULT_DATA_DIR,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_REVIEW_MAX_CONCURRENCY,
    DEFAULT_REVIEW_TIMEOUT_SECONDS,
    DEFAULT_REVIEWER_MODEL,
    DEFAULT_REVIEWER_NAME,
)

logger = logging.getLogger(__name__)

# Subject language → import path for its tree-sitter grammar.
# Every entry has a bundled query under extraction/queries/<language>.scm.
GRAMMAR_MODULES: dict[str, str] = {
    "rust": "tree_sitter_rust",
    "go": "tree_sitter_go",
    "javascript": "tree_sitter_javascript",
}

# File extension → subject language, used when --language is not given.
EXTENSION_MAP: dict[str, str] = {
    ".rs": "rust",
    ".go": "go",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
}


class Settings(BaseSettings):
    """Reads from .env file and environment variables."""

    # Reviewer
    openai_api_key: str = ""
    reviewer_name: str = DEFAULT_REVIEWER_NAME
    reviewer_model: str = DEFAULT_REVIEWER_MODEL

    # Extraction
    subject_language: str = "rust"
    query_path: Path | None = None

    # Storage
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    database_url: str = f"sqlite:///{DEFAULT_DATA_DIR}/cache.db"

    # Logging
    log_dir: Path = Path(DEFAULT_DATA_DIR) / "logs"
    log_level: str = "WARNING"

    # Review rounds
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    review_timeout_seconds: float = DEFAULT_REVIEW_TIMEOUT_SECONDS
    review_max_concurrency: int = DEFAULT_REVIEW_MAX_CONCURRENCY
    fingerprint_includes_name: bool = False

    @field_validator("subject_language")
    @classmethod
    def _validate_language(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in GRAMMAR_MODULES:
            raise ValueError(
                f"unsupported language {v!r}; "
                f"expected one of: {', '.join(sorted(GRAMMAR_MODULES))}"
            )
        return v

    @field_validator("poll_interval_seconds")
    @classmethod
    def _validate_poll_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        return v

    @field_validator("review_timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError(
                "review_timeout_seconds must be >= 0 (0 disables it)"
            )
        if v == 0:
            logger.warning(
                "Review deadline disabled; rounds poll until the "
                "remote run reaches a terminal status"
            )
        return v

    @field_validator("review_max_concurrency")
    @classmethod
    def _validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("review_max_concurrency must be at least 1")
        return v

    @property
    def review_deadline(self) -> float | None:
        """Polling deadline in seconds, or None when unbounded."""
        return self.review_timeout_seconds or None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "",
        "extra": "ignore",
    }


def language_for_path(path: Path) -> str | None:
    """Guess the subject language from a file extension."""
    return EXTENSION_MAP.get(path.suffix)


def sqlite_database_path(url: str) -> Path | None:
    """Return the database file behind a SQLite URL.

    In-memory and non-SQLite URLs return None.
    """
    for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
        if url.startswith(prefix):
            raw = url[len(prefix):]
            if not raw or raw == ":memory:":
                return None
            return Path(raw)
    return None


def create_app_engine(
    url: str, *, echo: bool = False
) -> AsyncEngine:
    """Create async SQLite engine with WAL journal mode.

    Handles URL conversion (sqlite:/// → sqlite+aiosqlite:///)
    and sets WAL mode via a pool-connect event listener so it
    fires once per raw DBAPI connection, not per ORM session.
    """
    if url.startswith("sqlite:///"):
        db_url = "sqlite+aiosqlite:///" + url[len("sqlite:///"):]
    else:
        db_url = url
    engine = create_async_engine(db_url, echo=echo)

    @event.listens_for(engine.sync_engine, "connect")
    def _set_wal_mode(
        dbapi_conn: object,
        _connection_record: object,
    ) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[union-attr]
        cursor.execute("PRAGMA journal_mode=WAL")  # pyright: ignore[reportUnknownMemberType]
        cursor.close()  # pyright: ignore[reportUnknownMemberType]

    return engine
