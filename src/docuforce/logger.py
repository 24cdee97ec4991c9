"""Structured JSON logger for finished review rounds."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from docuforce.constants import ERROR_TRUNCATION_CHARS

__all__ = ["ReviewLogger"]


class ReviewLogger:
    """Appends one JSON line per round to ``<log_dir>/review.log``."""

    def __init__(self, log_dir: Path, level: str = "INFO") -> None:
        self._log_dir = log_dir
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._logger = logging.getLogger("docuforce.rounds")
        self._logger.setLevel(getattr(logging, level.upper()))
        self._logger.propagate = False

        log_file = (log_dir / "review.log").resolve()
        if not any(
            isinstance(h, logging.FileHandler)
            and Path(h.baseFilename) == log_file
            for h in self._logger.handlers
        ):
            handler = logging.FileHandler(log_file)
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)

    @property
    def path(self) -> Path:
        return self._log_dir / "review.log"

    def log_round(
        self,
        fingerprint: str,
        name: str,
        outcome: str,
        duration_ms: float,
        error: str | None = None,
    ) -> None:
        record = {
            "type": "round",
            "timestamp": datetime.now(UTC).isoformat(),
            "fingerprint": fingerprint,
            "name": name,
            "outcome": outcome,
            "duration_ms": round(duration_ms, 1),
            "error": error[:ERROR_TRUNCATION_CHARS] if error else None,
        }
        if error:
            self._logger.error(json.dumps(record))
        else:
            self._logger.info(json.dumps(record))

    def close(self) -> None:
        """Detach and close file handlers (tests reuse the logger name)."""
        for handler in list(self._logger.handlers):
            if isinstance(handler, logging.FileHandler):
                handler.close()
                self._logger.removeHandler(handler)
