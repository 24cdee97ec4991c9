"""Singleton logging configuration.

setup_logging() takes the level explicitly (the CLI passes
``Settings.log_level``) so nothing is read from or written to the
process environment. Idempotent via a module-level flag.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

# Third-party loggers to suppress to WARNING
_SUPPRESSED_LOGGERS = (
    "openai",
    "openai._base_client",
    "httpx",
    "httpcore",
    "aiosqlite",
)

_configured = False


def setup_logging(level: str = "WARNING") -> None:
    """Configure the root logger at *level* and quiet chatty libraries.

    Second call is a no-op, so the CLI can call this before it knows
    whether a command will run.
    """
    global _configured  # noqa: PLW0603
    if _configured:
        return
    resolved = _resolve_level(level)
    _configured = True

    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    for name in _SUPPRESSED_LOGGERS:
        lg = logging.getLogger(name)
        lg.setLevel(logging.WARNING)


def _resolve_level(level: str) -> int:
    """Map a level name to its numeric value, rejecting unknown names."""
    resolved = logging.getLevelNamesMapping().get(level.upper())
    if resolved is None:
        raise ValueError(f"unknown log level: {level!r}")
    return resolved
