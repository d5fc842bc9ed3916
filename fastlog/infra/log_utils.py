import logging
from datetime import datetime, timezone
from pathlib import Path

LOGGER_NAME = "fastlog"

logger = logging.getLogger(LOGGER_NAME)


class _HistoryFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        return f"[{ts}] [{record.levelname}] {record.getMessage()}"


def configure(log_path: Path, level: str = "INFO") -> None:
    """Attach a file handler that appends timestamped lines to log_path."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(_HistoryFormatter())
    logger.addHandler(handler)
    logger.setLevel(level.upper())


def log_message(msg: str, level: str = "INFO") -> None:
    """Append a timestamped message to the fastlog history log."""
    # WARN is accepted as an alias, callers use both spellings.
    name = "WARNING" if level.upper() == "WARN" else level.upper()
    logger.log(logging.getLevelName(name), msg)
