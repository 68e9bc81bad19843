from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


ROOT_LOGGER = "reconurl"
# autocorrect and path-extraction fallbacks of the parser are logged here
DIAGNOSTICS_LOGGER = f"{ROOT_LOGGER}.diagnostics"

DEFAULT_LOG_FILE = Path(".reconurl") / "reconurl.log"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_log_level(level: str | int) -> int:
    """Level name (any case) or number; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName((level or "").upper().strip())
    return value if isinstance(value, int) else logging.INFO


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    return handler


def configure_logging(
    *,
    level: str = "INFO",
    log_file: str | Path | None = None,
    enable_file: bool = True,
) -> Path | None:
    """
    (Re)configure the package logger: console at `level`, file at DEBUG.
    Safe to call once per CLI invocation; previous handlers are closed.
    Returns the log file path, or None when file logging is off.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG)
    root.propagate = False
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    root.addHandler(_handler(logging.StreamHandler(), resolve_log_level(level)))
    if not enable_file:
        return None

    file_path = Path(log_file) if log_file else DEFAULT_LOG_FILE
    file_path.parent.mkdir(parents=True, exist_ok=True)
    root.addHandler(_handler(logging.FileHandler(file_path, encoding="utf-8"), logging.DEBUG))
    return file_path


def get_logger(name: str) -> logging.Logger:
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def diagnostics_logger() -> logging.Logger:
    return logging.getLogger(DIAGNOSTICS_LOGGER)


class DiagnosticsCollector(logging.Handler):
    """Keeps parser diagnostics in memory so they can be returned with a result."""

    def __init__(self) -> None:
        super().__init__(logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def messages(self) -> list[str]:
        return [f"{r.levelname.lower()}: {r.getMessage()}" for r in self.records]


@contextmanager
def collect_diagnostics() -> Iterator[DiagnosticsCollector]:
    logger = diagnostics_logger()
    collector = DiagnosticsCollector()
    previous = logger.level
    # autocorrect records are DEBUG, collect them whatever the console level
    logger.setLevel(logging.DEBUG)
    logger.addHandler(collector)
    try:
        yield collector
    finally:
        logger.removeHandler(collector)
        logger.setLevel(previous)
