from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from pythonjsonlogger import jsonlogger

LOG_FILE_PREFIX = "mail2line"
# Chatty client libraries stay at WARNING even when the app runs with DEBUG.
QUIET_LOGGERS = ("googleapiclient.discovery_cache", "urllib3")


class CorrelationIdFilter(logging.Filter):
    def __init__(self, correlation_id: str):
        super().__init__()
        self._correlation_id = correlation_id

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = self._correlation_id
        return True


def parse_level(value: str | int | None, default: int = logging.INFO) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else default


def configure_logging(log_dir: Path, correlation_id: str, level: int = logging.INFO) -> None:
    """Send records to the console, a daily text log and a daily JSON-lines log."""
    log_dir.mkdir(parents=True, exist_ok=True)
    utc_day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    text_path = log_dir / f"{LOG_FILE_PREFIX}-{utc_day}.log"
    json_path = log_dir / f"{LOG_FILE_PREFIX}-{utc_day}.jsonl"

    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
    root.handlers.clear()
    root.setLevel(level)

    correlation_filter = CorrelationIdFilter(correlation_id)

    text_formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    json_formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(correlation_id)s %(message)s"
    )

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(text_formatter)

    text_handler = logging.FileHandler(text_path, encoding="utf-8")
    text_handler.setFormatter(text_formatter)

    json_handler = logging.FileHandler(json_path, encoding="utf-8")
    json_handler.setFormatter(json_formatter)

    for handler in (stream_handler, text_handler, json_handler):
        handler.addFilter(correlation_filter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str, correlation_id: str) -> logging.LoggerAdapter:
    base_logger = logging.getLogger(name)
    return logging.LoggerAdapter(base_logger, extra={"correlation_id": correlation_id})
