import json
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Final

from jarvis_voice.config.paths import log_dir
from jarvis_voice.config.settings import Settings
from jarvis_voice.core.trace import get_trace_id

ROOT_LOGGER: Final[str] = "jarvis_voice"


class JsonFormatter(logging.Formatter):
    """Serialize log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "category": record.name,
            "message": record.getMessage(),
            "trace_id": get_trace_id() or None,
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, ensure_ascii=False)


class SizeAndTimeRotatingFileHandler(TimedRotatingFileHandler):
    """Rotate on size as well as on time."""

    def __init__(
        self,
        filename: str | Path,
        max_bytes: int = 0,
        backup_count: int = 0,
        when: str = "midnight",
        interval: int = 1,
        encoding: str | None = "utf-8",
        delay: bool = False,
        utc: bool = False,
        atTime=None,
    ) -> None:
        self.maxBytes = max_bytes
        super().__init__(
            str(filename),
            when=when,
            interval=interval,
            backupCount=backup_count,
            encoding=encoding,
            delay=delay,
            utc=utc,
            atTime=atTime,
        )

    def shouldRollover(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if self.maxBytes > 0:
            if self.stream is None:  # pragma: no cover - delay=True
                self.stream = self._open()
            msg = f"{self.format(record)}\n"
            enc = self.encoding
            if not isinstance(enc, str) or enc.lower() == "locale":
                enc = "utf-8"
            if (self.stream.tell() + len(msg.encode(enc))) >= self.maxBytes:
                return True
        return super().shouldRollover(record)


def configure_logging(settings: Settings, *, console: bool = True) -> logging.Logger:
    """Attach the JSON file handler (and a console handler) to the package logger."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(settings.log_level.upper())
    if any(isinstance(handler, SizeAndTimeRotatingFileHandler) for handler in logger.handlers):
        return logger

    handler = SizeAndTimeRotatingFileHandler(
        log_dir(settings) / f"{ROOT_LOGGER}.jsonl",
        max_bytes=settings.log_rotate_mb * 1024 * 1024,
        backup_count=settings.log_retention_days,
    )
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(logging.Formatter("[%(name)s] %(levelname)s %(message)s"))
        logger.addHandler(stream)
    return logger
