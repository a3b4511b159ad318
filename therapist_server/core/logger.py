import json
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from therapist_server.core.config import get_settings
from therapist_server.core.trace import get_trace_id


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
        encoding: str | None = None,
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
            if self.stream is None:  # pragma: no cover - opened lazily
                self.stream = self._open()
            msg = f"{self.format(record)}\n"
            enc = self.encoding
            if not isinstance(enc, str) or enc.lower() == "locale":
                enc = "utf-8"
            if (self.stream.tell() + len(msg.encode(enc))) >= self.maxBytes:
                return True
        return super().shouldRollover(record)


def _build_logger(name: str, file_path: Path | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:  # already configured
        return logger

    settings = get_settings()
    if file_path is None:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_path = log_dir / f"{name}.jsonl"
    handler = SizeAndTimeRotatingFileHandler(
        file_path,
        max_bytes=settings.log_rotate_mb * 1024 * 1024,
        backup_count=settings.log_retention_days,
        encoding="utf-8",
        delay=True,
    )
    handler.setFormatter(JsonFormatter())
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger


_LOGGERS: dict[str, logging.Logger] = {}


def get_logger(name: str) -> logging.Logger:
    """Return the named JSON logger, creating it on first use."""
    if name not in _LOGGERS:
        _LOGGERS[name] = _build_logger(name)
    return _LOGGERS[name]
