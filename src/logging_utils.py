import logging
import uuid
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from src.config import Config

LOG_DIR = Path(Config.LOGGING.DIR)
LOG_FILE_NAME = "relay.log"
KEEP_DAYS = Config.LOGGING.KEEP_DAYS

# One rotating handler per log file; every StructuredLogger writing there shares it
_file_handlers: dict[Path, TimedRotatingFileHandler] = {}


def _file_handler() -> TimedRotatingFileHandler:
    """Return the midnight-rotating handler for LOG_DIR, creating it on first use."""
    log_path = LOG_DIR / LOG_FILE_NAME
    handler = _file_handlers.get(log_path)
    if handler is None:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = TimedRotatingFileHandler(
            log_path,
            when="midnight",
            backupCount=KEEP_DAYS,
            encoding="utf-8",
            utc=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        _file_handlers[log_path] = handler
    return handler


class StructuredLogger:
    """
    Request-tagged logger for the relay.

    Lines look like
    `2026-10-19 08:15:02.113 | INFO     | relay:req-1a2b3c4d5e6f - message - k=v`
    and go to stdout and to LOG_DIR/relay.log. The file rolls over at UTC
    midnight and KEEP_DAYS rotated files are retained.
    """

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.logger = logging.getLogger(service_name)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        self.logger.handlers.clear()

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        self.logger.addHandler(console_handler)
        self.logger.addHandler(_file_handler())

    def format_line(
        self,
        level: str,
        message: str,
        context: Optional[dict[str, Any]],
        request_id: str,
    ) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        prefix = f"{timestamp} | {level.ljust(8)} | {self.service_name}:{request_id}"
        line = f"{prefix} - {message}"
        if context:
            line += " - " + " ".join(f"{k}={v}" for k, v in context.items())
        return line

    def log(
        self,
        level: str,
        message: str,
        context: Optional[dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        line = self.format_line(
            level, message, context, request_id or generate_request_id()
        )
        self.logger.log(logging.getLevelName(level), line)

    def info(
        self,
        message: str,
        context: Optional[dict] = None,
        request_id: Optional[str] = None,
    ):
        self.log("INFO", message, context, request_id)

    def debug(
        self,
        message: str,
        context: Optional[dict] = None,
        request_id: Optional[str] = None,
    ):
        self.log("DEBUG", message, context, request_id)

    def warning(
        self,
        message: str,
        context: Optional[dict] = None,
        request_id: Optional[str] = None,
    ):
        self.log("WARNING", message, context, request_id)

    def error(
        self,
        message: str,
        context: Optional[dict] = None,
        request_id: Optional[str] = None,
    ):
        self.log("ERROR", message, context, request_id)


def generate_request_id() -> str:
    """Generate a unique request ID for distributed tracing"""
    return f"req-{uuid.uuid4().hex[:12]}"


def _log_files_newest_first() -> list[Path]:
    current = LOG_DIR / LOG_FILE_NAME
    rotated = sorted(LOG_DIR.glob(f"{LOG_FILE_NAME}.*"), reverse=True)
    return ([current] if current.exists() else []) + rotated


def get_logs_by_request_id(request_id: str, max_lines: int = 1000) -> list[str]:
    """Search the current and rotated log files for entries matching a request ID."""
    matching_logs: list[str] = []

    for log_file in _log_files_newest_first():
        try:
            with open(log_file, "r", encoding="utf-8") as f:
                for line in f:
                    if request_id in line:
                        matching_logs.append(line.strip())
                        if len(matching_logs) >= max_lines:
                            return matching_logs
        except OSError:
            continue

    return matching_logs
