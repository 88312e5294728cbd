"""Logging configuration with correlation IDs, structured output and URL redaction.

Each detection run executes inside a ``CorrelationContext`` so every log line a
run produces (decoder, extractor, classifier, backends) can be grouped by its
run id. Model sources are frequently pre-signed URLs; the formatters strip
credentials and query strings from anything that looks like one.
"""
import json
import logging
import logging.handlers
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

# Run id of the detection currently executing. Worker threads see it because
# the pipeline submits work through contextvars.copy_context().
correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

NO_CORRELATION_ID = '-'

_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'correlation_id', 'message', 'asctime',
}


class CorrelationIDFilter(logging.Filter):
    """Filter to add correlation IDs to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or NO_CORRELATION_ID
        return True


class RedactingFormatter(logging.Formatter):
    """Formatter that strips secrets from model URLs and credentials."""

    SENSITIVE_PATTERNS = [
        # user:password@host in URLs
        (re.compile(r'(https?://)[^/\s:@]+:[^/\s@]+@'), r'\1[REDACTED]@'),
        # query strings of http(s) URLs (pre-signed S3 links carry signatures there)
        (re.compile(r'(https?://[^\s?"\']+)\?[^\s"\']+'), r'\1?[REDACTED]'),
        (re.compile(r'(?i)(api[_-]?key["\s]*[:=]["\s]*)[a-zA-Z0-9_-]+'), r'\1[REDACTED]'),
        (re.compile(r'(?i)(token["\s]*[:=]["\s]*)[a-zA-Z0-9_.-]+'), r'\1[REDACTED]'),
    ]

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        return self.redact(formatted)

    @classmethod
    def redact(cls, text: str) -> str:
        for pattern, replacement in cls.SENSITIVE_PATTERNS:
            text = pattern.sub(replacement, text)
        return text


class StructuredFormatter(RedactingFormatter):
    """Structured JSON formatter for production logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'correlation_id': getattr(record, 'correlation_id', NO_CORRELATION_ID),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info),
            }

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        }
        if extra_fields:
            log_entry['extra'] = extra_fields

        return self.redact(json.dumps(log_entry, default=str))


class HumanReadableFormatter(RedactingFormatter):
    """Human-readable formatter for development and console output."""

    def __init__(self, include_correlation_id: bool = True):
        self.include_correlation_id = include_correlation_id
        format_string = (
            '%(asctime)s - %(name)s - %(levelname)s'
            + (' - %(correlation_id)s' if include_correlation_id else '')
            + ' - %(message)s'
        )
        super().__init__(format_string)


class LoggingManager:
    """Installs the application's handlers on the root logger."""

    def __init__(self):
        self._configured = False
        self._log_dir: Optional[Path] = None
        self._handlers: Dict[str, logging.Handler] = {}

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: str = 'INFO',
        log_dir: Optional[Union[str, Path]] = None,
        enable_file_logging: bool = False,
        enable_console_logging: bool = True,
        structured_logging: bool = False,
        max_file_size: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        application_name: str = 'fishfinder'
    ) -> None:
        """Configure logging for the application.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files
            enable_file_logging: Write ``<name>.log`` and ``<name>-errors.log``
            enable_console_logging: Log to stderr (stdout carries the report)
            structured_logging: One JSON object per line instead of plain text
            max_file_size: Maximum size of log files before rotation
            backup_count: Number of rotated files to keep
            application_name: Base name of the log files
        """
        if self._configured:
            return

        level = getattr(logging, log_level.upper(), logging.INFO)
        formatter = StructuredFormatter() if structured_logging else HumanReadableFormatter()

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        if enable_console_logging:
            self._install('console', logging.StreamHandler(sys.stderr), level, formatter)

        if enable_file_logging:
            self._log_dir = Path(log_dir or 'logs')
            self._log_dir.mkdir(parents=True, exist_ok=True)
            for key, suffix, handler_level in (
                ('application', '', level),
                ('errors', '-errors', logging.ERROR),
            ):
                handler = logging.handlers.RotatingFileHandler(
                    self._log_dir / f'{application_name}{suffix}.log',
                    maxBytes=max_file_size,
                    backupCount=backup_count,
                    encoding='utf-8'
                )
                self._install(key, handler, handler_level, formatter)

        for noisy in ('PIL', 'urllib3', 'requests', 'ultralytics'):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        self._configured = True
        logging.getLogger(__name__).info(
            f"Logging configured - Level: {log_level}, handlers: {sorted(self._handlers)}"
        )

    def _install(self, key: str, handler: logging.Handler, level: int,
                 formatter: logging.Formatter) -> None:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationIDFilter())
        logging.getLogger().addHandler(handler)
        self._handlers[key] = handler

    def shutdown(self) -> None:
        """Close all handlers and allow reconfiguration."""
        root_logger = logging.getLogger()
        for handler in self._handlers.values():
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()
        self._configured = False


logging_manager = LoggingManager()


def configure_logging_from_config(config) -> None:
    """Configure logging from a ``Config`` object."""
    logging_manager.configure(
        log_level=config.log_level,
        log_dir=config.log_dir,
        enable_file_logging=config.enable_file_logging,
        structured_logging=config.structured_logging,
    )


def get_correlation_id() -> Optional[str]:
    return correlation_id.get()


class CorrelationContext:
    """Scope a correlation ID; a fresh short id is generated when none is given."""

    def __init__(self, corr_id: Optional[str] = None):
        self.corr_id = corr_id or uuid.uuid4().hex[:12]
        self._token = None

    def __enter__(self) -> str:
        self._token = correlation_id.set(self.corr_id)
        return self.corr_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        correlation_id.reset(self._token)
