"""
vestledger - Structured Logging System

Structured logging with:
- Keyword fields rendered as JSON through python-json-logger
- Daily log rotation when a log directory is configured
- Contextual logging with correlation IDs
- Privacy-preserving address truncation and secret redaction
- Vesting-specific event helpers
"""

import logging
import os
import threading
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from typing import Dict, Any, Optional
from contextvars import ContextVar
import hashlib
import time

from .logging_config import CustomJsonFormatter


# Context variable for correlation ID (thread-safe)
correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


class StructuredLogger:
    """
    Structured logger for ledger activity.

    Without a log directory the records propagate to the parent
    ``vestledger`` logger configured by ``setup_logging``. With one, a JSON
    file and a human-readable file are rotated daily.
    """

    def __init__(
        self,
        name: str = "vestledger.events",
        log_dir: Optional[str] = None,
        log_level: str = "INFO",
        backup_count: int = 30,
    ):
        """
        Initialize structured logger

        Args:
            name: Logger name
            log_dir: Directory for log files (no file output when omitted)
            log_level: Minimum log level (DEBUG, INFO, WARN, ERROR, CRITICAL)
            backup_count: Number of rotated files to keep
        """
        self.name = name

        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))

        # Prevent duplicate handlers
        if log_dir and not self.logger.handlers:
            os.makedirs(log_dir, exist_ok=True)
            file_stem = name.lower().replace(".", "_")

            json_handler = TimedRotatingFileHandler(
                os.path.join(log_dir, f"{file_stem}.json.log"),
                when="midnight",
                interval=1,
                backupCount=backup_count,
                encoding="utf-8",
                utc=True,
            )
            json_handler.setFormatter(CustomJsonFormatter(service_name=name.split(".")[0]))
            self.logger.addHandler(json_handler)

            text_handler = TimedRotatingFileHandler(
                os.path.join(log_dir, f"{file_stem}.log"),
                when="midnight",
                interval=1,
                backupCount=backup_count,
                encoding="utf-8",
                utc=True,
            )
            text_formatter = logging.Formatter(
                "[%(asctime)s UTC] %(levelname)-8s [%(correlation_id)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
            text_formatter.converter = lambda *args: datetime.now(timezone.utc).timetuple()
            text_handler.setFormatter(text_formatter)
            text_handler.addFilter(CorrelationIDFilter())
            self.logger.addHandler(text_handler)

        self.log_counts = {"DEBUG": 0, "INFO": 0, "WARN": 0, "ERROR": 0, "CRITICAL": 0}

    def _truncate_address(self, address: str) -> str:
        """Truncate address for privacy"""
        if not address or len(address) < 10:
            return "UNKNOWN"
        return f"{address[:6]}...{address[-4:]}"

    def _sanitize_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Remove sensitive information from data"""
        sensitive_keys = ["private_key", "password", "secret", "api_key", "signature"]
        sanitized = {}

        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in sensitive_keys):
                sanitized[key] = "REDACTED"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_data(value)
            else:
                sanitized[key] = value

        return sanitized

    def _log(self, level: str, message: str, **kwargs):
        """Internal logging method"""
        self.log_counts[level] += 1

        if kwargs:
            kwargs = self._sanitize_data(kwargs)

        corr_id = correlation_id.get()
        if corr_id and "correlation_id" not in kwargs:
            kwargs["correlation_id"] = corr_id

        extra = {"extra_fields": kwargs} if kwargs else {}

        log_level = logging.WARNING if level == "WARN" else getattr(logging, level)
        self.logger.log(log_level, message, extra=extra)

    def debug(self, message: str, **kwargs):
        """Log debug message"""
        self._log("DEBUG", message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message"""
        self._log("INFO", message, **kwargs)

    def warn(self, message: str, **kwargs):
        """Log warning message"""
        self._log("WARN", message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message (alias for warn for Python logging compatibility)"""
        self._log("WARN", message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message"""
        self._log("ERROR", message, **kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message"""
        self._log("CRITICAL", message, **kwargs)

    # Vesting-specific logging methods

    def schedule_created(
        self,
        schedule_id: str,
        beneficiary: str,
        amount: int,
        start: int,
        cliff: int,
        duration: int,
        slice_period_seconds: int,
        revocable: bool,
    ):
        """Log vesting schedule creation"""
        self.info(
            f"Vesting schedule created: {schedule_id[:18]}...",
            event="vesting.created",
            schedule_id=schedule_id,
            beneficiary=self._truncate_address(beneficiary),
            amount=amount,
            start=start,
            cliff=cliff,
            duration=duration,
            slice_period_seconds=slice_period_seconds,
            revocable=revocable,
        )

    def tokens_released(self, schedule_id: str, beneficiary: str, amount: int):
        """Log a release to a beneficiary"""
        self.info(
            f"Released {amount} to {self._truncate_address(beneficiary)}",
            event="vesting.released",
            schedule_id=schedule_id,
            beneficiary=self._truncate_address(beneficiary),
            amount=amount,
        )

    def schedule_revoked(self, schedule_id: str, beneficiary: str, unreleased_forfeited: int):
        """Log a revocation"""
        self.warn(
            f"Vesting schedule revoked: {schedule_id[:18]}...",
            event="vesting.revoked",
            schedule_id=schedule_id,
            beneficiary=self._truncate_address(beneficiary),
            unreleased_forfeited=unreleased_forfeited,
        )

    def treasury_withdrawal(self, authority: str, amount: int):
        """Log a withdrawal of uncommitted tokens"""
        self.info(
            f"Withdrew {amount} uncommitted tokens",
            event="vesting.withdrawn",
            authority=self._truncate_address(authority),
            amount=amount,
        )

    def security_event(self, event_type: str, severity: str = "WARN", **kwargs):
        """Log security event"""
        log_func = self.warn if severity == "WARN" else self.error
        log_func(f"SECURITY: {event_type}", event_type=event_type, security_event=True, **kwargs)

    def get_stats(self) -> Dict[str, Any]:
        """Get logger statistics"""
        return {
            "log_counts": self.log_counts.copy(),
            "total_logs": sum(self.log_counts.values()),
        }


class CorrelationIDFilter(logging.Filter):
    """Filter to add correlation ID to log records"""

    def filter(self, record):
        corr_id = correlation_id.get()
        record.correlation_id = corr_id if corr_id else "NO-ID"
        return True


class LogContext:
    """
    Context manager for correlation ID tracking

    Usage:
        with LogContext() as ctx:
            logger.info("This log will have a correlation ID")
    """

    def __init__(self, custom_id: str = None):
        self.correlation_id = custom_id or self._generate_correlation_id()

    def _generate_correlation_id(self) -> str:
        """Generate unique correlation ID"""
        timestamp = str(time.time()).encode()
        thread_id = str(threading.get_ident()).encode()
        random_data = os.urandom(8)

        hash_input = timestamp + thread_id + random_data
        return hashlib.sha256(hash_input).hexdigest()[:16]

    def __enter__(self):
        self.token = correlation_id.set(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        correlation_id.reset(self.token)


# Global logger instance
_global_structured_logger = None


def get_structured_logger(
    name: str = "vestledger.events", log_dir: Optional[str] = None
) -> StructuredLogger:
    """
    Get global structured logger instance

    Args:
        name: Logger name
        log_dir: Directory for rotated JSON and text logs (first call only)

    Returns:
        StructuredLogger instance
    """
    global _global_structured_logger
    if _global_structured_logger is None:
        _global_structured_logger = StructuredLogger(name, log_dir=log_dir)
    return _global_structured_logger
