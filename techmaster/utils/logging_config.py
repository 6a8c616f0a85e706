"""
Centralized logging configuration for the TechMaster Weekly pipeline.

This module provides consistent logging across all services with:
- Color-coded console output for development
- File logging for production debugging
- Structured JSON logging for analysis
- Performance tracking for pipeline stages
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs for analysis."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        # Add extra fields if present
        if hasattr(record, 'extra_data'):
            log_entry['extra'] = record.extra_data

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for better development experience."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.COLORS.get(record.levelname, '')
        reset = self.RESET

        # Format: [TIMESTAMP] LEVEL [MODULE] MESSAGE
        formatted = f"{color}[{self.formatTime(record, '%H:%M:%S')}] {record.levelname:8} [{record.name:20}] {record.getMessage()}{reset}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    enable_file_logging: bool = True,
    enable_structured_logging: bool = False
) -> None:
    """
    Configure centralized logging for the newsletter pipeline.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (defaults to 'logs')
        enable_file_logging: Whether to write logs to files
        enable_structured_logging: Whether to use JSON structured logging
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if enable_structured_logging:
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler.setFormatter(ColoredConsoleFormatter())

    root_logger.addHandler(console_handler)

    if enable_file_logging:
        log_path = Path(log_dir) if log_dir else Path.cwd() / "logs"
        log_path.mkdir(parents=True, exist_ok=True)

        # Daily rotating file handler for all logs
        daily_handler = logging.handlers.TimedRotatingFileHandler(
            log_path / "techmaster.log",
            when='midnight',
            backupCount=7,
            encoding='utf-8'
        )
        daily_handler.setLevel(logging.DEBUG)

        if enable_structured_logging:
            daily_handler.setFormatter(StructuredFormatter())
        else:
            daily_handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s'
            ))

        root_logger.addHandler(daily_handler)

        # Separate error log for failed stages and deliveries
        error_handler = logging.FileHandler(
            log_path / "errors.log",
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)s:%(lineno)d | %(message)s'
        ))

        root_logger.addHandler(error_handler)

    configure_pipeline_loggers()


def configure_pipeline_loggers() -> None:
    """Quiet noisy third-party loggers."""
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('aiosqlite').setLevel(logging.WARNING)
    # premailer reports every unsupported CSS property
    logging.getLogger('cssutils').setLevel(logging.ERROR)


class PerformanceTracker:
    """Context manager for tracking operation performance."""

    def __init__(self, operation_name: str, logger: Optional[logging.Logger] = None):
        self.operation_name = operation_name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time: Optional[datetime] = None
        self.duration_ms: float = 0.0

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.debug(f"⏱️ Starting: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time:
            duration = datetime.now() - self.start_time
            self.duration_ms = duration.total_seconds() * 1000

            if exc_type:
                self.logger.error(f"💥 Failed: {self.operation_name} ({self.duration_ms:.1f}ms) - {exc_val}")
            else:
                self.logger.info(f"✅ Completed: {self.operation_name} ({self.duration_ms:.1f}ms)")
        return False


def log_ai_interaction(
    logger: logging.Logger,
    model: str,
    tokens_used: int,
    response_time_ms: float,
    success: bool,
    **extra_data
):
    """Log generation service interactions for monitoring and analysis."""
    interaction = {
        'model': model,
        'tokens_used': tokens_used,
        'response_time_ms': response_time_ms,
        'success': success,
        **extra_data
    }

    status = "✅" if success else "❌"
    logger.info(
        f"{status} AI: {model} | {tokens_used} tokens | {response_time_ms:.1f}ms",
        extra={'extra_data': interaction}
    )
