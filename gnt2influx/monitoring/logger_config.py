"""
Structured logging configuration for the ingestion pipeline.
"""

import logging
import logging.handlers
import os
import time
import structlog
from typing import Any, Dict, Optional


# Config level names -> stdlib levels
LOG_LEVELS = {
    'error': logging.ERROR,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'info': logging.INFO,
    'debug': logging.DEBUG,
    'trace': logging.DEBUG,
}


def resolve_log_level(config_level: Optional[str], verbose: bool = False) -> int:
    """--verbose wins over the configured level; unknown names mean INFO."""
    if verbose:
        return logging.DEBUG
    return LOG_LEVELS.get((config_level or '').strip().lower(), logging.INFO)


class IngestionLogger:
    """Configures structured logging for the ingestion pipeline."""

    @staticmethod
    def setup_logging(
        log_level: int = logging.INFO,
        log_format: str = 'console',
        log_file: Optional[str] = None
    ) -> None:
        """Set up structlog rendering for both structlog and stdlib loggers."""

        shared_processors = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            IngestionLogger._add_correlation_id,
        ]

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *shared_processors,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                IngestionLogger._get_renderer(log_format),
            ],
        )

        # Set up handlers
        handlers = []

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5
            )
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.handlers.extend(handlers)
        root_logger.setLevel(log_level)

        structlog.get_logger().debug(
            "Logging initialized",
            log_level=logging.getLevelName(log_level),
            log_format=log_format,
            log_file=log_file or "console"
        )

    @staticmethod
    def _add_correlation_id(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Drop an empty correlation ID instead of logging it."""
        if not event_dict.get('correlation_id'):
            event_dict.pop('correlation_id', None)
        return event_dict

    @staticmethod
    def _get_renderer(log_format: str):
        """Get the appropriate renderer based on format."""
        if (log_format or '').lower() == 'json':
            return structlog.processors.JSONRenderer(ensure_ascii=False)
        return structlog.dev.ConsoleRenderer(colors=False)


class OperationLogger:
    """Context manager that logs start, completion or failure of one pipeline phase.

    Every event carries the operation name, the run's correlation ID and
    any extra context given at construction.
    """

    def __init__(self, operation_name: str, correlation_id: Optional[str] = None, **context):
        self.operation_name = operation_name
        self.correlation_id = correlation_id
        self.started = None
        self.logger = structlog.get_logger("gnt2influx").bind(
            operation=operation_name,
            correlation_id=correlation_id,
            **context
        )

    def __enter__(self):
        self.started = time.monotonic()
        self.logger.info(f"Operation started: {self.operation_name}")
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = round(time.monotonic() - self.started, 3)

        if exc_type is None:
            self.logger.info(f"Operation completed: {self.operation_name}", duration_seconds=duration)
        else:
            self.logger.error(
                f"Operation failed: {self.operation_name}",
                duration_seconds=duration,
                error_type=exc_type.__name__,
                error_message=str(exc_val) or None
            )

        return False
