"""Logging setup, export progress tracking and sanitized config logging."""

import copy
import logging
import logging.handlers
import threading
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'marketo_template_exporter'

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LEVEL_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

_VERBOSITY_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]

REDACTED = '***REDACTED***'
SENSITIVE_KEYS = ('secret', 'password', 'token', 'api_key')


def resolve_log_level(verbosity: int = 0, level: Optional[str] = None) -> int:
    """
    Turn a -v count or an explicit level name into a logging level.

    Raises:
        ValueError: If ``level`` is not a standard level name
    """
    if level:
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: "
                f"{', '.join(name for name in LEVEL_COLORS)}"
            )
        return numeric
    return _VERBOSITY_LEVELS[min(max(verbosity, 0), len(_VERBOSITY_LEVELS) - 1)]


def _console_handler(log_level: int, log_format: str, date_format: str) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors=LEVEL_COLORS
    ))
    return handler


def _file_handler(log_file: str, log_level: int, log_format: str, date_format: str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
    return handler


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the ``marketo_template_exporter`` logger hierarchy.

    The console gets colored output; ``log_file`` adds a rotating plain-text
    log (10MB x 5). Third-party loggers stay at WARNING.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG
        log_file: Optional path to log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Explicit level name, takes precedence over verbosity

    Returns:
        The configured application logger
    """
    log_level = resolve_log_level(verbosity, level)
    log_format = log_format or DEFAULT_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT

    logging.basicConfig(level=logging.WARNING, format=log_format, datefmt=date_format)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    # Handlers are attached here; root output would duplicate every line
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_console_handler(log_level, log_format, date_format))

    if log_file:
        try:
            logger.addHandler(_file_handler(log_file, log_level, log_format, date_format))
            logger.info(f"Logging to file: {log_file} (level {logging.getLevelName(log_level)})")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {str(e)}")

    return logger


def format_duration(seconds: float) -> str:
    """Human-readable duration: 4.2s, 3m 7s, 1h 2m 3s."""
    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"

    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {secs}s"


class ProgressTracker:
    """
    Context manager that logs export progress and a closing summary.

    ``increment`` may be called from worker threads.
    """

    def __init__(self, total_items: int, item_type: str = "templates", log_every: int = 25):
        self.total_items = total_items
        self.item_type = item_type
        self.log_every = max(1, log_every)
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(f'{LOGGER_NAME}.progress')
        self._lock = threading.Lock()

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.monotonic()
        self.logger.info(f"Exporting {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        if exc_type is not None:
            log_method = self.logger.error
            outcome = f"aborted ({exc_type.__name__})"
        elif self.failed_items:
            log_method = self.logger.warning
            outcome = "finished with failures"
        else:
            log_method = self.logger.info
            outcome = "finished"

        stats = self.get_stats()
        log_method(
            f"{self.item_type.capitalize()} {outcome}: {stats['successful']} succeeded, "
            f"{stats['failed']} failed, {stats['processed']}/{stats['total']} processed "
            f"in {stats['elapsed_time_formatted']}"
        )

    def increment(self, success: bool = True) -> None:
        """Count one processed item."""
        with self._lock:
            self.processed_items += 1
            if success:
                self.successful_items += 1
            else:
                self.failed_items += 1
            processed = self.processed_items

        if processed % self.log_every == 0 or processed == self.total_items:
            self.logger.info(
                f"Progress: {processed}/{self.total_items} {self.item_type} "
                f"({self.percent_complete}%)"
            )

    @property
    def percent_complete(self) -> int:
        if self.total_items <= 0:
            return 100
        return round(self.processed_items / self.total_items * 100)

    def get_stats(self) -> Dict[str, Any]:
        elapsed = time.monotonic() - self.start_time if self.start_time is not None else 0.0
        return {
            'total': self.total_items,
            'processed': self.processed_items,
            'successful': self.successful_items,
            'failed': self.failed_items,
            'percent_complete': self.percent_complete,
            'elapsed_time': elapsed,
            'elapsed_time_formatted': format_duration(elapsed)
        }


def log_section(title: str) -> None:
    """Log a banner line for a phase of the run."""
    logger = logging.getLogger(LOGGER_NAME)
    separator = "=" * 60
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)


def log_config(config: Dict[str, Any]) -> None:
    """
    Log the effective configuration with credentials masked.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)
    sanitized = sanitize_config(config)

    log_section("Configuration")

    marketo = sanitized.get('marketo', {})
    export_settings = sanitized.get('export', {})
    advanced = sanitized.get('advanced', {})

    for label, value in (
        ('Identity URL', marketo.get('identity_url')),
        ('REST URL', marketo.get('rest_url')),
        ('Client ID', marketo.get('client_id')),
        ('Client Secret', marketo.get('client_secret')),
        ('Output Directory', export_settings.get('output_directory')),
        ('Create ZIP', export_settings.get('create_zip')),
        ('Batch Size', export_settings.get('batch_size')),
        ('Page Size', export_settings.get('page_size')),
        ('Max Pages', export_settings.get('max_pages')),
        ('Preview Placeholders', export_settings.get('preview_placeholders')),
        ('Request Timeout', advanced.get('request_timeout')),
        ('Max Retries', advanced.get('max_retries')),
        ('Token Refresh Skew', advanced.get('token_refresh_skew')),
    ):
        logger.info(f"{label}: {'Not Set' if value is None else value}")


def sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep copy of ``config`` with credential values replaced by a marker.

    Any key containing one of SENSITIVE_KEYS is masked when it holds a
    non-empty string.
    """
    sanitized = copy.deepcopy(config)
    pending = [sanitized]

    while pending:
        node = pending.pop()
        if isinstance(node, list):
            pending.extend(node)
            continue
        if not isinstance(node, dict):
            continue
        for key, value in node.items():
            if isinstance(value, str) and value and any(s in str(key).lower() for s in SENSITIVE_KEYS):
                node[key] = REDACTED
            elif isinstance(value, (dict, list)):
                pending.append(value)

    return sanitized


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'resolve_log_level',
    'format_duration',
    'ProgressTracker',
    'log_section',
    'log_config',
    'sanitize_config'
]
