"""
Logging Configuration Module.

Centralized logging for the invoice engine. All engine loggers live under
the ``invoice_engine`` namespace so an embedding service can tune or
silence the engine without touching its own handlers.

Usage:
    from invoice_engine.utils.logger import setup_logger, get_logger

    # Initialize logging (call once at startup)
    setup_logger()

    # Get logger in any module
    logger = get_logger(__name__)
    logger.info("Classifying invoice.pdf")
"""

import logging
import logging.handlers
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

# Try to import colorama for colored console output
try:
    import colorama
    from colorama import Fore, Style
    colorama.init()
    COLORAMA_AVAILABLE = True
except ImportError:
    COLORAMA_AVAILABLE = False


ROOT_LOGGER_NAME = "invoice_engine"

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """
    Console formatter that colors the whole record by level.

    Colors:
        - DEBUG: Cyan
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Red (bold)
    """

    COLORS = {
        logging.DEBUG: Fore.CYAN if COLORAMA_AVAILABLE else '',
        logging.INFO: Fore.GREEN if COLORAMA_AVAILABLE else '',
        logging.WARNING: Fore.YELLOW if COLORAMA_AVAILABLE else '',
        logging.ERROR: Fore.RED if COLORAMA_AVAILABLE else '',
        logging.CRITICAL: Fore.RED + Style.BRIGHT if COLORAMA_AVAILABLE else '',
    }
    RESET = Style.RESET_ALL if COLORAMA_AVAILABLE else ''

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, '')
        message = super().format(record)
        return f"{color}{message}{self.RESET}"


def _resolve_level(level: str) -> int:
    """Translate a level name into a logging constant (INFO if unknown)."""
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logger(
    level: str = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    log_file: Optional[str] = None,
    max_bytes: int = 10485760,  # 10 MB
    backup_count: int = 5,
    colorize: bool = True
) -> logging.Logger:
    """
    Configure the ``invoice_engine`` logger.

    Call once at application startup. Loggers obtained through
    get_logger() inherit this configuration. Calling it again replaces
    the previous handlers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Custom log format string.
        date_format: Custom date format string.
        log_file: Path to log file. If None, file logging is disabled.
        max_bytes: Maximum log file size before rotation.
        backup_count: Number of rotated files to keep.
        colorize: Color console output when colorama is installed and
            stdout is a terminal.

    Returns:
        Configured engine logger.

    Example:
        >>> setup_logger(level="DEBUG", log_file="logs/engine.log")
    """
    log_format = log_format or DEFAULT_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT
    numeric_level = _resolve_level(level)

    engine_logger = logging.getLogger(ROOT_LOGGER_NAME)
    engine_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicate lines on re-setup
    for handler in list(engine_logger.handlers):
        engine_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)

    use_color = colorize and COLORAMA_AVAILABLE and sys.stdout.isatty()
    if use_color:
        console_formatter = ColoredFormatter(log_format, datefmt=date_format)
    else:
        console_formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler.setFormatter(console_formatter)
    engine_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        engine_logger.addHandler(file_handler)

    engine_logger.propagate = False

    engine_logger.debug(f"Logging initialized (level={logging.getLevelName(numeric_level)})")
    return engine_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module, nested under the engine namespace.

    Args:
        name: Name for the logger, typically __name__.

    Returns:
        Logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Processing started")
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_level(level: str) -> None:
    """Change the engine log level and every attached handler at runtime."""
    numeric_level = _resolve_level(level)
    engine_logger = logging.getLogger(ROOT_LOGGER_NAME)
    engine_logger.setLevel(numeric_level)
    for handler in engine_logger.handlers:
        handler.setLevel(numeric_level)


@contextmanager
def log_duration(logger: logging.Logger, label: str, level: int = logging.DEBUG) -> Iterator[None]:
    """
    Log how long the wrapped block took.

    Example:
        >>> with log_duration(logger, "segmentation"):
        ...     regions = analyzer.segment(text)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.log(level, f"{label} took {elapsed_ms:.1f} ms")


def setup_logger_from_config(level_override: Optional[str] = None) -> logging.Logger:
    """
    Initialize logging from the ``logging`` section of settings.yaml.

    Args:
        level_override: Level forced by the caller (e.g. a --debug flag).

    Returns:
        Configured engine logger.
    """
    from config import get_config

    level = level_override or get_config("logging.level", "INFO")

    log_file = None
    if get_config("logging.file.enabled", False):
        log_file = get_config("logging.file.path")

    return setup_logger(
        level=level,
        log_format=get_config("logging.format"),
        date_format=get_config("logging.date_format"),
        log_file=log_file,
        max_bytes=get_config("logging.file.max_bytes", 10485760),
        backup_count=get_config("logging.file.backup_count", 5),
        colorize=get_config("logging.console.colorize", True)
    )
