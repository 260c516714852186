"""
Logging setup for ai-cli using Python's standard logging.

Log destinations:
- Console (stderr): errors only, rendered by Rich so they don't mix with
  response output on stdout; settings and encryption records are file-only
- ~/.ai-cli/logs/ai-cli.log: JSON lines, rotated daily, seven files kept
"""
import logging
import logging.handlers
import os
from typing import Optional

from pythonjsonlogger import jsonlogger
from rich.console import Console
from rich.logging import RichHandler

from aicli.config import Config

ROOT_LOGGER = "ai-cli"

# Settings and encryption problems fall back to defaults; they go to the file only
FILE_ONLY_LOGGERS = (f"{ROOT_LOGGER}.settings", f"{ROOT_LOGGER}.encryption")


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def _console_filter(record: logging.LogRecord) -> bool:
    return not record.name.startswith(FILE_ONLY_LOGGERS)


def _ensure_log_dir() -> Optional[str]:
    log_dir = Config.log_dir()
    try:
        if not log_dir.exists():
            log_dir.mkdir(parents=True, exist_ok=True)
            if os.name != "nt":
                os.chmod(log_dir, 0o700)
        return str(log_dir)
    except OSError:
        return None


def setup_logging(debug: Optional[bool] = None) -> logging.Logger:
    """
    Set up the ai-cli logger hierarchy.

    Args:
        debug: Log DEBUG records to the file (overrides AI_CLI_DEBUG env var)

    Returns:
        The root ai-cli logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if debug is None:
        debug = Config.debug_enabled()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    console_handler.setLevel(logging.ERROR)
    console_handler.addFilter(_console_filter)
    logger.addHandler(console_handler)

    log_dir = _ensure_log_dir()
    if log_dir is None:
        logger.warning("Log directory unavailable, file logging disabled")
        return logger

    file_handler = logging.handlers.TimedRotatingFileHandler(
        os.path.join(log_dir, Config.LOG_FILE),
        when="midnight",
        backupCount=Config.LOG_RETENTION_DAYS,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    file_handler.setFormatter(jsonlogger.JsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        rename_fields={'asctime': 'ts', 'levelname': 'lvl', 'message': 'msg'},
    ))
    logger.addHandler(file_handler)

    return logger


def shutdown_logging() -> None:
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
        logger.removeHandler(handler)

