"""
Logging for the channel comment harvester.

All modules log under the "youtube_fetcher" logger tree. A run writes a
DEBUG file log (logs/harvest_<timestamp>.log, with logs/latest.log pointing
at it) and prints INFO and above to the console.

Log lines carry the channel being harvested. The channel is kept per thread;
worker pools pick it up through inherit_channel_context().
"""

import logging
import os
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from config import get_config


LOGGER_NAME = "youtube_fetcher"

FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s'
CONSOLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(message)s'

_local = threading.local()


def set_channel_context(channel_id: Optional[str]) -> None:
    _local.channel = channel_id


def get_channel_context() -> Optional[str]:
    return getattr(_local, 'channel', None)


def clear_channel_context() -> None:
    set_channel_context(None)


def inherit_channel_context() -> Callable[[], None]:
    """
    Capture the calling thread's channel for worker threads.

    The returned callable is meant as a pool initializer:

        ThreadPoolExecutor(max_workers=4, initializer=inherit_channel_context())
    """
    channel = get_channel_context()

    def initializer() -> None:
        set_channel_context(channel)

    return initializer


class ChannelContext:
    """Set the channel for a block, restoring the previous one on exit."""

    def __init__(self, channel_id: Optional[str]):
        self.channel_id = channel_id
        self._previous = None

    def __enter__(self):
        self._previous = get_channel_context()
        set_channel_context(self.channel_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        set_channel_context(self._previous)
        return False


def channel_label(channel: Optional[str]) -> Optional[str]:
    """Short form for log prefixes: @handle -> handle[:12], UCxxxx -> UCxxxxxx."""
    if not channel:
        return None
    if channel.startswith('@'):
        return channel[1:13]
    if channel.startswith('UC'):
        return channel[:8]
    return channel[:10]


class ChannelContextFormatter(logging.Formatter):
    """Prefixes each message with the current thread's channel label."""

    def format(self, record):
        label = channel_label(get_channel_context())
        if label is None:
            return super().format(record)

        # The record is shared between handlers; prefix only this rendering
        original = record.msg
        record.msg = f"[{label}] {original}"
        try:
            return super().format(record)
        finally:
            record.msg = original


def _file_handler(log_dir: Path) -> logging.FileHandler:
    log_file = log_dir / f"harvest_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    handler = logging.FileHandler(log_file, encoding='utf-8')
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(ChannelContextFormatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def _console_handler(level: str) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level.upper())
    handler.setFormatter(ChannelContextFormatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    return handler


def _link_latest(log_dir: Path, log_file: Path) -> Optional[str]:
    """Point latest.log at log_file. Returns an error message if that is not possible."""
    latest = log_dir / "latest.log"
    try:
        if latest.is_symlink() or latest.exists():
            latest.unlink()
        if os.name != 'nt':
            latest.symlink_to(log_file.name)
    except (OSError, NotImplementedError) as e:
        return str(e)
    return None


def setup_logging(
    log_dir: Optional[str] = None,
    log_level: Optional[str] = None,
    console_level: Optional[str] = None
) -> logging.Logger:
    """
    Attach a per-run file handler and a console handler to the harvester logger.

    Unset arguments come from the active Config (settings file, then env).
    Handlers from an earlier call in the same process are closed first.

    Raises:
        OSError: If the log directory or log file cannot be created.
    """
    cfg = get_config()
    directory = Path(log_dir or cfg.log_dir)
    level = log_level or cfg.log_level
    console = console_level or cfg.console_log_level

    directory.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = _file_handler(directory)
    logger.addHandler(file_handler)
    logger.addHandler(_console_handler(console))

    log_file = Path(file_handler.baseFilename)
    link_error = _link_latest(directory, log_file)

    logger.info(f"Logging initialized: file={log_file}, level={level}")
    if link_error:
        logger.debug(f"Could not create latest.log symlink: {link_error}")
    logger.debug(f"Console level: {console}")
    logger.debug(f"Python version: {sys.version}")
    logger.debug(f"Working directory: {os.getcwd()}")

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Child of the harvester logger, e.g. get_logger("export") -> youtube_fetcher.export."""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)


class LogContext:
    """Log START/DONE (or FAILED) with elapsed time around a block."""

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.DEBUG):
        self.logger = logger
        self.operation = operation
        self.level = level
        self._started = None

    def __enter__(self):
        self._started = time.monotonic()
        self.logger.log(self.level, f"START: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.monotonic() - self._started
        if exc_type is None:
            self.logger.log(self.level, f"DONE: {self.operation} in {elapsed:.2f}s")
        else:
            self.logger.error(f"FAILED: {self.operation} after {elapsed:.2f}s - {exc_type.__name__}: {exc_val}")
        return False
