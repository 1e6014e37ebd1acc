import logging
import re
import time

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_loggers = {}


def get_logger(name, level=logging.INFO):
    """
    Module-level logger with a stream handler attached once.
    """
    logger = logging.getLogger(name)
    if not logger.hasHandlers():
        logger.setLevel(level)
        ch = logging.StreamHandler()
        ch.setLevel(logging.DEBUG)
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    _loggers[name] = logger
    return logger


def set_log_level(level):
    """Apply a level (name or number) to every logger handed out so far."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    for logger in _loggers.values():
        logger.setLevel(level)


def format_timestamp(ts):
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(ts))


def format_size(num_bytes):
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KiB"
    return f"{num_bytes / (1024 * 1024):.1f} MiB"


def safe_filename(name):
    # drop any directory part a remote peer may have sent
    base = re.split(r"[\\/]", name)[-1]
    base = re.sub(r"[^A-Za-z0-9._-]", "_", base).lstrip(".")
    return base or "unnamed"
