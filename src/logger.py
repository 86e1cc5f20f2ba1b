import logging
import logging.handlers
import os
from pathlib import Path

NOISY_LOGGERS = ["sqlalchemy.engine",
                 "sqlalchemy.dialects",
                 "sqlalchemy.pool",
                 "sqlalchemy.orm",
                 "aiosqlite",
                 "asyncpg",
                 "apscheduler",
                 "spotipy",
                 "redis",
                 "urllib3.connectionpool"]

LEVELS = {"debug": logging.DEBUG, "d": logging.DEBUG,
          "info": logging.INFO, "i": logging.INFO,
          "warning": logging.WARNING, "w": logging.WARNING,
          "error": logging.ERROR, "e": logging.ERROR}


class NoisyFilter(logging.Filter):
    """Third-party loggers only get through at `min_level` and above."""

    def __init__(self, min_level: int):
        super().__init__()
        self.min_level = min_level

    def filter(self, record):
        if not any(logger in record.name for logger in NOISY_LOGGERS): return True
        return record.levelno >= self.min_level


def parse_level(value: str) -> int:
    try:
        return LEVELS[value.lower()]
    except KeyError:
        raise ValueError(f"Expected one of ([d]ebug, [i]nfo, [w]arning, [e]rror) for log level, not {value}") from None


def setup_logging(log_path: str | None = None, console_level=logging.INFO):
    """Call this ONCE, from the entry point."""
    if log_path is None:
        log_folder = "test_logs" if os.getenv("TEST_MODE") else "logs"
        log_path = f"{log_folder}/log.log"

    Path(log_path).parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=10*1024*1024, backupCount=5
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)

    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s [%(name)s-%(funcName)s:%(lineno)d] %(message)s",
        datefmt='%H:%M:%S'
    )

    file_handler.setFormatter(formatter)
    file_handler.addFilter(NoisyFilter(logging.INFO))

    console_handler.setFormatter(formatter)
    console_handler.addFilter(NoisyFilter(logging.WARNING))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    logging.info(f"Logging initialized (PID: {os.getpid()}) " \
                 f"(console level: {logging.getLevelName(console_level).lower()})")
