"""Logging configuration for ChunkSub."""

import logging
import sys
from logging.handlers import RotatingFileHandler
import os
from typing import Optional, TextIO

from tqdm import tqdm

from .utils import ensure_dir_exists

CONSOLE_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
FILE_LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that flood INFO with per-request noise
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "google", "grpc", "transformers", "filelock")

class ProgressAwareHandler(logging.StreamHandler):
    """
    Console handler that writes through tqdm so records do not tear the chunk
    progress bar. Characters the console cannot encode (Japanese transcript
    text on a legacy code page) are replaced instead of raising.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__(stream or sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            encoding = getattr(self.stream, 'encoding', None) or 'utf-8'
            message = message.encode(encoding, errors='replace').decode(encoding)
            tqdm.write(message, file=self.stream)
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)

def setup_logging(
    log_level: int = logging.INFO,
    log_dir: str = "logs",
    log_file: str = "chunksub.log",
    console_format: str = CONSOLE_LOG_FORMAT,
    file_format: str = FILE_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    max_bytes: int = 10 * 1024 * 1024, # 10 MB
    backup_count: int = 5
) -> None:
    """
    Configures the root logger for a ChunkSub run.

    Console output goes through ProgressAwareHandler; the rotating UTF-8 file
    additionally records logger names and line numbers. Python warnings
    (Whisper's FP16 notice, torch deprecations) are routed into the log.
    Calling it again replaces the handlers from the previous call, which is
    how the CLI moves from the bootstrap log to the configured one.

    Args:
        log_level: The minimum logging level (e.g., logging.INFO, logging.DEBUG).
        log_dir: The directory to store log files.
        log_file: The name of the log file.
        console_format: Format string for console records.
        file_format: Format string for file records.
        date_format: The format string for timestamps in logs.
        max_bytes: Maximum size of a log file before rotation.
        backup_count: Number of backup log files to keep.
    """
    logger = logging.getLogger()
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(log_level)

    console_handler = ProgressAwareHandler()
    console_handler.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    console_handler.setLevel(log_level)
    logger.addHandler(console_handler)

    try:
        ensure_dir_exists(log_dir)
        log_path = os.path.join(log_dir, log_file)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        logger.addHandler(file_handler)
        logger.info(f"Logging initialized. Log file: {log_path}")
    except Exception as e:
        # Console logging still works without the file
        logger.error(f"Failed to set up file logging handler at {log_dir}/{log_file}: {e}", exc_info=True)

    logging.captureWarnings(True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
