"""
Logging configuration for vadrtools.

Console output goes to stderr with colored level names. A command that
writes an output directory also attaches a plain-text log file there, and
reports each pipeline step with its elapsed time.
"""

import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union


# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[0;31m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"
    CYAN = "\033[0;36m"
    GRAY = "\033[0;90m"


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colors the level name by severity.
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.GRAY,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.RED,
    }

    def __init__(self, fmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt or "%(message)s")
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so file handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        if self.use_colors:
            color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
            record.levelname = f"{color}[{record.levelname}]{Colors.RESET}"
        else:
            record.levelname = f"[{record.levelname}]"

        return super().format(record)


FILE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(
    name: str = "vadrtools",
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    verbose: bool = False,
) -> logging.Logger:
    """
    Set up logging for a vadrtools command.

    Args:
        name: Logger name (default: "vadrtools")
        level: Logging level (default: INFO)
        log_file: Optional path to log file
        use_colors: Use colored output for console (default: True)
        verbose: Enable verbose/debug output (default: False)

    Returns:
        Configured logger instance
    """
    if verbose:
        level = logging.DEBUG

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter("%(levelname)s %(message)s", use_colors=use_colors))
    logger.addHandler(console_handler)

    if log_file:
        attach_log_file(logger, log_file, level)

    return logger


def attach_log_file(
    logger: logging.Logger,
    log_file: Union[str, Path],
    level: Optional[int] = None,
) -> logging.FileHandler:
    """Add a plain-text file handler to a logger and return it."""
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level if level is not None else logger.level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(file_handler)
    return file_handler


def detach_handler(logger: logging.Logger, handler: logging.Handler) -> None:
    """Remove and close a handler added with attach_log_file."""
    logger.removeHandler(handler)
    handler.close()


def get_logger(name: str = "vadrtools") -> logging.Logger:
    """
    Get or create a logger for vadrtools.

    Loggers below "vadrtools" propagate to it, so only the root vadrtools
    logger is given handlers.
    """
    logger = logging.getLogger(name)

    root = logging.getLogger(name.split(".")[0])
    if not root.handlers:
        setup_logging(root.name)

    return logger


@contextmanager
def step(logger: logging.Logger, description: str) -> Iterator[None]:
    """Log a pipeline step and the time it took.

    Example:
        >>> with step(logger, "Fetching FASTA file"):
        ...     fetch_fasta(...)
    """
    start = time.time()
    logger.info(f"{description} ...")
    yield
    logger.info(f"{description} ... done. [{time.time() - start:.1f}s]")
