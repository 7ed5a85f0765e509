"""Unified logging for pipeseed with console and file output."""
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console()

LOG_DIR = Path.home() / ".pipeseed"
LOG_FILE = LOG_DIR / "pipeseed.log"

_file_logging_configured = False


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False):
    """Set up file logging for pipeseed runs.

    Args:
        log_file: Path to log file (defaults to ~/.pipeseed/pipeseed.log)
        verbose: Enable debug-level logging

    Note:
        Falls back to /tmp if the log directory is not writable.
    """
    global _file_logging_configured

    if _file_logging_configured:
        return

    target_log_file = Path(log_file) if log_file else LOG_FILE

    try:
        target_log_file.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        target_log_file = Path("/tmp/pipeseed.log")

    root_logger = logging.getLogger("pipeseed")
    file_handler = logging.FileHandler(target_log_file)
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    _file_logging_configured = True

    root_logger.info(f"pipeseed logging initialized: {target_log_file}")


def set_verbose(verbose: bool = True) -> None:
    """Switch every pipeseed console logger to debug (or back to info)."""
    level = logging.DEBUG if verbose else logging.INFO
    for name, candidate in logging.root.manager.loggerDict.items():
        if name.startswith("pipeseed") and isinstance(candidate, logging.Logger):
            candidate.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance with console output.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger with Rich console handler
    """
    logger = logging.getLogger(name)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger
