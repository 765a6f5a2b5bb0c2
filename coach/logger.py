"""Logging configuration for the English Coach pipeline."""

import logging
import sys
from datetime import datetime
from pathlib import Path

import config


def setup_logger(
    name: str = "coach",
    log_file: str | None = None,
    level: int = logging.INFO,
    logs_dir: Path = config.LOGS_DIR,
) -> logging.Logger:
    """
    Set up and return a configured logger.

    Args:
        name: Logger name
        log_file: Optional specific log file name. If None, generates timestamp-based name.
        level: Logging level
        logs_dir: Directory that receives the log file

    Returns:
        Configured logger instance
    """
    logs_dir.mkdir(parents=True, exist_ok=True)

    if log_file is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = f"coach_{timestamp}.log"

    log_path = logs_dir / log_file

    logger = logging.getLogger(name)

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_formatter = logging.Formatter("%(message)s")

    # File handler - captures everything, including prompts at DEBUG
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_formatter)
    logger.addHandler(file_handler)

    # Console handler - user-facing output only
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    logger.setLevel(logging.DEBUG)
    logger.debug(f"Log file: {log_path}")

    return logger


def get_logger(name: str = "coach") -> logging.Logger:
    """Get an existing logger by name."""
    return logging.getLogger(name)


def preview(text: str | None, limit: int = 300) -> str:
    """Shorten model output for log lines."""
    if not text:
        return ""
    text = text.replace("\n", " ")
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text)} chars)"
