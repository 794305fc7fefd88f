"""
Logging setup for the Media Monitor application.

Console output uses a colour-coded formatter; a plain file handler can be
attached with setup_file_logging(). AI prompts and responses are written
to individual JSON files so they can be reviewed after a run.
"""

import json
import logging
import os
import re
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

ROOT_LOGGER_NAME = "media_monitor"


class CustomFormatter(logging.Formatter):
    """
    A custom formatter for logging messages with different log levels.

    Attributes:
        grey (str): ANSI escape sequence for grey color.
        yellow (str): ANSI escape sequence for yellow color.
        red (str): ANSI escape sequence for red color.
        bold_red (str): ANSI escape sequence for bold red color.
        reset (str): ANSI escape sequence to reset color.
        format (str): The log message format.
        FORMATS (dict): A dictionary mapping log levels to their respective log message formats.
    """
    grey = "\x1b[37;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    dark_grey = "\x1b[30;1m"
    reset = "\x1b[0m"
    format = '[%(levelname)s] %(asctime)s - %(name)s - %(message)s'

    FORMATS = {
        logging.DEBUG: dark_grey + format + reset,
        logging.INFO: grey + format + reset,
        logging.WARNING: yellow + format + reset,
        logging.ERROR: red + format + reset,
        logging.CRITICAL: bold_red + format + reset
    }

    def format(self, record):
        """
        Formats the log record based on its log level.

        Args:
            record (logging.LogRecord): The log record to be formatted.

        Returns:
            str: The formatted log message.
        """
        log_fmt = self.FORMATS.get(record.levelno)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        root.setLevel(logging.DEBUG)
        ch = logging.StreamHandler()
        ch.setLevel(logging.INFO)
        ch.setFormatter(CustomFormatter())
        root.addHandler(ch)
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger that writes through the application's console handler.

    Args:
        name: Usually the calling module's __name__.

    Returns:
        logging.Logger: A child of the application root logger.
    """
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_file_logging(log_file: str, level: int = logging.INFO) -> None:
    """
    Attach a plain-text file handler and set the console level.

    Args:
        log_file: Path of the log file to append to.
        level: Minimum level for both console and file output.
    """
    root = _configure_root()
    for handler in root.handlers:
        handler.setLevel(level)

    directory = os.path.dirname(log_file)
    if directory:
        os.makedirs(directory, exist_ok=True)

    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter('[%(levelname)s] %(asctime)s - %(name)s - %(message)s'))
    root.addHandler(fh)


def log_ai_interaction(log_dir: str, url: str, prompt: str, output: str) -> Optional[str]:
    """
    Write one AI prompt/response pair to its own JSON file.

    Args:
        log_dir: Directory the interaction files are written to.
        url: The monitored page the prompt was built for.
        prompt: The prompt sent to the model.
        output: The raw model output.

    Returns:
        Optional[str]: Path of the written file, or None if writing failed.
    """
    logger = get_logger(__name__)
    try:
        os.makedirs(log_dir, exist_ok=True)
        ts = re.sub(r"[:.]", "-", datetime.now().isoformat())
        safe_host = re.sub(r"[^a-zA-Z0-9_-]", "_", urlparse(url).hostname or "unknown")
        log_file = os.path.join(log_dir, f"{safe_host}-{ts}.txt")

        log_data = {
            "timestamp": datetime.now().isoformat(),
            "url": url,
            "prompt": prompt,
            "output": output
        }
        with open(log_file, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2)

        logger.info(f"Logged AI interaction: {log_file}")
        return log_file
    except OSError as e:
        logger.warning(f"Could not write AI interaction log for {url}: {e}")
        return None
