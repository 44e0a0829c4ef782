"""Logging configuration for the k1space package."""
import logging
import sys

from .config import Config


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Set up a logger with the specified name and log level.

    Args:
        name: The name of the logger
        level: The logging level (default: logging.INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Don't add handlers if they're already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        formatter = logging.Formatter(Config.LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def setup_logging(debug_mode: bool = False) -> None:
    """Configure root logging for the CLI based on debug mode."""
    if debug_mode:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format=Config.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )
    logging.getLogger().setLevel(log_level)
    # Disable debug logging for noisy libraries
    if not debug_mode:
        logging.getLogger('urllib3').setLevel(logging.WARNING)


def redact(data):
    """Recursively redact sensitive values from dictionaries and lists."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if any(
                redact_key in k.lower().replace("-", "_")
                for redact_key in Config.REDACT_KEYS
            ) else redact(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact(item) for item in data]
    return data
