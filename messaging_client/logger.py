# messaging_client/logger.py
import logging


def get_logger(name: str, level: str | int = logging.INFO) -> logging.Logger:
    """Named component logger with a single stream handler."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s:%(name)s: %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
