"""
Logging utilities for the export pipeline.
"""
import logging

from shared.config import config


def setup_logging(service_name: str, log_level: str | None = None) -> logging.Logger:
    """
    Setup logging configuration for a pipeline component.

    Args:
        service_name: Name of the component for log identification
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            defaults to the LOG_LEVEL setting

    Returns:
        Configured logger instance
    """
    level = log_level or config.get("log_level", "INFO")
    logger = logging.getLogger(service_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            f'%(asctime)s - {service_name} - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
