"""Structured logging configuration."""

import logging
import sys

import structlog


def configure_logging(log_level: str = "INFO") -> None:
    """
    Route stdlib logging to stdout and render structlog events as JSON.

    Called once from the application lifespan. Library loggers that are
    chatty at INFO (SQL echo, boto) are raised to WARNING unless DEBUG
    logging was requested.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
        force=True,
    )
    if level > logging.DEBUG:
        for noisy_logger in ("botocore", "boto3", "urllib3", "aiosqlite"):
            logging.getLogger(noisy_logger).setLevel(logging.WARNING)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
