"""Logging helpers for the LMS email service."""

import logging


def get_logger(name: str = "LmsEmailService") -> logging.Logger:
    """Return a named :class:`logging.Logger` instance.

    Note: handlers and levels are configured once via logging.basicConfig()
    in the entry point (main.py or the CLI) to avoid duplicate handlers.
    """
    return logging.getLogger(name)
