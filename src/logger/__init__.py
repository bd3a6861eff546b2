# src/logger/__init__.py
# This file makes the logger folder a Python package
# Named 'logger' instead of 'logging' to avoid conflict with Python's built-in logging module

from .logging import setup_logging, get_logger, RequestIDFilter

__all__ = [
    "setup_logging",
    "get_logger",
    "RequestIDFilter",
]
