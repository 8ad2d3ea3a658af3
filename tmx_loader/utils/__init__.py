"""Helpers that are not part of the loading pipeline"""

from .logging_config import setup_logging

__all__ = ["setup_logging"]
