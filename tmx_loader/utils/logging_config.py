"""
Logging configuration for command-line use of tmx_loader.

The library itself only creates loggers; handlers are installed here, by
the application.
"""

import logging
import sys
from typing import Optional, TextIO, Union


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",  # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        formatted = super().format(record)

        # Color only the level name
        if record.levelname in formatted:
            formatted = formatted.replace(
                record.levelname, f"{color}{record.levelname}{reset}", 1
            )

        return formatted


def setup_logging(level: Union[int, str] = logging.INFO,
                  stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Attach a console handler to the 'tmx_loader' logger.

    Calling it again replaces the handler instead of adding a second one.
    Colors are used only when the stream is a terminal.
    """
    stream = stream if stream is not None else sys.stderr
    logger = logging.getLogger("tmx_loader")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_tmx_loader_console", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler._tmx_loader_console = True
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    if hasattr(stream, "isatty") and stream.isatty():
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    return logger
