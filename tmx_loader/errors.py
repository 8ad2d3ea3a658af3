"""
Errors raised while loading map assets.

A load fails with exactly one of:

- AssetIOError     a file could not be read (carries the resolved path)
- ParseError       the TMX/TSX document is malformed (from tmx_manager)
- ConversionError  the parsed document cannot become a MapAsset

UnsupportedAssetError is raised by the AssetServer before any loader runs.
"""

from pathlib import PurePath
from typing import Optional

from tmx_manager import ParseError


class LoadError(Exception):
    """Base class for loader-side failures."""


class AssetIOError(LoadError):
    """A file under the asset root is missing or unreadable."""

    def __init__(self, path: PurePath, reason: Optional[str] = None):
        self.path = path
        self.reason = reason
        message = f"cannot read {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ConversionError(LoadError):
    """The parsed document is structurally unfit for map construction."""


class UnsupportedAssetError(LoadError):
    """No registered loader claims the file's extension."""


# Everything a load may fail with
LOAD_ERRORS = (LoadError, ParseError)

__all__ = [
    "LoadError",
    "AssetIOError",
    "ConversionError",
    "UnsupportedAssetError",
    "ParseError",
    "LOAD_ERRORS",
]
