"""Root every file access of a load under the configured asset root."""

import logging
from pathlib import PurePath, PurePosixPath
from typing import Optional, Union

from ..errors import AssetIOError
from .reader import FileSystemReader, StorageReader

logger = logging.getLogger(__name__)


class PathResolver:
    """
    Byte-reading capability handed to the TMX parser.

    Paths seen by the parser are relative to the asset root ("maps/a.tmx",
    "tilesets/terrain.tsx"). read_bytes() prefixes them with the root before
    asking the reader; resolve_path() is plain path algebra and is passed
    straight to the reader.

    Instances are immutable and can be shared between concurrent loads.
    """

    __slots__ = ("_root", "_reader")

    def __init__(self, root: Union[str, PurePath] = "assets",
                 reader: Optional[StorageReader] = None):
        self._root = PurePath(root)
        self._reader = reader if reader is not None else FileSystemReader()

    @property
    def root(self) -> PurePath:
        return self._root

    @property
    def reader(self) -> StorageReader:
        return self._reader

    def read_bytes(self, path: Union[str, PurePath]) -> bytes:
        target = self._root / path
        try:
            data = self._reader.read_bytes(target)
        except OSError as e:
            raise AssetIOError(target, e.strerror or str(e)) from e
        logger.debug(f"read {len(data)} bytes from {target}")
        return data

    def resolve_path(self, base: Optional[Union[str, PurePath]],
                     path: Union[str, PurePath]) -> PurePosixPath:
        return self._reader.resolve_path(base, path)

    def __repr__(self) -> str:
        return f"PathResolver(root={str(self._root)!r}, reader={type(self._reader).__name__})"
