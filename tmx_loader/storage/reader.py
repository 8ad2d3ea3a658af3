"""
Storage readers - the only code that touches real bytes.

=============================================================================
ROLE
=============================================================================

PathResolver joins the asset root with a relative path and hands the result
to a StorageReader. Swapping the reader swaps the backing store (disk,
archive, in-memory table) without touching the parser or the builder.

Both readers share the same path algebra in resolve_path():

    resolve_path("maps/level1.tmx", "terrain.tsx")        -> maps/terrain.tsx
    resolve_path("maps/level1.tmx", "../tiles/a.tsx")     -> tiles/a.tsx
    resolve_path("maps/level1.tmx", "./b.png")            -> maps/b.png
    resolve_path("maps/level1.tmx", "/shared/c.tsx")      -> /shared/c.tsx
    resolve_path(None, "level1.tmx")                      -> level1.tmx

The base is the FILE that contains the reference, so the reference is joined
to the directory of that file.

=============================================================================
"""

import posixpath
from abc import ABC, abstractmethod
from pathlib import Path, PurePath, PurePosixPath
from types import MappingProxyType
from typing import Mapping, Optional, Union

PathLike = Union[str, PurePath]


class StorageReader(ABC):
    """Read bytes and resolve references for one backing store."""

    @abstractmethod
    def read_bytes(self, path: PurePath) -> bytes:
        """
        Return the contents of path.

        Raises OSError (FileNotFoundError, PermissionError, ...) when the
        path cannot be read.
        """

    def resolve_path(self, base: Optional[PathLike], path: PathLike) -> PurePosixPath:
        """Where 'path' points to when found inside the file 'base'. No I/O."""
        path = PurePosixPath(path)
        if path.is_absolute() or base is None or str(base) in ('', '.'):
            joined = str(path)
        else:
            joined = posixpath.join(posixpath.dirname(PurePosixPath(base).as_posix()), str(path))
        return PurePosixPath(posixpath.normpath(joined))


class FileSystemReader(StorageReader):
    """Reads files from the local filesystem."""

    def read_bytes(self, path: PurePath) -> bytes:
        return Path(path).read_bytes()


class MemoryReader(StorageReader):
    """
    Serves files from a mapping of path -> bytes.

    Keys are normalized, so {"assets/maps/a.tmx": b"..."} answers reads for
    PurePosixPath("assets/maps/a.tmx") as well as "assets/./maps/a.tmx".
    The mapping is copied at construction and never changes afterwards.
    """

    def __init__(self, files: Mapping[PathLike, bytes]):
        self._files = MappingProxyType(
            {self._key(path): bytes(data) for path, data in files.items()})

    @staticmethod
    def _key(path: PathLike) -> str:
        return posixpath.normpath(PurePath(path).as_posix())

    def read_bytes(self, path: PurePath) -> bytes:
        key = self._key(path)
        try:
            return self._files[key]
        except KeyError:
            raise FileNotFoundError(f"no such file: {key}")

    def __contains__(self, path: PathLike) -> bool:
        return self._key(path) in self._files

    def __len__(self) -> int:
        return len(self._files)
