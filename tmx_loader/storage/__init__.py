"""Storage backends and asset-root path resolution"""

from .reader import StorageReader, FileSystemReader, MemoryReader
from .resolver import PathResolver

__all__ = ["StorageReader", "FileSystemReader", "MemoryReader", "PathResolver"]
