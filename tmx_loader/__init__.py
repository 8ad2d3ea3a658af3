"""
TMX Loader - asset pipeline for Tiled maps

Turns .tmx bytes into immutable MapAsset objects, reading tilesets and
images relative to a configurable asset root.

Requisitos:
    pip install numpy pillow
"""

from .errors import (
    LoadError, AssetIOError, ConversionError, UnsupportedAssetError, ParseError, LOAD_ERRORS
)
from .gid import (
    TileRef, decode_gid, encode_gid, decode_gid_array, remove_tile_flags,
    FLIPPED_HORIZONTALLY_FLAG, FLIPPED_VERTICALLY_FLAG, FLIPPED_DIAGONALLY_FLAG, ALL_FLIP_FLAGS,
)
from .loader import TiledMapLoader, LoadContext
from .map import MapAsset, MapLayer, ObjectLayer, MapObjectRef, TilesetBinding, MapBuilder
from .server import AssetServer
from .settings import LoaderSettings
from .storage import StorageReader, FileSystemReader, MemoryReader, PathResolver

__version__ = "0.1.0"
__all__ = [
    "TiledMapLoader",
    "LoadContext",
    "AssetServer",
    "LoaderSettings",
    "MapAsset",
    "MapLayer",
    "ObjectLayer",
    "MapObjectRef",
    "TilesetBinding",
    "MapBuilder",
    "TileRef",
    "decode_gid",
    "encode_gid",
    "decode_gid_array",
    "remove_tile_flags",
    "FLIPPED_HORIZONTALLY_FLAG",
    "FLIPPED_VERTICALLY_FLAG",
    "FLIPPED_DIAGONALLY_FLAG",
    "ALL_FLIP_FLAGS",
    "StorageReader",
    "FileSystemReader",
    "MemoryReader",
    "PathResolver",
    "LoadError",
    "AssetIOError",
    "ConversionError",
    "UnsupportedAssetError",
    "ParseError",
    "LOAD_ERRORS",
]
