"""Map model and document-to-map conversion"""

from .model import MapAsset, MapLayer, ObjectLayer, MapObjectRef, TilesetBinding
from .builder import MapBuilder

__all__ = [
    "MapAsset",
    "MapLayer",
    "ObjectLayer",
    "MapObjectRef",
    "TilesetBinding",
    "MapBuilder",
]
