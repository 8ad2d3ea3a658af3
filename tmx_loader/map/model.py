"""
Engine-facing map model

=============================================================================
WHAT LIVES HERE
=============================================================================

MapAsset is what a load produces and what the rest of the engine consumes.
Unlike tmx_manager.TiledDocument it is:

- IMMUTABLE: frozen dataclasses, tuples and read-only mappings only
- DECODED:   cells are TileRef values, never raw GIDs
- RESOLVED:  tileset and image paths are already relative to the asset
             root, nobody needs to know which file referenced which

    MapAsset
    ├── tilesets: (TilesetBinding, ...)   sorted by first_gid
    └── layers:   (MapLayer | ObjectLayer, ...)   groups flattened,
                                                  document order kept

=============================================================================
TILE LOOKUP
=============================================================================

    ref = layer.tile_at(3, 7)
    if not ref.is_empty:
        binding, local_id = asset.tileset_for(ref.tile_index)

=============================================================================
"""

from collections import abc
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Tuple, Union

import numpy as np

from ..gid import EMPTY_TILE, TileRef


def _frozen_mapping(values: Optional[Mapping] = None) -> Mapping:
    return MappingProxyType(dict(values or {}))


def _freeze(obj, *names):
    """Replace mapping fields with read-only copies and sequences with tuples."""
    for name in names:
        value = getattr(obj, name)
        if isinstance(value, abc.Mapping):
            value = _frozen_mapping(value)
        else:
            value = tuple(value)
        object.__setattr__(obj, name, value)


@dataclass(frozen=True)
class TilesetBinding:
    """A tileset as the map uses it, with every path resolved."""
    name: str
    first_gid: int
    path: PurePosixPath                      # TSX file, or the map for embedded tilesets
    tile_width: int
    tile_height: int
    tile_count: int = 0
    columns: int = 0
    spacing: int = 0
    margin: int = 0
    image: Optional[PurePosixPath] = None
    image_size: Optional[Tuple[int, int]] = None
    tile_images: Mapping[int, PurePosixPath] = field(default_factory=_frozen_mapping)
    external: bool = False
    properties: Mapping[str, Any] = field(default_factory=_frozen_mapping)

    def __post_init__(self):
        _freeze(self, "tile_images", "properties")

    def contains(self, tile_index: int) -> bool:
        """True if tile_index falls inside this tileset's declared range."""
        if tile_index < self.first_gid:
            return False
        return self.tile_count == 0 or tile_index < self.first_gid + self.tile_count


@dataclass(frozen=True)
class MapLayer:
    """Tile layer with decoded cells in row-major order."""
    name: str
    id: int
    width: int
    height: int
    tiles: Tuple[TileRef, ...]
    visible: bool = True
    opacity: float = 1.0
    offset: Tuple[float, float] = (0.0, 0.0)
    parallax: Tuple[float, float] = (1.0, 1.0)
    tint: Optional[str] = None
    properties: Mapping[str, Any] = field(default_factory=_frozen_mapping)

    def __post_init__(self):
        _freeze(self, "tiles", "properties")

    def tile_at(self, x: int, y: int) -> TileRef:
        """Cell at column x, row y; out of bounds reads as empty."""
        if 0 <= x < self.width and 0 <= y < self.height:
            return self.tiles[y * self.width + x]
        return EMPTY_TILE

    def index_grid(self) -> np.ndarray:
        """Read-only (height, width) array of tile indices."""
        grid = np.fromiter((ref.tile_index for ref in self.tiles),
                           dtype=np.uint32, count=len(self.tiles))
        grid = grid.reshape(self.height, self.width)
        grid.flags.writeable = False
        return grid

    def iter_tiles(self) -> Iterator[Tuple[int, int, TileRef]]:
        """Yield (x, y, ref) for every non-empty cell."""
        for i, ref in enumerate(self.tiles):
            if not ref.is_empty:
                yield i % self.width, i // self.width, ref


@dataclass(frozen=True)
class MapObjectRef:
    """Object placed on an object layer; tile objects carry a decoded tile."""
    id: int
    name: str = ""
    type: str = ""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    rotation: float = 0.0
    visible: bool = True
    tile: Optional[TileRef] = None
    properties: Mapping[str, Any] = field(default_factory=_frozen_mapping)

    def __post_init__(self):
        _freeze(self, "properties")


@dataclass(frozen=True)
class ObjectLayer:
    name: str
    id: int
    objects: Tuple[MapObjectRef, ...] = ()
    visible: bool = True
    opacity: float = 1.0
    offset: Tuple[float, float] = (0.0, 0.0)
    parallax: Tuple[float, float] = (1.0, 1.0)
    tint: Optional[str] = None
    properties: Mapping[str, Any] = field(default_factory=_frozen_mapping)

    def __post_init__(self):
        _freeze(self, "objects", "properties")


Layer = Union[MapLayer, ObjectLayer]


@dataclass(frozen=True)
class MapAsset:
    """
    Final tile map handed to the host.

    path is the logical path the map was loaded from. It is kept for
    diagnostics and reloading only; nothing inside the asset is resolved
    against it any more.
    """
    path: PurePosixPath
    width: int
    height: int
    tile_width: int
    tile_height: int
    orientation: str = "orthogonal"
    render_order: str = "right-down"
    tilesets: Tuple[TilesetBinding, ...] = ()
    layers: Tuple[Layer, ...] = ()
    properties: Mapping[str, Any] = field(default_factory=_frozen_mapping)

    def __post_init__(self):
        _freeze(self, "tilesets", "layers", "properties")

    @property
    def pixel_size(self) -> Tuple[int, int]:
        return self.width * self.tile_width, self.height * self.tile_height

    def tile_layers(self) -> Tuple[MapLayer, ...]:
        return tuple(layer for layer in self.layers if isinstance(layer, MapLayer))

    def object_layers(self) -> Tuple[ObjectLayer, ...]:
        return tuple(layer for layer in self.layers if isinstance(layer, ObjectLayer))

    def get_layer(self, name: str) -> Optional[Layer]:
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None

    def tileset_for(self, tile_index: int) -> Optional[Tuple[TilesetBinding, int]]:
        """
        Tileset owning tile_index and the local tile id inside it.

        A tile index belongs to the tileset with the largest first_gid that
        is <= tile_index. Returns None for empty cells and for indices below
        every tileset.
        """
        if tile_index <= 0:
            return None
        for binding in reversed(self.tilesets):
            if tile_index >= binding.first_gid:
                return binding, tile_index - binding.first_gid
        return None
