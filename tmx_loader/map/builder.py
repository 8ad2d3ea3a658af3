"""
Conversion from a parsed TMX document to a MapAsset

=============================================================================
WHAT THE BUILDER CHECKS
=============================================================================

The builder only rejects documents it cannot turn into a usable map:

- infinite (chunked) maps
- map or tile dimensions that are zero or negative
- tile layers whose cell count is not map width * map height
- tilesets that were never read (external with no location) or that have
  no image at all (neither a sheet nor per-tile images)

Everything else (unknown orientations, odd property values, cells that no
tileset covers) is passed through untouched. Tile semantics belong to
whoever renders the map.

=============================================================================
GROUPS
=============================================================================

Layer groups are flattened. Their state is folded into each child:

    visible  = group.visible and child.visible
    opacity  = group.opacity * child.opacity
    offset   = group.offset + child.offset
    parallax = group.parallax * child.parallax
    tint     = child.tint, or the group's when the child has none

=============================================================================
"""

import logging
import posixpath
from dataclasses import dataclass
from pathlib import PurePath, PurePosixPath
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Union

from tmx_manager import LayerGroup, ObjectGroup, Property, TiledDocument, TileLayer, Tileset

from ..errors import ConversionError
from ..gid import decode_gid, decode_gid_sequence
from .model import MapAsset, MapLayer, MapObjectRef, ObjectLayer, TilesetBinding, Layer


@dataclass(frozen=True)
class _GroupState:
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0.0
    offsety: float = 0.0
    parallaxx: float = 1.0
    parallaxy: float = 1.0
    tint: Optional[str] = None

    def enter(self, layer) -> '_GroupState':
        return _GroupState(
            visible=self.visible and layer.visible,
            opacity=self.opacity * layer.opacity,
            offsetx=self.offsetx + layer.offsetx,
            offsety=self.offsety + layer.offsety,
            parallaxx=self.parallaxx * layer.parallaxx,
            parallaxy=self.parallaxy * layer.parallaxy,
            tint=layer.tintcolor or self.tint,
        )


def _normalize(path: PurePath) -> PurePosixPath:
    return PurePosixPath(posixpath.normpath(PurePosixPath(path).as_posix()))


def _property_values(properties: Dict[str, Property]) -> Mapping[str, object]:
    return MappingProxyType({name: prop.value for name, prop in properties.items()})


class MapBuilder:
    """Turns TiledDocument into MapAsset. Stateless; safe to share."""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def build(self, document: TiledDocument, logical_path: Union[str, PurePath]) -> MapAsset:
        """
        Convert a parsed document.

        Parameters:
        -----------
        document : TiledDocument
            Output of TmxParser.parse_map()
        logical_path : str or PurePath
            Path the document was loaded from; stored on the asset as is

        Raises:
        -------
        ConversionError : If the document cannot become a map
        """
        path = PurePosixPath(logical_path)

        if document.infinite:
            raise ConversionError(f"{path}: infinite maps are not supported")
        if document.width <= 0 or document.height <= 0:
            raise ConversionError(
                f"{path}: map size {document.width}x{document.height} is not positive")
        if document.tilewidth <= 0 or document.tileheight <= 0:
            raise ConversionError(
                f"{path}: tile size {document.tilewidth}x{document.tileheight} is not positive")

        tilesets = tuple(sorted(
            (self._bind_tileset(tileset, path) for tileset in document.tilesets),
            key=lambda binding: binding.first_gid,
        ))
        layers = tuple(self._convert_layers(document.layers, document, path, _GroupState()))

        asset = MapAsset(
            path=path,
            width=document.width,
            height=document.height,
            tile_width=document.tilewidth,
            tile_height=document.tileheight,
            orientation=document.orientation,
            render_order=document.renderorder,
            tilesets=tilesets,
            layers=layers,
            properties=_property_values(document.properties),
        )
        self.logger.debug(f"built {path}: {len(tilesets)} tilesets, {len(layers)} layers")
        return asset

    # -----------------------------------------------------------------
    # TILESETS
    # -----------------------------------------------------------------

    def _bind_tileset(self, tileset: Tileset, path: PurePosixPath) -> TilesetBinding:
        label = f"{path}: tileset {tileset.name or tileset.source!r} (firstgid={tileset.firstgid})"

        if tileset.source and tileset.location is None:
            raise ConversionError(f"{label}: source {tileset.source!r} was not resolved")
        if tileset.firstgid <= 0:
            raise ConversionError(f"{label}: firstgid must be positive")
        if tileset.tilewidth <= 0 or tileset.tileheight <= 0:
            raise ConversionError(f"{label}: tile size is not positive")
        if not tileset.images():
            raise ConversionError(f"{label}: no image")
        for image in tileset.images():
            if image.location is None:
                raise ConversionError(f"{label}: image {image.source!r} was not resolved")

        image = tileset.image
        image_size = None
        if image is not None and image.width and image.height:
            image_size = (image.width, image.height)

        return TilesetBinding(
            name=tileset.name,
            first_gid=tileset.firstgid,
            path=_normalize(tileset.location) if tileset.source else path,
            tile_width=tileset.tilewidth,
            tile_height=tileset.tileheight,
            tile_count=tileset.tilecount,
            columns=tileset.columns,
            spacing=tileset.spacing,
            margin=tileset.margin,
            image=_normalize(image.location) if image is not None else None,
            image_size=image_size,
            tile_images=MappingProxyType({tile.id: _normalize(tile.image.location)
                                          for tile in tileset.tiles.values() if tile.image}),
            external=bool(tileset.source),
            properties=_property_values(tileset.properties),
        )

    # -----------------------------------------------------------------
    # LAYERS
    # -----------------------------------------------------------------

    def _convert_layers(self, layers, document: TiledDocument, path: PurePosixPath,
                        state: _GroupState) -> Iterator[Layer]:
        for layer in layers:
            if isinstance(layer, LayerGroup):
                yield from self._convert_layers(layer.layers, document, path, state.enter(layer))
            elif isinstance(layer, TileLayer):
                yield self._convert_tile_layer(layer, document, path, state.enter(layer))
            elif isinstance(layer, ObjectGroup):
                yield self._convert_object_group(layer, state.enter(layer))

    def _convert_tile_layer(self, layer: TileLayer, document: TiledDocument, path: PurePosixPath,
                            state: _GroupState) -> MapLayer:
        label = f"{path}: layer {layer.name!r}"
        expected = document.width * document.height
        gids = layer.data.tiles

        if len(gids) != expected:
            raise ConversionError(
                f"{label} has {len(gids)} cells, map is "
                f"{document.width}x{document.height} ({expected} cells)")

        tiles = decode_gid_sequence(gids)

        return MapLayer(
            name=layer.name,
            id=layer.id,
            width=document.width,
            height=document.height,
            tiles=tiles,
            visible=state.visible,
            opacity=state.opacity,
            offset=(state.offsetx, state.offsety),
            parallax=(state.parallaxx, state.parallaxy),
            tint=state.tint,
            properties=_property_values(layer.properties),
        )

    def _convert_object_group(self, group: ObjectGroup, state: _GroupState) -> ObjectLayer:
        objects = []
        for obj in group.objects:
            tile = decode_gid(obj.gid) if obj.gid is not None else None
            objects.append(MapObjectRef(
                id=obj.id,
                name=obj.name,
                type=obj.type,
                x=obj.x,
                y=obj.y,
                width=obj.width,
                height=obj.height,
                rotation=obj.rotation,
                visible=obj.visible,
                tile=tile,
                properties=_property_values(obj.properties),
            ))

        return ObjectLayer(
            name=group.name,
            id=group.id,
            objects=tuple(objects),
            visible=state.visible,
            opacity=state.opacity,
            offset=(state.offsetx, state.offsety),
            parallax=(state.parallaxx, state.parallaxy),
            tint=state.tint,
            properties=_property_values(group.properties),
        )

