#!/usr/bin/env python3

"""
Module for reading TMX files (Tiled Map Format) through a byte-reading handler
Supports TMX version 1.11.0 and earlier versions

=============================================================================
WHAT IS TMX?
=============================================================================

TMX (Tiled Map XML) is the native format of the Tiled Map Editor. TMX files
describe:

- Map dimensions and tile sizes
- Tilesets (collections of tile graphics), embedded or in external TSX files
- Layers (tile layers, object layers, groups)
- Custom properties (metadata on any element)

This module turns the bytes of a TMX file into a TiledDocument. It never
touches the filesystem itself: every extra file it needs (TSX tilesets,
images whose size is not declared) is requested from an IOHandler:

    handler.resolve_path(base, source)  -> where 'source' points to
    handler.read_bytes(path)            -> contents of that file

This keeps the parser independent of where the map lives (a directory,
an archive, an in-memory table).

=============================================================================
TMX FILE STRUCTURE
=============================================================================

    <map version="1.10" orientation="orthogonal" width="100" height="100"
         tilewidth="32" tileheight="32">

        <tileset firstgid="1" source="terrain.tsx"/>

        <layer name="Ground" width="100" height="100">
            <data encoding="csv">
                1,2,3,4,5,...
            </data>
        </layer>

        <objectgroup name="Collisions">
            <object id="1" x="100" y="200" width="32" height="32"/>
        </objectgroup>
    </map>

=============================================================================
GLOBAL TILE IDs (GIDs)
=============================================================================

Cells store raw GIDs. The three top bits are orientation flags and the rest
is the tile index across all tilesets. The parser keeps the raw 32-bit values
untouched; decoding them is the job of whoever consumes the document.

=============================================================================
"""

import xml.etree.ElementTree as ET
from typing import Optional, List, Dict, Any, Union, Protocol
from dataclasses import dataclass, field
from pathlib import PurePosixPath
import base64
import gzip
import io
import zlib

import numpy as np
from PIL import Image as PILImage, UnidentifiedImageError


GID_LIMIT = 0xFFFFFFFF


# =============================================================================
# ERRORS AND IO HANDLER PROTOCOL
# =============================================================================

class ParseError(Exception):
    """
    Malformed TMX/TSX document.

    line and column are filled in when the XML parser reports a position;
    structural problems (bad attribute values, unknown encodings) only carry
    the message.
    """

    def __init__(self, message: str, line: Optional[int] = None,
                 column: Optional[int] = None, path: Optional[PurePosixPath] = None):
        self.message = message
        self.line = line
        self.column = column
        self.path = path
        super().__init__(str(self))

    def __str__(self) -> str:
        where = str(self.path) if self.path is not None else "<bytes>"
        if self.line is not None:
            where += f":{self.line}"
            if self.column is not None:
                where += f":{self.column}"
        return f"{where}: {self.message}"


class IOHandler(Protocol):
    """What the parser needs from the outside world."""

    def read_bytes(self, path: PurePosixPath) -> bytes: ...

    def resolve_path(self, base: Optional[PurePosixPath],
                     path: Union[str, PurePosixPath]) -> PurePosixPath: ...


def _int_attr(elem: ET.Element, name: str, default: int = 0) -> int:
    value = elem.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ParseError(f"<{elem.tag}> attribute {name}={value!r} is not an integer")


def _float_attr(elem: ET.Element, name: str, default: float = 0.0) -> float:
    value = elem.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ParseError(f"<{elem.tag}> attribute {name}={value!r} is not a number")


def _parse_properties(elem: ET.Element) -> Dict[str, 'Property']:
    """Collect <properties> children of elem, keyed by name."""
    properties = {}
    props_elem = elem.find('properties')
    if props_elem is not None:
        for prop_elem in props_elem.findall('property'):
            prop = Property.from_xml(prop_elem)
            properties[prop.name] = prop
    return properties


# =============================================================================
# PROPERTY CLASS
# =============================================================================

@dataclass
class Property:
    """
    Custom property attached to any TMX element.

    ==========================================================================
    SUPPORTED TYPES
    ==========================================================================

    - string: Text value (default)
    - int: Integer number
    - float: Decimal number
    - bool: True/False
    - color: Color in #AARRGGBB format (kept as string)
    - file: File path reference (kept as string)
    - object: Reference to another object by ID

    ==========================================================================
    """
    name: str                    # Property name (key)
    type: str = "string"         # Value type
    value: Any = None            # The actual value

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Property':
        """
        Parse property from XML element.

        XML format:
            <property name="solid" type="bool" value="true"/>
            <property name="description">multi-line text</property>
        """
        prop_type = elem.get('type', 'string')
        # Multi-line strings are stored as element text instead of value=
        value = elem.get('value')
        if value is None:
            value = elem.text or ''

        try:
            if prop_type in ('int', 'object'):
                value = int(value) if value else 0
            elif prop_type == 'float':
                value = float(value) if value else 0.0
            elif prop_type == 'bool':
                value = value.lower() == 'true'
        except ValueError:
            raise ParseError(
                f"property {elem.get('name')!r} of type {prop_type} has value {value!r}")

        return cls(name=elem.get('name', ''), type=prop_type, value=value)


# =============================================================================
# IMAGE CLASS
# =============================================================================

@dataclass
class Image:
    """
    Image reference used in tilesets.

    source is the path exactly as written in the file; location is where the
    parser resolved it to, relative to the same root the IOHandler reads from.
    Image paths are relative to the file that contains the <image> element
    (the TSX for external tilesets, the TMX for embedded ones).
    """
    source: str                          # Path as written
    location: Optional[PurePosixPath] = None
    width: Optional[int] = None          # Image width (pixels)
    height: Optional[int] = None         # Image height (pixels)
    trans: Optional[str] = None          # Transparent color (#RRGGBB)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Image':
        return cls(
            source=elem.get('source', ''),
            width=_int_attr(elem, 'width') or None,
            height=_int_attr(elem, 'height') or None,
            trans=elem.get('trans')
        )


# =============================================================================
# TILE CLASS
# =============================================================================

@dataclass
class Tile:
    """
    Individual tile within a tileset.

    The 'id' is LOCAL to the tileset (0-based index):
        gid = tileset.firstgid + tile.id

    Only tiles with metadata (properties, per-tile images) are listed.
    """
    id: int
    type: str = ""
    properties: Dict[str, Property] = field(default_factory=dict)
    image: Optional[Image] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Tile':
        tile = cls(id=_int_attr(elem, 'id'))
        # Tiled 1.9 renamed 'type' to 'class'
        tile.type = elem.get('class', elem.get('type', ''))
        tile.properties = _parse_properties(elem)

        img_elem = elem.find('image')
        if img_elem is not None:
            tile.image = Image.from_xml(img_elem)

        return tile


# =============================================================================
# TILESET CLASS
# =============================================================================

@dataclass
class Tileset:
    """
    Tileset collection - a set of tile graphics.

    ==========================================================================
    TILESET TYPES
    ==========================================================================

    1. SPRITESHEET TILESET: one image divided into a grid of tiles
       (image, tilewidth, tileheight, columns, spacing, margin).

    2. IMAGE COLLECTION TILESET: every tile has its own image
       (tiles[id].image).

    ==========================================================================
    EMBEDDED vs EXTERNAL TILESETS
    ==========================================================================

    EMBEDDED: <tileset firstgid="1" name="terrain" ...> inside the TMX.
        source and location stay None.

    EXTERNAL: <tileset firstgid="1" source="terrain.tsx"/>
        source  = "terrain.tsx" (as written in the TMX)
        location = the resolved path the TSX was read from

    The firstgid always comes from the TMX, never from the TSX.

    ==========================================================================
    """
    firstgid: int
    name: str
    tilewidth: int
    tileheight: int
    tilecount: int = 0
    columns: int = 0
    spacing: int = 0
    margin: int = 0
    image: Optional[Image] = None
    tiles: Dict[int, Tile] = field(default_factory=dict)
    properties: Dict[str, Property] = field(default_factory=dict)
    source: Optional[str] = None                     # TSX path as written
    location: Optional[PurePosixPath] = None         # TSX path as resolved

    @classmethod
    def from_xml(cls, elem: ET.Element, firstgid: int) -> 'Tileset':
        """
        Parse tileset from XML element.

        Parameters:
        -----------
        elem : ET.Element
            The <tileset> element (from the TMX or the root of a TSX)
        firstgid : int
            First Global ID (from parent TMX, not the TSX itself)
        """
        tileset = cls(
            firstgid=firstgid,
            name=elem.get('name', ''),
            tilewidth=_int_attr(elem, 'tilewidth'),
            tileheight=_int_attr(elem, 'tileheight'),
            tilecount=_int_attr(elem, 'tilecount'),
            columns=_int_attr(elem, 'columns'),
            spacing=_int_attr(elem, 'spacing'),
            margin=_int_attr(elem, 'margin'),
        )
        tileset.properties = _parse_properties(elem)

        img_elem = elem.find('image')
        if img_elem is not None:
            tileset.image = Image.from_xml(img_elem)

        for tile_elem in elem.findall('tile'):
            tile = Tile.from_xml(tile_elem)
            tileset.tiles[tile.id] = tile

        return tileset

    def images(self) -> List[Image]:
        """Every image this tileset references (sheet first, then per-tile)."""
        result = [self.image] if self.image else []
        result.extend(tile.image for tile in self.tiles.values() if tile.image)
        return result


# =============================================================================
# LAYER DATA CLASS
# =============================================================================

@dataclass
class LayerData:
    """
    Tile layer data: the grid of raw GIDs.

    ==========================================================================
    DATA ENCODINGS
    ==========================================================================

    1. XML (deprecated):  <data><tile gid="1"/><tile gid="2"/>...</data>
    2. CSV:               <data encoding="csv">1,2,3,...</data>
    3. Base64:            <data encoding="base64">AQAAAAIAAAA=</data>
       optionally compressed with zlib, gzip or zstd.

    ==========================================================================
    INTERNAL STORAGE
    ==========================================================================

    Tiles are stored as a numpy uint32 array in row-major order:
        tiles[y * width + x]

    Base64 payloads are little-endian uint32 regardless of the host byte
    order, so they are read with an explicit '<u4' dtype.

    Infinite maps store their cells in <chunk> children. Those are not
    flattened here; the data is left empty and 'chunked' is set.

    ==========================================================================
    """
    encoding: Optional[str] = None
    compression: Optional[str] = None
    chunked: bool = False
    tiles: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint32))

    def decode_data(self, data_elem: ET.Element):
        """Decode tile data from a <data> element."""
        encoding = data_elem.get('encoding')
        compression = data_elem.get('compression')
        self.encoding = encoding
        self.compression = compression

        if data_elem.find('chunk') is not None:
            self.chunked = True
            return

        if encoding == 'csv':
            text = (data_elem.text or '').replace('\n', '')
            try:
                gids = [int(x) for x in text.split(',') if x.strip()]
            except ValueError:
                raise ParseError("CSV tile data contains a non-integer value")
            self.tiles = self._to_gid_array(gids)

        elif encoding == 'base64':
            try:
                text = ''.join((data_elem.text or '').split())
                raw_data = base64.b64decode(text, validate=True)
            except ValueError:
                raise ParseError("base64 tile data is not valid base64")
            raw_data = self._decompress(raw_data, compression)

            # Each tile is 4 bytes (little-endian uint32)
            if len(raw_data) % 4:
                raise ParseError(
                    f"base64 tile data is {len(raw_data)} bytes, not a multiple of 4")
            self.tiles = np.frombuffer(raw_data, dtype='<u4').astype(np.uint32)

        elif encoding is None:
            gids = [_int_attr(tile_elem, 'gid') for tile_elem in data_elem.findall('tile')]
            self.tiles = self._to_gid_array(gids)

        else:
            raise ParseError(f"unknown tile data encoding {encoding!r}")

    @staticmethod
    def _to_gid_array(gids: List[int]) -> np.ndarray:
        for gid in gids:
            if gid < 0 or gid > GID_LIMIT:
                raise ParseError(f"tile GID {gid} does not fit in 32 bits")
        return np.array(gids, dtype=np.uint32)

    @staticmethod
    def _decompress(raw_data: bytes, compression: Optional[str]) -> bytes:
        try:
            if compression is None:
                return raw_data
            if compression == 'zlib':
                return zlib.decompress(raw_data)
            if compression == 'gzip':
                return gzip.decompress(raw_data)
        except (zlib.error, OSError, EOFError) as e:
            raise ParseError(f"cannot decompress {compression} tile data: {e}")

        if compression == 'zstd':
            # zstd requires external library (not in stdlib)
            try:
                import zstandard
            except ImportError:
                raise ParseError(
                    "zstandard library required for zstd compression. "
                    "Install with: pip install zstandard"
                )
            try:
                return zstandard.ZstdDecompressor().decompress(raw_data)
            except zstandard.ZstdError as e:
                raise ParseError(f"cannot decompress zstd tile data: {e}")

        raise ParseError(f"unknown tile data compression {compression!r}")


# =============================================================================
# LAYER CLASSES
# =============================================================================

@dataclass
class TileLayer:
    """
    Tile layer - a grid of raw GIDs.

    Rendering properties: visible, opacity, tintcolor.
    Positioning: offsetx/offsety (pixels), parallaxx/parallaxy.
    """
    name: str
    width: int
    height: int
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    parallaxx: float = 1.0
    parallaxy: float = 1.0
    tintcolor: Optional[str] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    data: LayerData = field(default_factory=LayerData)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'TileLayer':
        layer = cls(name=elem.get('name', ''),
                    width=_int_attr(elem, 'width'),
                    height=_int_attr(elem, 'height'),
                    **_common_layer_attrs(elem))
        layer.properties = _parse_properties(elem)

        data_elem = elem.find('data')
        if data_elem is not None:
            layer.data = LayerData()
            layer.data.decode_data(data_elem)

        return layer


@dataclass
class MapObject:
    """
    Object in an object layer.

    Rectangles, points and polygons only carry geometry; tile objects also
    carry a raw gid (flags included, exactly like layer cells).
    """
    id: int
    name: str = ""
    type: str = ""
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    rotation: float = 0
    gid: Optional[int] = None
    visible: bool = True
    properties: Dict[str, Property] = field(default_factory=dict)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'MapObject':
        obj = cls(
            id=_int_attr(elem, 'id'),
            name=elem.get('name', ''),
            type=elem.get('class', elem.get('type', '')),
            x=_float_attr(elem, 'x'),
            y=_float_attr(elem, 'y'),
            width=_float_attr(elem, 'width'),
            height=_float_attr(elem, 'height'),
            rotation=_float_attr(elem, 'rotation'),
            visible=elem.get('visible', '1') == '1'
        )

        # GID only present for tile objects
        if elem.get('gid') is not None:
            obj.gid = _int_attr(elem, 'gid')
            if obj.gid < 0 or obj.gid > GID_LIMIT:
                raise ParseError(f"object {obj.id} gid {obj.gid} does not fit in 32 bits")

        obj.properties = _parse_properties(elem)
        return obj


@dataclass
class ObjectGroup:
    """Object layer - contains vector objects, in document order."""
    name: str
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    parallaxx: float = 1.0
    parallaxy: float = 1.0
    tintcolor: Optional[str] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    objects: List[MapObject] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'ObjectGroup':
        group = cls(name=elem.get('name', ''), **_common_layer_attrs(elem))
        group.properties = _parse_properties(elem)
        group.objects = [MapObject.from_xml(obj_elem) for obj_elem in elem.findall('object')]
        return group


@dataclass
class LayerGroup:
    """
    Group of layers - a folder containing other layers.

    Groups can be nested; their display attributes carry over to every
    child (see tmx_loader.map.builder).
    """
    name: str
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    parallaxx: float = 1.0
    parallaxy: float = 1.0
    tintcolor: Optional[str] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    layers: List[Union['TileLayer', 'ObjectGroup', 'LayerGroup']] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'LayerGroup':
        group = cls(name=elem.get('name', ''), **_common_layer_attrs(elem))
        group.properties = _parse_properties(elem)
        group.layers = _parse_layers(elem)
        return group


def _common_layer_attrs(elem: ET.Element) -> Dict[str, Any]:
    return dict(
        id=_int_attr(elem, 'id'),
        # '1' is default for visible (absent means visible)
        visible=elem.get('visible', '1') == '1',
        opacity=_float_attr(elem, 'opacity', 1.0),
        offsetx=_float_attr(elem, 'offsetx'),
        offsety=_float_attr(elem, 'offsety'),
        parallaxx=_float_attr(elem, 'parallaxx', 1.0),
        parallaxy=_float_attr(elem, 'parallaxy', 1.0),
        tintcolor=elem.get('tintcolor'),
    )


def _parse_layers(parent: ET.Element) -> List[Union[TileLayer, ObjectGroup, LayerGroup]]:
    layers = []
    for child in parent:
        if child.tag == 'layer':
            layers.append(TileLayer.from_xml(child))
        elif child.tag == 'objectgroup':
            layers.append(ObjectGroup.from_xml(child))
        elif child.tag == 'group':
            # Recursive: group within group
            layers.append(LayerGroup.from_xml(child))
    return layers


# =============================================================================
# TILED DOCUMENT (parse result)
# =============================================================================

@dataclass
class TiledDocument:
    """
    Complete parsed TMX document.

    Contains map metadata, tilesets (external ones already read and merged)
    and the layer tree with raw GIDs. path is the logical path the document
    was parsed from, if one was given.
    """
    version: str = "1.10"
    tiledversion: str = ""
    orientation: str = "orthogonal"
    renderorder: str = "right-down"
    width: int = 0
    height: int = 0
    tilewidth: int = 0
    tileheight: int = 0
    infinite: bool = False
    path: Optional[PurePosixPath] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    tilesets: List[Tileset] = field(default_factory=list)
    layers: List[Union[TileLayer, ObjectGroup, LayerGroup]] = field(default_factory=list)


# =============================================================================
# PARSER
# =============================================================================

class TmxParser:
    """
    Parses TMX bytes into a TiledDocument.

    The parser holds nothing but its IOHandler, so one instance can serve
    any number of parse_map() calls, including concurrent ones.

    ==========================================================================
    FILE ACCESS
    ==========================================================================

    TMX bytes are handed in by the caller. Everything else goes through the
    handler:

        <tileset source="../tilesets/terrain.tsx"/> in maps/level1.tmx
            location = handler.resolve_path("maps/level1.tmx", "../tilesets/terrain.tsx")
                     = "tilesets/terrain.tsx"
            handler.read_bytes(location)

        <image source="terrain.png"/> in tilesets/terrain.tsx
            location = handler.resolve_path("tilesets/terrain.tsx", "terrain.png")
                     = "tilesets/terrain.png"
            handler.read_bytes(location)  (only if width/height are missing)

    Errors raised by the handler are not caught: a missing TSX aborts the
    parse with whatever the handler raised.

    ==========================================================================
    """

    def __init__(self, io_handler: IOHandler, probe_image_sizes: bool = True):
        self.io_handler = io_handler
        self.probe_image_sizes = probe_image_sizes

    def parse_map(self, data: bytes, path: Optional[Union[str, PurePosixPath]] = None) -> TiledDocument:
        """
        Parse a TMX document.

        Parameters:
        -----------
        data : bytes
            Contents of the .tmx file
        path : str or PurePosixPath, optional
            Logical path of the .tmx file; relative references inside the
            document are resolved against it

        Raises:
        -------
        ParseError : If the document is malformed
        """
        path = PurePosixPath(path) if path is not None else None
        try:
            root = self._parse_xml(data, path)
            if root.tag != 'map':
                raise ParseError(f"root element is <{root.tag}>, expected <map>")
            return self._parse_document(root, path)
        except ParseError as e:
            if e.path is None:
                e.path = path
            raise

    @staticmethod
    def _parse_xml(data: bytes, path: Optional[PurePosixPath]) -> ET.Element:
        try:
            return ET.fromstring(data)
        except ET.ParseError as e:
            line, column = e.position
            raise ParseError(f"malformed XML: {e}", line=line, column=column, path=path)

    def _parse_document(self, root: ET.Element, path: Optional[PurePosixPath]) -> TiledDocument:
        document = TiledDocument(
            version=root.get('version', '1.0'),
            tiledversion=root.get('tiledversion', ''),
            orientation=root.get('orientation', 'orthogonal'),
            renderorder=root.get('renderorder', 'right-down'),
            width=_int_attr(root, 'width'),
            height=_int_attr(root, 'height'),
            tilewidth=_int_attr(root, 'tilewidth'),
            tileheight=_int_attr(root, 'tileheight'),
            infinite=root.get('infinite', '0') == '1',
            path=path,
        )
        document.properties = _parse_properties(root)

        for tileset_elem in root.findall('tileset'):
            document.tilesets.append(self._parse_tileset(tileset_elem, path))

        document.layers = _parse_layers(root)
        return document

    def _parse_tileset(self, elem: ET.Element, path: Optional[PurePosixPath]) -> Tileset:
        if elem.get('firstgid') is None:
            raise ParseError("<tileset> in a map must have a firstgid")
        firstgid = _int_attr(elem, 'firstgid')
        source = elem.get('source')

        if not source:
            tileset = Tileset.from_xml(elem, firstgid)
            self._resolve_images(tileset, path)
            return tileset

        # -----------------------------------------------------------------
        # EXTERNAL TILESET (TSX)
        # -----------------------------------------------------------------
        location = self.io_handler.resolve_path(path, source)
        tsx_bytes = self.io_handler.read_bytes(location)
        try:
            tsx_root = self._parse_xml(tsx_bytes, location)
            if tsx_root.tag != 'tileset':
                raise ParseError(f"root element is <{tsx_root.tag}>, expected <tileset>")
            tileset = Tileset.from_xml(tsx_root, firstgid)
        except ParseError as e:
            if e.path is None:
                e.path = location
            raise
        tileset.source = source
        tileset.location = location
        self._resolve_images(tileset, location)
        return tileset

    def _resolve_images(self, tileset: Tileset, base: Optional[PurePosixPath]):
        for image in tileset.images():
            if not image.source:
                raise ParseError(f"tileset {tileset.name!r} has an <image> without source")
            image.location = self.io_handler.resolve_path(base, image.source)
            if self.probe_image_sizes and (image.width is None or image.height is None):
                image.width, image.height = self._probe_image_size(image.location)

    def _probe_image_size(self, location: PurePosixPath):
        data = self.io_handler.read_bytes(location)
        try:
            with PILImage.open(io.BytesIO(data)) as img:
                return img.size
        except UnidentifiedImageError:
            raise ParseError("not a readable image", path=location)
