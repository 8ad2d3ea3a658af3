"""Tests for MapBuilder and the map model."""

import dataclasses
from pathlib import PurePosixPath

import numpy as np
import pytest

from conftest import LEVEL1_TMX, MAP_2X2, MAP_2X2_NO_TILESET, level1_files
from tmx_loader.errors import ConversionError
from tmx_loader.gid import TileRef
from tmx_loader.map import MapAsset, MapBuilder, MapLayer, ObjectLayer, TilesetBinding
from tmx_loader.storage import MemoryReader, PathResolver
from tmx_manager import Image, LayerData, MapObject, ObjectGroup, TiledDocument, TileLayer, Tileset, TmxParser


def parse(data: bytes, path: str, reader: MemoryReader = None):
    reader = reader if reader is not None else MemoryReader({})
    return TmxParser(PathResolver("assets", reader)).parse_map(data, path)


def make_document(cells, width=2, height=2, tilesets=None) -> TiledDocument:
    if tilesets is None:
        tileset = Tileset(firstgid=1, name="t", tilewidth=16, tileheight=16)
        tileset.image = Image(source="t.png", location=PurePosixPath("maps/t.png"))
        tilesets = [tileset]
    layer = TileLayer(name="L", width=width, height=height,
                      data=LayerData(tiles=np.array(cells, dtype=np.uint32)))
    return TiledDocument(width=width, height=height, tilewidth=16, tileheight=16,
                         tilesets=tilesets, layers=[layer])


class TestBuildTiles:
    """Cells are decoded once and stored as TileRef only."""

    def test_minimal_2x2_map(self) -> None:
        asset = MapBuilder().build(parse(MAP_2X2, "maps/m.tmx"), "maps/m.tmx")

        layer = asset.layers[0]
        assert isinstance(layer, MapLayer)
        assert len(layer.tiles) == 4
        assert [ref.tile_index for ref in layer.tiles] == [1, 2, 0, 3]
        assert [ref.flip_horizontal for ref in layer.tiles] == [False, True, False, False]
        assert not any(ref.flip_vertical or ref.flip_diagonal for ref in layer.tiles)

    def test_no_raw_gids_in_asset(self) -> None:
        asset = MapBuilder().build(parse(MAP_2X2, "maps/m.tmx"), "maps/m.tmx")
        for ref in asset.layers[0].tiles:
            assert isinstance(ref, TileRef)
            assert ref.tile_index < 0x20000000

    def test_tile_access_helpers(self) -> None:
        asset = MapBuilder().build(parse(MAP_2X2, "maps/m.tmx"), "maps/m.tmx")
        layer = asset.layers[0]

        assert layer.tile_at(1, 0) == TileRef(2, True, False, False)
        assert layer.tile_at(5, 5).is_empty
        assert layer.index_grid().tolist() == [[1, 2], [0, 3]]
        assert [(x, y) for x, y, _ in layer.iter_tiles()] == [(0, 0), (1, 0), (1, 1)]
        with pytest.raises(ValueError):
            layer.index_grid()[0, 0] = 9

    def test_logical_path_is_kept(self) -> None:
        asset = MapBuilder().build(parse(MAP_2X2, "maps/m.tmx"), "maps/m.tmx")
        assert asset.path == PurePosixPath("maps/m.tmx")
        assert asset.pixel_size == (32, 32)


class TestBuildLevel:
    """A map with external tileset, groups and objects."""

    @pytest.fixture
    def asset(self, memory_reader: MemoryReader):
        document = parse(LEVEL1_TMX, "maps/level1.tmx", memory_reader)
        return MapBuilder().build(document, "maps/level1.tmx")

    def test_tileset_bindings(self, asset) -> None:
        terrain, props = asset.tilesets
        assert terrain.name == "terrain"
        assert terrain.external
        assert terrain.path == PurePosixPath("tilesets/terrain.tsx")
        assert terrain.image == PurePosixPath("tilesets/terrain.png")
        assert terrain.image_size == (64, 32)
        assert dict(terrain.properties) == {"biome": "grass"}

        assert not props.external
        assert props.path == PurePosixPath("maps/level1.tmx")
        assert props.image == PurePosixPath("maps/props.png")

    def test_groups_are_flattened_and_composed(self, asset) -> None:
        assert [layer.name for layer in asset.layers] == ["Ground", "Decor", "Spawns"]
        decor = asset.get_layer("Decor")
        assert decor.opacity == pytest.approx(0.25)
        assert decor.offset == (4.0, 2.0)
        assert decor.tiles[1] == TileRef(9, True, False, False)
        assert decor.tiles[5] == TileRef(1, True, True, False)

    def test_tile_objects_are_decoded(self, asset) -> None:
        spawns = asset.get_layer("Spawns")
        assert isinstance(spawns, ObjectLayer)
        chest, start = spawns.objects
        assert chest.tile == TileRef(9, False, True, False)
        assert start.tile is None

    def test_tileset_lookup(self, asset) -> None:
        binding, local_id = asset.tileset_for(3)
        assert (binding.name, local_id) == ("terrain", 2)
        binding, local_id = asset.tileset_for(9)
        assert (binding.name, local_id) == ("props", 0)
        assert asset.tileset_for(0) is None
        assert asset.tilesets[0].contains(8)
        assert not asset.tilesets[0].contains(9)

    def test_map_properties(self, asset) -> None:
        assert dict(asset.properties) == {"music": "forest.ogg", "difficulty": 3}
        assert [layer.name for layer in asset.tile_layers()] == ["Ground", "Decor"]
        assert [layer.name for layer in asset.object_layers()] == ["Spawns"]

    def test_asset_is_immutable(self, asset) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            asset.width = 10
        with pytest.raises(TypeError):
            asset.properties["music"] = "other.ogg"
        with pytest.raises(TypeError):
            asset.layers[0].tiles[0] = TileRef(2)

    def test_nested_mappings_are_read_only(self, asset) -> None:
        terrain, props = asset.tilesets
        with pytest.raises(TypeError):
            terrain.properties["biome"] = "sand"
        with pytest.raises(TypeError):
            props.tile_images[0] = PurePosixPath("x.png")
        with pytest.raises(TypeError):
            asset.get_layer("Ground").properties["solid"] = True
        with pytest.raises(TypeError):
            asset.get_layer("Spawns").objects[0].properties["loot"] = "gold"
        assert dict(asset.properties) == {"music": "forest.ogg", "difficulty": 3}


class TestDirectConstruction:
    """Model objects freeze what they are given."""

    def test_mappings_are_copied_and_frozen(self) -> None:
        properties = {"music": "forest.ogg"}
        asset = MapAsset(path=PurePosixPath("m.tmx"), width=1, height=1,
                         tile_width=16, tile_height=16, properties=properties)
        properties["music"] = "other.ogg"

        assert asset.properties["music"] == "forest.ogg"
        with pytest.raises(TypeError):
            asset.properties["music"] = "other.ogg"

    def test_sequences_become_tuples(self) -> None:
        layer = MapLayer(name="L", id=1, width=2, height=1, tiles=[TileRef(1), TileRef(0)])
        binding = TilesetBinding(name="t", first_gid=1, path=PurePosixPath("t.tsx"),
                                 tile_width=16, tile_height=16,
                                 tile_images={0: PurePosixPath("a.png")})
        asset = MapAsset(path=PurePosixPath("m.tmx"), width=2, height=1,
                         tile_width=16, tile_height=16, tilesets=[binding], layers=[layer])

        assert isinstance(layer.tiles, tuple)
        assert isinstance(asset.layers, tuple)
        assert isinstance(asset.tilesets, tuple)
        with pytest.raises(TypeError):
            binding.tile_images[1] = PurePosixPath("b.png")


class TestLayerDisplay:
    """Parallax and tint reach the asset through groups."""

    def test_parallax_and_tint_compose(self) -> None:
        tmx = LEVEL1_TMX.replace(
            b'<group id="2" name="Overlay" offsetx="4" opacity="0.5">',
            b'<group id="2" name="Overlay" offsetx="4" opacity="0.5" parallaxx="0.5" tintcolor="#808080">',
        ).replace(
            b'opacity="0.5" offsety="2">',
            b'opacity="0.5" offsety="2" parallaxx="0.5" parallaxy="2">',
        )
        reader = MemoryReader(level1_files())
        asset = MapBuilder().build(parse(tmx, "maps/level1.tmx", reader), "maps/level1.tmx")

        decor = asset.get_layer("Decor")
        assert decor.parallax == (0.25, 2.0)
        assert decor.tint == "#808080"

        ground = asset.get_layer("Ground")
        assert ground.parallax == (1.0, 1.0)
        assert ground.tint is None

    def test_child_tint_overrides_group(self) -> None:
        tmx = LEVEL1_TMX.replace(
            b'<group id="2" name="Overlay" offsetx="4" opacity="0.5">',
            b'<group id="2" name="Overlay" offsetx="4" opacity="0.5" tintcolor="#808080">',
        ).replace(
            b'opacity="0.5" offsety="2">',
            b'opacity="0.5" offsety="2" tintcolor="#ff0000">',
        )
        reader = MemoryReader(level1_files())
        asset = MapBuilder().build(parse(tmx, "maps/level1.tmx", reader), "maps/level1.tmx")
        assert asset.get_layer("Decor").tint == "#ff0000"


class TestUncoveredTiles:
    """Tile indices are not checked against tileset ranges."""

    def test_2x2_map_without_tileset(self) -> None:
        asset = MapBuilder().build(parse(MAP_2X2_NO_TILESET, "maps/m.tmx"), "maps/m.tmx")

        assert asset.tilesets == ()
        assert list(asset.layers[0].tiles) == [
            TileRef(1), TileRef(2, True, False, False), TileRef(0), TileRef(3),
        ]
        assert asset.tileset_for(1) is None

    def test_index_below_first_gid_is_kept(self) -> None:
        document = make_document([1, 0, 0, 0])
        document.tilesets[0].firstgid = 5
        asset = MapBuilder().build(document, "m.tmx")
        assert asset.layers[0].tiles[0] == TileRef(1)
        assert asset.tileset_for(1) is None

    def test_tile_object_without_tileset(self) -> None:
        document = make_document([0, 0, 0, 0], tilesets=[])
        document.layers.append(ObjectGroup(name="O", objects=[MapObject(id=1, gid=0x80000003)]))
        asset = MapBuilder().build(document, "m.tmx")
        assert asset.get_layer("O").objects[0].tile == TileRef(3, True, False, False)


class TestConversionErrors:
    """Structurally invalid documents never produce an asset."""

    def test_cell_count_must_match_map(self) -> None:
        with pytest.raises(ConversionError, match="3 cells"):
            MapBuilder().build(make_document([1, 2, 3]), "m.tmx")

    def test_tileset_without_image(self) -> None:
        tileset = Tileset(firstgid=1, name="blank", tilewidth=16, tileheight=16)
        with pytest.raises(ConversionError, match="no image"):
            MapBuilder().build(make_document([1, 0, 0, 0], tilesets=[tileset]), "m.tmx")

    def test_unresolved_external_tileset(self) -> None:
        tileset = Tileset(firstgid=1, name="", tilewidth=16, tileheight=16,
                          source="gone.tsx")
        tileset.image = Image(source="t.png", location=PurePosixPath("t.png"))
        with pytest.raises(ConversionError, match="gone.tsx"):
            MapBuilder().build(make_document([1, 0, 0, 0], tilesets=[tileset]), "m.tmx")

    def test_infinite_map(self) -> None:
        document = make_document([0, 0, 0, 0])
        document.infinite = True
        with pytest.raises(ConversionError, match="infinite"):
            MapBuilder().build(document, "m.tmx")

    def test_zero_size_map(self) -> None:
        with pytest.raises(ConversionError, match="map size"):
            MapBuilder().build(make_document([], width=0, height=0), "m.tmx")

