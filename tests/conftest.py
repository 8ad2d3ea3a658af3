"""Shared fixtures: small TMX/TSX documents and asset trees."""

import io
from pathlib import Path
from typing import Dict, List

import pytest
from PIL import Image

from tmx_loader.storage import MemoryReader, StorageReader


# 2x2 map, one embedded tileset, cells [1, 0x80000002, 0, 3]
MAP_2X2 = b"""<?xml version="1.0" encoding="UTF-8"?>
<map version="1.10" orientation="orthogonal" renderorder="right-down"
     width="2" height="2" tilewidth="16" tileheight="16">
 <tileset firstgid="1" name="inline" tilewidth="16" tileheight="16" tilecount="4" columns="2">
  <image source="tiles.png" width="32" height="32"/>
 </tileset>
 <layer id="1" name="Ground" width="2" height="2">
  <data encoding="csv">
1,2147483650,
0,3
</data>
 </layer>
</map>
"""

# Same cells with no tileset at all
MAP_2X2_NO_TILESET = b"""<?xml version="1.0" encoding="UTF-8"?>
<map version="1.10" orientation="orthogonal" width="2" height="2" tilewidth="16" tileheight="16">
 <layer id="1" name="Ground" width="2" height="2">
  <data encoding="csv">1,2147483650,0,3</data>
 </layer>
</map>
"""

LEVEL1_TMX = b"""<?xml version="1.0" encoding="UTF-8"?>
<map version="1.10" orientation="orthogonal" renderorder="right-down"
     width="3" height="2" tilewidth="16" tileheight="16">
 <properties>
  <property name="music" value="forest.ogg"/>
  <property name="difficulty" type="int" value="3"/>
 </properties>
 <tileset firstgid="1" source="../tilesets/terrain.tsx"/>
 <tileset firstgid="9" name="props" tilewidth="16" tileheight="16" tilecount="4" columns="2">
  <image source="./props.png" width="32" height="32"/>
 </tileset>
 <layer id="1" name="Ground" width="3" height="2">
  <data encoding="csv">
1,2,3,
4,5,6
</data>
 </layer>
 <group id="2" name="Overlay" offsetx="4" opacity="0.5">
  <layer id="3" name="Decor" width="3" height="2" opacity="0.5" offsety="2">
   <data encoding="csv">
0,2147483657,0,
0,0,3221225473
</data>
  </layer>
 </group>
 <objectgroup id="4" name="Spawns">
  <object id="1" name="chest" x="16" y="16" width="16" height="16" gid="1073741833"/>
  <object id="2" name="start" type="spawn" x="8" y="8"/>
 </objectgroup>
</map>
"""

TERRAIN_TSX = b"""<?xml version="1.0" encoding="UTF-8"?>
<tileset version="1.10" name="terrain" tilewidth="16" tileheight="16" tilecount="8" columns="4">
 <properties>
  <property name="biome" value="grass"/>
 </properties>
 <image source="terrain.png"/>
</tileset>
"""


def png_bytes(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (width, height)).save(buf, format="PNG")
    return buf.getvalue()


class RecordingReader(StorageReader):
    """Wraps another reader and remembers every path it was asked to read."""

    def __init__(self, inner: StorageReader):
        self.inner = inner
        self.reads: List[str] = []

    def read_bytes(self, path):
        self.reads.append(Path(path).as_posix())
        return self.inner.read_bytes(path)


class FailingReader(StorageReader):
    """Fails on any read; resolve_path() is inherited."""

    def read_bytes(self, path):
        raise AssertionError(f"unexpected read of {path}")


def level1_files(root: str = "assets") -> Dict[str, bytes]:
    return {
        f"{root}/maps/level1.tmx": LEVEL1_TMX,
        f"{root}/tilesets/terrain.tsx": TERRAIN_TSX,
        f"{root}/tilesets/terrain.png": png_bytes(64, 32),
    }


@pytest.fixture
def memory_reader() -> MemoryReader:
    return MemoryReader(level1_files())


@pytest.fixture
def asset_root(tmp_path: Path) -> Path:
    """Asset tree on disk with level1.tmx, terrain.tsx and terrain.png."""
    root = tmp_path / "assets"
    for name, data in level1_files(str(root)).items():
        path = Path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    return root
