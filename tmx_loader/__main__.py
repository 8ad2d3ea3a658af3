#!/usr/bin/env python3

"""
TMX Loader - load a Tiled map and print what it contains

Usage:
    python -m tmx_loader <map.tmx> [--root DIR] [-v|--verbose]

    <map.tmx>     Path of the map relative to the asset root
    --root DIR    Asset root (default: $TMX_ASSET_ROOT or "assets")
    -v --verbose  Debug logging
"""

import logging
import sys
from dataclasses import replace

from .errors import LOAD_ERRORS
from .server import AssetServer
from .settings import LoaderSettings
from .utils.logging_config import setup_logging


def describe(asset) -> str:
    lines = [
        f"{asset.path}: {asset.width}x{asset.height} tiles of "
        f"{asset.tile_width}x{asset.tile_height} px ({asset.orientation})",
        f"Tilesets: {len(asset.tilesets)}",
    ]
    for binding in asset.tilesets:
        lines.append(f"  {binding.first_gid:>5}  {binding.name or '-'}  {binding.path}"
                     + (f"  [{binding.image}]" if binding.image else ""))
    lines.append(f"Layers: {len(asset.layers)}")
    for layer in asset.tile_layers():
        used = sum(1 for ref in layer.tiles if not ref.is_empty)
        flipped = sum(1 for ref in layer.tiles if any(ref.flags))
        lines.append(f"  tiles    {layer.name}: {used} cells, {flipped} flipped")
    for layer in asset.object_layers():
        lines.append(f"  objects  {layer.name}: {len(layer.objects)} objects")
    return "\n".join(lines)


def main(argv=None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    settings = LoaderSettings.from_env()
    level = logging.INFO

    for flag in ("-v", "--verbose"):
        if flag in args:
            args.remove(flag)
            level = logging.DEBUG
    if "--root" in args:
        i = args.index("--root")
        if i + 1 >= len(args):
            print(__doc__)
            return 1
        settings = replace(settings, asset_root=args[i + 1])
        del args[i:i + 2]

    if len(args) != 1:
        print(__doc__)
        return 1

    setup_logging(level)
    server = AssetServer.with_default_loaders(settings)
    try:
        asset = server.load(args[0])
    except LOAD_ERRORS as e:
        print(f"Error: {e}")
        return 1

    print(describe(asset))
    return 0


if __name__ == "__main__":
    sys.exit(main())
