"""
TMX map loader - the entry point the asset runtime calls

=============================================================================
PIPELINE
=============================================================================

    bytes + logical path
        │
        ▼
    TmxParser.parse_map()  ──reads TSX/images──▶  PathResolver ─▶ StorageReader
        │                                          (asset root)
        ▼
    TiledDocument (raw GIDs)
        │
        ▼
    MapBuilder.build()
        │
        ▼
    MapAsset (decoded, immutable)  ──▶  LoadContext.set_default_asset()

Every error propagates unchanged: AssetIOError from the resolver,
ParseError from the parser, ConversionError from the builder. Nothing is
registered unless the whole pipeline succeeds.

=============================================================================
"""

import logging
from pathlib import PurePath, PurePosixPath
from typing import Optional, Tuple, Union

from tmx_manager import TmxParser

from .map.builder import MapBuilder
from .map.model import MapAsset
from .settings import LoaderSettings
from .storage.reader import StorageReader
from .storage.resolver import PathResolver


class LoadContext:
    """
    Host-side handle for one load.

    Carries the logical path being loaded and receives the finished asset.
    A context accepts exactly one asset.
    """

    def __init__(self, path: Union[str, PurePath]):
        self.path = PurePosixPath(path)
        self.asset: Optional[MapAsset] = None

    def set_default_asset(self, asset: MapAsset):
        if self.asset is not None:
            raise RuntimeError(f"asset for {self.path} was already set")
        self.asset = asset


class TiledMapLoader:
    """
    Loads .tmx files into MapAsset objects.

    The loader only holds immutable configuration (settings, resolver,
    parser, builder), so a single instance serves concurrent load() calls.
    """

    EXTENSIONS: Tuple[str, ...] = ("tmx",)

    def __init__(self, settings: Optional[LoaderSettings] = None,
                 reader: Optional[StorageReader] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.settings = settings if settings is not None else LoaderSettings()
        self.resolver = PathResolver(self.settings.asset_root, reader)
        self.parser = TmxParser(self.resolver, probe_image_sizes=self.settings.probe_image_sizes)
        self.builder = MapBuilder()

    def extensions(self) -> Tuple[str, ...]:
        return self.EXTENSIONS

    def load(self, data: bytes, logical_path: Union[str, PurePath]) -> MapAsset:
        """
        Parse and convert one map.

        Parameters:
        -----------
        data : bytes
            Contents of the .tmx file
        logical_path : str or PurePath
            Path of the file relative to the asset root

        Raises:
        -------
        AssetIOError, ParseError, ConversionError
        """
        path = PurePosixPath(logical_path)
        self.logger.debug(f"loading {path}")
        document = self.parser.parse_map(data, path)
        return self.builder.build(document, path)

    def load_into(self, data: bytes, context: LoadContext):
        """Load and hand the asset to the host's context."""
        context.set_default_asset(self.load(data, context.path))
