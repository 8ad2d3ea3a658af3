"""
Minimal asset server - the host side of the loader boundary.

Routes files to loaders by extension, reads the entry bytes from under the
asset root and keeps the finished assets keyed by logical path. Loads run
on a thread pool; the only shared mutable state is the asset table.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import PurePath, PurePosixPath
from typing import Dict, Iterable, Optional, Union

from .errors import LOAD_ERRORS, UnsupportedAssetError
from .loader import LoadContext, TiledMapLoader
from .map.model import MapAsset
from .settings import LoaderSettings
from .storage.reader import StorageReader
from .storage.resolver import PathResolver

PathArg = Union[str, PurePath]


class AssetServer:
    """Owns the asset table and dispatches loads to registered loaders."""

    def __init__(self, settings: Optional[LoaderSettings] = None,
                 reader: Optional[StorageReader] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.settings = settings if settings is not None else LoaderSettings()
        self.resolver = PathResolver(self.settings.asset_root, reader)
        self._loaders: Dict[str, TiledMapLoader] = {}
        self._assets: Dict[PurePosixPath, MapAsset] = {}
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def with_default_loaders(cls, settings: Optional[LoaderSettings] = None,
                             reader: Optional[StorageReader] = None) -> "AssetServer":
        """Server with a TiledMapLoader sharing the same settings and reader."""
        server = cls(settings, reader)
        server.register_loader(TiledMapLoader(server.settings, server.resolver.reader))
        return server

    def register_loader(self, loader):
        for extension in loader.extensions():
            extension = extension.lower()
            if extension in self._loaders:
                raise ValueError(f"extension {extension!r} is already claimed")
            self._loaders[extension] = loader
            self.logger.debug(f"registered {type(loader).__name__} for .{extension}")

    def _loader_for(self, path: PurePosixPath):
        extension = path.suffix[1:].lower()
        try:
            return self._loaders[extension]
        except KeyError:
            raise UnsupportedAssetError(f"no loader registered for {path}")

    # -----------------------------------------------------------------
    # LOADING
    # -----------------------------------------------------------------

    def load(self, path: PathArg) -> MapAsset:
        """
        Load one asset and store it under its logical path.

        Nothing is stored if any step fails; the error is raised as is.
        """
        path = PurePosixPath(path)
        loader = self._loader_for(path)
        data = self.resolver.read_bytes(path)

        context = LoadContext(path)
        loader.load_into(data, context)

        with self._lock:
            self._assets[path] = context.asset
        self.logger.info(f"loaded {path}")
        return context.asset

    def submit(self, path: PathArg) -> "Future[MapAsset]":
        """Schedule load(path) on the server's thread pool."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.settings.max_workers, thread_name_prefix="tmx-load")
            executor = self._executor
        return executor.submit(self.load, path)

    def load_many(self, paths: Iterable[PathArg]) -> Dict[PurePosixPath, Union[MapAsset, Exception]]:
        """
        Load several assets concurrently.

        Returns a mapping of path to either the asset or the load error for
        that path. Errors that are not load errors are re-raised.
        """
        results: Dict[PurePosixPath, Union[MapAsset, Exception]] = {}
        unique_paths = list(dict.fromkeys(PurePosixPath(p) for p in paths))

        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
            future_to_path = {executor.submit(self.load, path): path for path in unique_paths}

            for future in as_completed(future_to_path):
                path = future_to_path[future]
                try:
                    results[path] = future.result()
                except LOAD_ERRORS as e:
                    self.logger.error(f"Failed to load {path}: {e}")
                    results[path] = e

        return results

    def shutdown(self):
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "AssetServer":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    # -----------------------------------------------------------------
    # ASSET TABLE
    # -----------------------------------------------------------------

    def get(self, path: PathArg) -> Optional[MapAsset]:
        with self._lock:
            return self._assets.get(PurePosixPath(path))

    def __contains__(self, path: PathArg) -> bool:
        return self.get(path) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._assets)
