"""
Loader configuration.

Settings are fixed when a loader or server is constructed and never change
afterwards, so concurrent loads read them without locking.
"""

import os
from dataclasses import dataclass
from pathlib import PurePath
from typing import Mapping, Optional, Union

DEFAULT_ASSET_ROOT = "assets"


def _env_flag(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class LoaderSettings:
    """
    asset_root:        directory every relative reference is joined to
    probe_image_sizes: read images whose width/height the tileset omits
    max_workers:       thread pool size for AssetServer.load_many()
    """
    asset_root: Union[str, PurePath] = DEFAULT_ASSET_ROOT
    probe_image_sizes: bool = True
    max_workers: int = 4

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LoaderSettings":
        """Build settings from TMX_ASSET_ROOT, TMX_PROBE_IMAGES and TMX_MAX_WORKERS."""
        environ = os.environ if environ is None else environ
        kwargs = {}
        if environ.get("TMX_ASSET_ROOT"):
            kwargs["asset_root"] = environ["TMX_ASSET_ROOT"]
        if "TMX_PROBE_IMAGES" in environ:
            kwargs["probe_image_sizes"] = _env_flag(environ["TMX_PROBE_IMAGES"])
        if environ.get("TMX_MAX_WORKERS"):
            try:
                kwargs["max_workers"] = int(environ["TMX_MAX_WORKERS"])
            except ValueError:
                raise ValueError(
                    f"TMX_MAX_WORKERS must be an integer, got {environ['TMX_MAX_WORKERS']!r}")
        return cls(**kwargs)
