"""
=============================================================================
ASSET STORES
=============================================================================

Where the web UI's files come from. The gateway only ever asks for a bare
file name ("index.html", "piface.js", "board.png"), never a path.

    DirectoryAssetStore   files in one directory on disk
    MemoryAssetStore      a dict of name → bytes (tests, embedded UIs)

=============================================================================
PATH TRAVERSAL
=============================================================================

A name like "../../etc/passwd" must never leave the asset directory. The
resolver already refuses names with separators, and DirectoryAssetStore
checks again after resolving symlinks:

    root      = /srv/iogateway/www
    requested = (root / name).resolve()
    requested.relative_to(root)      # raises ValueError if outside root

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Mapping, Union

from ..errors import AssetNotFound


logger = logging.getLogger(__name__)


class AssetStore(ABC):
    """Something that can load an asset by name."""

    @abstractmethod
    def load(self, name: str) -> bytes:
        """
        Return the asset's bytes.

        Raises:
            AssetNotFound: No asset with this name.
        """

    def __contains__(self, name: str) -> bool:
        try:
            self.load(name)
        except AssetNotFound:
            return False
        return True


class DirectoryAssetStore(AssetStore):
    """
    Serves files from a single directory.

    Subdirectories are not reachable: the gateway's URLs carry a file
    name only.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

        if not self.root.is_dir():
            logger.warning(f"Asset directory does not exist: {self.root}")

    def load(self, name: str) -> bytes:
        full_path = (self.root / name).resolve()

        try:
            full_path.relative_to(self.root)
        except ValueError:
            logger.warning(f"Path traversal attempt: {name!r}")
            raise AssetNotFound(name)

        if full_path.parent != self.root or not full_path.is_file():
            raise AssetNotFound(name)

        try:
            return full_path.read_bytes()
        except OSError as e:
            logger.error(f"Error reading asset {full_path}: {e}")
            raise AssetNotFound(name) from e

    def __repr__(self) -> str:
        return f"DirectoryAssetStore({str(self.root)!r})"


class MemoryAssetStore(AssetStore):
    """Serves assets from an in-memory mapping."""

    def __init__(self, assets: Mapping[str, Union[str, bytes]] = None):
        self._assets: dict[str, bytes] = {}
        for name, content in (assets or {}).items():
            self.add(name, content)

    def add(self, name: str, content: Union[str, bytes]) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._assets[name] = content

    def load(self, name: str) -> bytes:
        try:
            return self._assets[name]
        except KeyError:
            raise AssetNotFound(name) from None

    def __repr__(self) -> str:
        return f"MemoryAssetStore({sorted(self._assets)!r})"
