"""Versioned install directories with an active-version symlink."""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol

from keel.errors import BundleError


logger = logging.getLogger(__name__)


class BundleDefinition(Protocol):
    """Anything that can name and version a bundle."""

    def bundle_name(self) -> str: ...

    def bundle_version(self) -> str: ...


@dataclass(frozen=True)
class FileBundle:
    """A named, versioned install directory.

    Installed content lives at ``<install_root>/<name>/<version>``; enabling
    points ``<enable_root>/<name>`` at it. Two handles are equal when they
    refer to the same name and version, wherever they were obtained from.
    """
    name: str
    version: str
    install_root: Path = field(compare=False)
    enable_root: Path = field(compare=False)

    @property
    def install_path(self) -> Path:
        return self.install_root / self.name / self.version

    @property
    def enable_path(self) -> Path:
        return self.enable_root / self.name

    async def install(self) -> Path:
        """Create the version directory and return it."""
        try:
            await asyncio.to_thread(
                lambda: self.install_path.mkdir(parents=True, exist_ok=True)
            )
        except OSError as e:
            raise BundleError(f"Creating install dir {self.install_path}", e) from e
        logger.debug(f"Installed bundle {self.name}/{self.version}")
        return self.install_path

    async def get_install_path(self) -> Path:
        """Return the version directory, which must already be installed."""
        if not await asyncio.to_thread(self.install_path.is_dir):
            raise BundleError(f"Bundle {self.name}/{self.version} is not installed")
        return self.install_path

    async def is_enabled(self) -> bool:
        """Check whether the active symlink points at this version."""
        return await asyncio.to_thread(self._points_here)

    async def enable(self) -> Path:
        """Make this version the active one."""
        await self.get_install_path()
        try:
            await asyncio.to_thread(self._swap_symlink)
        except OSError as e:
            raise BundleError(f"Enabling bundle {self.name}/{self.version}", e) from e
        logger.debug(f"Enabled bundle {self.name}/{self.version}")
        return self.enable_path

    async def disable(self) -> None:
        """Remove the active symlink if it points at this version."""
        try:
            if await asyncio.to_thread(self._points_here):
                await asyncio.to_thread(self.enable_path.unlink)
                logger.debug(f"Disabled bundle {self.name}/{self.version}")
        except OSError as e:
            raise BundleError(f"Disabling bundle {self.name}/{self.version}", e) from e

    async def uninstall(self) -> None:
        """Remove the version directory."""
        try:
            await asyncio.to_thread(self._remove_install_dirs)
        except OSError as e:
            raise BundleError(f"Uninstalling bundle {self.name}/{self.version}", e) from e
        logger.debug(f"Uninstalled bundle {self.name}/{self.version}")

    def _points_here(self) -> bool:
        if not self.enable_path.is_symlink():
            return False
        return Path(os.readlink(self.enable_path)) == self.install_path

    def _swap_symlink(self):
        # Build the new link beside the old one and rename over it, so the
        # active path never disappears.
        self.enable_root.mkdir(parents=True, exist_ok=True)
        tmp_link = self.enable_root / f".{self.name}.tmp"
        if tmp_link.is_symlink() or tmp_link.exists():
            tmp_link.unlink()
        tmp_link.symlink_to(self.install_path)
        os.replace(tmp_link, self.enable_path)

    def _remove_install_dirs(self):
        if self.install_path.exists():
            shutil.rmtree(self.install_path)
        name_dir = self.install_path.parent
        if name_dir.is_dir() and not any(name_dir.iterdir()):
            name_dir.rmdir()


class FileBundleCollection:
    """Bundles stored under a common install root."""

    def __init__(
        self,
        install_root: Path,
        enable_root: Path,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize bundle collection."""
        self.install_root = Path(install_root)
        self.enable_root = Path(enable_root)
        self.logger = logger or logging.getLogger(__name__)

    def get(self, definition: BundleDefinition) -> FileBundle:
        """Return the bundle handle for ``definition``."""
        name = definition.bundle_name()
        if not name:
            raise BundleError("Missing bundle name")

        version = definition.bundle_version()
        if not version:
            raise BundleError("Missing bundle version")

        return FileBundle(name, version, self.install_root, self.enable_root)

    async def list(self) -> List[FileBundle]:
        """List every installed version of every bundle."""
        try:
            return await asyncio.to_thread(self._scan)
        except OSError as e:
            raise BundleError(f"Listing bundles in {self.install_root}", e) from e

    def _scan(self) -> List[FileBundle]:
        bundles = []
        if not self.install_root.is_dir():
            return bundles

        for name_dir in sorted(self.install_root.iterdir()):
            if not name_dir.is_dir():
                continue
            for version_dir in sorted(name_dir.iterdir()):
                if version_dir.is_dir():
                    bundles.append(FileBundle(
                        name_dir.name, version_dir.name, self.install_root, self.enable_root
                    ))

        self.logger.debug(f"Found {len(bundles)} installed bundles")
        return bundles
