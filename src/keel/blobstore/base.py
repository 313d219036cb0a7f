"""Base blobstore interface."""

import asyncio
import hashlib
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from keel.errors import BlobstoreError


logger = logging.getLogger(__name__)


class Blobstore(ABC):
    """Content-addressed artifact store.

    ``get`` hands back a private local copy of the blob that the caller owns
    until it passes it to ``clean_up``.
    """

    def __init__(self, tmp_dir: Optional[Path] = None):
        self.tmp_dir = Path(tmp_dir) if tmp_dir else None

    @abstractmethod
    async def get(self, blob_id: str, sha1: str) -> Path:
        """Fetch a blob into a local file and verify its checksum."""
        pass

    async def clean_up(self, path: Path) -> None:
        """Remove a file previously returned by ``get``."""
        try:
            await asyncio.to_thread(Path(path).unlink, missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to clean up blob {path}: {e}")

    def _new_local_path(self) -> Path:
        if self.tmp_dir:
            self.tmp_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix="keel-blob-", dir=self.tmp_dir)
        os.close(fd)
        return Path(name)

    @staticmethod
    def _verify_sha1(path: Path, expected: str) -> None:
        if not expected:
            logger.debug(f"No checksum given for {path}, skipping verification")
            return

        digest = hashlib.sha1()
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(1024 * 1024), b""):
                digest.update(chunk)

        actual = digest.hexdigest()
        if actual != expected:
            raise BlobstoreError(
                f"Checksum mismatch: expected {expected}, got {actual}"
            )
