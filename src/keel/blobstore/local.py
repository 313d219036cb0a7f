"""Blobstore backed by a local directory."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional

from keel.blobstore.base import Blobstore
from keel.errors import BlobstoreError


logger = logging.getLogger(__name__)


class LocalBlobstore(Blobstore):
    """Blobs stored as ``<blobs_dir>/<blob_id>``."""

    def __init__(self, blobs_dir: Path, tmp_dir: Optional[Path] = None):
        """Initialize local blobstore."""
        super().__init__(tmp_dir)
        self.blobs_dir = Path(blobs_dir)

    async def get(self, blob_id: str, sha1: str) -> Path:
        """Copy a blob out of the store and verify it."""
        source = self.blobs_dir / blob_id
        try:
            local_path = await asyncio.to_thread(self._new_local_path)
        except OSError as e:
            raise BlobstoreError("Creating local blob file", e) from e

        try:
            await asyncio.to_thread(shutil.copyfile, source, local_path)
            await asyncio.to_thread(self._verify_sha1, local_path, sha1)
        except OSError as e:
            await self.clean_up(local_path)
            raise BlobstoreError(f"Getting blob {blob_id}", e) from e
        except BlobstoreError as e:
            await self.clean_up(local_path)
            raise BlobstoreError(f"Getting blob {blob_id}", e) from e

        logger.debug(f"Fetched blob {blob_id} to {local_path}")
        return local_path
