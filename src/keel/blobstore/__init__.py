"""Blobstore implementations."""

from pathlib import Path
from typing import Optional

from keel.blobstore.base import Blobstore
from keel.blobstore.dav import DavBlobstore
from keel.blobstore.local import LocalBlobstore
from keel.errors import BlobstoreError
from keel.models.config import BlobstoreConfig


def create_blobstore(config: BlobstoreConfig, tmp_dir: Optional[Path] = None) -> Blobstore:
    """Build the blobstore selected by ``config.provider``."""
    if config.provider == "dav":
        if not config.endpoint:
            raise BlobstoreError("DAV blobstore requires an endpoint")
        return DavBlobstore(
            config.endpoint,
            user=config.user,
            password=config.password,
            tmp_dir=tmp_dir,
        )

    if config.provider == "local":
        return LocalBlobstore(Path(config.path), tmp_dir=tmp_dir)

    raise BlobstoreError(f"Unknown blobstore provider {config.provider}")


__all__ = [
    "Blobstore",
    "DavBlobstore",
    "LocalBlobstore",
    "create_blobstore",
]
