"""Blobstore backed by a WebDAV/HTTP server."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from keel.blobstore.base import Blobstore
from keel.errors import BlobstoreError


logger = logging.getLogger(__name__)


class DavBlobstore(Blobstore):
    """Blobs served at ``<endpoint>/<blob_id>``."""

    def __init__(
        self,
        endpoint: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        tmp_dir: Optional[Path] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 300.0,
    ):
        """Initialize DAV blobstore."""
        super().__init__(tmp_dir)
        self.endpoint = endpoint.rstrip("/")
        self.auth = httpx.BasicAuth(user, password or "") if user else None
        self.transport = transport
        self.timeout = timeout

    async def get(self, blob_id: str, sha1: str) -> Path:
        """Download a blob and verify it."""
        try:
            local_path = await asyncio.to_thread(self._new_local_path)
        except OSError as e:
            raise BlobstoreError("Creating local blob file", e) from e

        url = f"{self.endpoint}/{blob_id}"
        try:
            await self._download(url, local_path)
            await asyncio.to_thread(self._verify_sha1, local_path, sha1)
        except httpx.HTTPStatusError as e:
            await self.clean_up(local_path)
            raise BlobstoreError(
                f"Getting blob {blob_id}: HTTP {e.response.status_code}", e
            ) from e
        except (httpx.HTTPError, OSError, BlobstoreError) as e:
            await self.clean_up(local_path)
            raise BlobstoreError(f"Getting blob {blob_id}", e) from e

        logger.debug(f"Downloaded blob {blob_id} to {local_path}")
        return local_path

    async def _download(self, url: str, local_path: Path):
        async with httpx.AsyncClient(
            auth=self.auth, transport=self.transport, timeout=self.timeout
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with open(local_path, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
