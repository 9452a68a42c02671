"""
Object storage implementations: Supabase Storage over HTTP, or local disk.
For local development, files are stored on disk.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional
import httpx
from src.app.services.object_storage import ObjectStorage, StorageError

logger = logging.getLogger(__name__)


class SupabaseObjectStorage(ObjectStorage):
    """Supabase Storage REST API (service role key)"""

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = supabase_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.service_key}",
                "apikey": self.service_key,
            },
        )

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    async def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/storage/v1/object/{bucket}/{path}",
                    content=data,
                    headers={"Content-Type": content_type, "x-upsert": "false"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Upload of {bucket}/{path} failed: {e}") from e

        logger.info(f"Uploaded {len(data)} bytes to {bucket}/{path}")
        return self.public_url(bucket, path)

    async def delete(self, bucket: str, path: str) -> None:
        try:
            async with self._client() as client:
                response = await client.request(
                    "DELETE",
                    f"{self.base_url}/storage/v1/object/{bucket}",
                    json={"prefixes": [path]},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Delete of {bucket}/{path} failed: {e}") from e


class LocalObjectStorage(ObjectStorage):
    """Files under <root>/<bucket>/<path>, served from base_url"""

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _file(self, bucket: str, path: str) -> Path:
        target = (self.root / bucket / path).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageError(f"Path escapes storage root: {path}")
        return target

    async def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        target = self._file(bucket, path)
        try:
            await asyncio.to_thread(_write, target, data)
        except OSError as e:
            raise StorageError(f"Write of {bucket}/{path} failed: {e}") from e

        logger.info(f"Saved {len(data)} bytes to {target}")
        return f"{self.base_url}/{bucket}/{path}"

    async def delete(self, bucket: str, path: str) -> None:
        target = self._file(bucket, path)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Delete of {bucket}/{path} failed: {e}") from e

    def read(self, bucket: str, path: str) -> bytes:
        target = self._file(bucket, path)
        if not target.exists():
            raise FileNotFoundError(f"File not found: {bucket}/{path}")
        return target.read_bytes()


def _write(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


def create_object_storage(config) -> ObjectStorage:
    """
    Factory function to create the configured object storage

    Args:
        config: ApplicationConfig (STORAGE_BACKEND selects supabase or local)
    """
    if config.STORAGE_BACKEND == "supabase":
        if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_KEY:
            raise ValueError("STORAGE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_KEY")
        return SupabaseObjectStorage(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)

    logger.info(f"Using local object storage at {config.LOCAL_STORAGE_PATH}")
    return LocalObjectStorage(config.LOCAL_STORAGE_PATH, config.LOCAL_STORAGE_BASE_URL)
