"""Object storage client for product images (Supabase Storage REST API)."""

import logging

import httpx

from inventory_tracker.core.config import settings
from inventory_tracker.core.errors import StorageError

logger = logging.getLogger(__name__)


class StorageClient:
    """Uploads and removes objects in one bucket on the caller's behalf.

    Every call forwards the caller's bearer token so the storage service
    applies its own ownership policies.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout = timeout
        self._transport = transport

    @property
    def public_prefix(self) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/"

    def public_url(self, path: str) -> str:
        return self.public_prefix + path

    def path_from_public_url(self, url: str) -> str | None:
        """Object path for a URL issued by this bucket, None for external URLs."""
        if not url.startswith(self.public_prefix):
            return None
        return url[len(self.public_prefix):]

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "apikey": self.api_key}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def upload(self, path: str, content: bytes, content_type: str, token: str) -> str:
        """Store an object and return its public URL."""
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        headers = {**self._headers(token), "Content-Type": content_type, "x-upsert": "false"}
        try:
            async with self._client() as client:
                resp = await client.post(url, content=content, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("Storage upload failed for %s: %s", path, exc)
            raise StorageError("Image upload failed")
        except httpx.RequestError as exc:
            logger.error("Storage connection error for %s: %s", path, exc)
            raise StorageError("Cannot reach object storage")
        return self.public_url(path)

    async def remove(self, path: str, token: str) -> bool:
        """Best-effort removal. Returns False instead of raising on failure."""
        url = f"{self.base_url}/storage/v1/object/{self.bucket}"
        try:
            async with self._client() as client:
                resp = await client.request(
                    "DELETE", url, json={"prefixes": [path]}, headers=self._headers(token)
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Storage removal failed for %s: %s", path, exc)
            return False
        return True


storage_client = StorageClient(
    base_url=settings.SUPABASE_URL,
    api_key=settings.SUPABASE_ANON_KEY,
    bucket=settings.STORAGE_BUCKET,
    timeout=settings.STORAGE_TIMEOUT_SECONDS,
)


def get_storage() -> StorageClient:
    return storage_client
