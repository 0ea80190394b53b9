import asyncio
from pathlib import Path
from urllib.parse import quote

import httpx

from services.ux_audit_service.config import Settings
from services.ux_audit_service.errors import SnapshotStoreError


class LocalSnapshotStore:
    """Keeps snapshots in a directory; ``put`` overwrites, so the same key always yields the same reference."""

    def __init__(self, root_dir: str, public_base_url: str | None = None):
        self.root = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    async def put(self, data: bytes, key: str) -> str:
        path = self.root / key
        try:
            await asyncio.to_thread(_write, path, data)
        except OSError as e:
            raise SnapshotStoreError(f"local_write_failed: {key}: {e}") from e
        if self.public_base_url:
            return f"{self.public_base_url}/{quote(key)}"
        return path.resolve().as_uri()


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


class ObjectStorageSnapshotStore:
    """Upserts PNG snapshots into a storage bucket and returns their public URL."""

    def __init__(self, base_url: str, service_key: str, bucket: str = "screenshots", timeout_s: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout_s = timeout_s

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(key)}"

    async def put(self, data: bytes, key: str) -> str:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(key)}"
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": "image/png",
            "x-upsert": "true",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                r = await client.post(url, content=data, headers=headers)
        except httpx.HTTPError as e:
            raise SnapshotStoreError(f"upload_failed: {key}: {e}") from e
        if r.status_code >= 400:
            raise SnapshotStoreError(f"upload_failed: {key}: status {r.status_code}")
        return self.public_url(key)


def build_snapshot_store(settings: Settings):
    if settings.storage_url and settings.storage_service_key:
        return ObjectStorageSnapshotStore(settings.storage_url, settings.storage_service_key, bucket=settings.storage_bucket)
    return LocalSnapshotStore(str(Path(settings.snapshot_dir) / "store"))
