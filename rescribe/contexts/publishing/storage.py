"""
Object storage backends for compiled PDFs.

Backends:
    SupabaseStorage: Supabase Storage REST API over httpx
    LocalStorage: Directory on disk, for development and tests

Both expose the same async interface: upload (with upsert), public URL lookup,
listing a folder, and removing objects.
"""

import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union
from urllib.parse import quote

import httpx

from rescribe.contexts.publishing.logger import _log_debug, _log_info
from rescribe.exceptions import StorageError

DEFAULT_LIST_LIMIT = 100


@dataclass
class StorageEntry:
    """
    One object under a listed folder.

    Attributes:
        name: Object name relative to the listed folder
        path: Full object path inside the bucket
        is_folder: True for sub-folders (no object data)
    """

    name: str
    path: str
    is_folder: bool = False


def join_object_path(*parts: str) -> str:
    """Join path segments with single slashes, ignoring empty segments."""
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


class StorageBackend(ABC):
    """Abstract base for object storage."""

    @abstractmethod
    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/pdf",
        upsert: bool = True,
    ) -> str:
        """Store data at bucket/path, returning the stored path."""

    @abstractmethod
    def get_public_url(self, bucket: str, path: str) -> str:
        """Public URL of an object (no cache buster)."""

    @abstractmethod
    async def list(self, bucket: str, prefix: str) -> List[StorageEntry]:
        """List objects directly under the prefix folder."""

    @abstractmethod
    async def remove(self, bucket: str, paths: Sequence[str]) -> None:
        """Delete objects by full path. Missing objects are not an error."""


class SupabaseStorage(StorageBackend):
    """
    Supabase Storage via its REST endpoints.

    Args:
        url: Project URL (e.g., https://abc.supabase.co)
        service_key: Service role key, sent as bearer token and apikey header
        timeout: Request timeout in seconds
        http_client: Optional shared client (tests pass one with a MockTransport)

    Example:
        >>> storage = SupabaseStorage("https://abc.supabase.co", "service-key")
        >>> await storage.upload("resumes", "users/u1/resume.pdf", pdf_bytes)
        'users/u1/resume.pdf'
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not url or not service_key:
            raise ValueError("Supabase storage requires both a project URL and a service key")
        self.base_url = f"{url.rstrip('/')}/storage/v1"
        self.service_key = service_key
        self.timeout = timeout
        self._http_client = http_client

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.service_key}", "apikey": self.service_key}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            if self._http_client is not None:
                response = await self._http_client.request(method, url, headers=headers, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StorageError(
                f"Storage request failed: {e.response.status_code} - {e.response.text[:300]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise StorageError(f"Storage request failed: {e}") from e
        return response

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/pdf",
        upsert: bool = True,
    ) -> str:
        url = f"{self.base_url}/object/{bucket}/{quote(path)}"
        headers = {"Content-Type": content_type, "x-upsert": "true" if upsert else "false"}
        await self._request("POST", url, content=data, headers=headers)
        _log_debug(f"Uploaded {len(data)} bytes to {bucket}/{path}")
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/object/public/{bucket}/{quote(path)}"

    async def list(self, bucket: str, prefix: str) -> List[StorageEntry]:
        prefix = prefix.strip("/")
        payload = {
            "prefix": prefix,
            "limit": DEFAULT_LIST_LIMIT,
            "offset": 0,
            "sortBy": {"column": "name", "order": "asc"},
        }
        response = await self._request("POST", f"{self.base_url}/object/list/{bucket}", json=payload)
        entries = []
        for item in response.json() or []:
            name = item.get("name")
            if not name:
                continue
            # Folders come back without an object id
            entries.append(
                StorageEntry(
                    name=name,
                    path=join_object_path(prefix, name),
                    is_folder=item.get("id") is None,
                )
            )
        return entries

    async def remove(self, bucket: str, paths: Sequence[str]) -> None:
        if not paths:
            return
        await self._request("DELETE", f"{self.base_url}/object/{bucket}", json={"prefixes": list(paths)})
        _log_info(f"Removed {len(paths)} object(s) from {bucket}")


class LocalStorage(StorageBackend):
    """
    Buckets as sub-directories of a local root.

    Args:
        root: Directory holding one sub-directory per bucket
        public_base_url: URL prefix for public links (default: file:// URI of root)
    """

    def __init__(self, root: Union[str, Path], public_base_url: Optional[str] = None):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _resolve(self, bucket: str, path: str) -> Path:
        bucket_dir = (self.root / bucket).resolve()
        target = (bucket_dir / path).resolve()
        if bucket_dir != target and bucket_dir not in target.parents:
            raise StorageError(f"Object path escapes bucket: {path}")
        return target

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/pdf",
        upsert: bool = True,
    ) -> str:
        target = self._resolve(bucket, path)
        if target.exists() and not upsert:
            raise StorageError(f"Object already exists: {bucket}/{path}", status_code=409)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        _log_debug(f"Wrote {len(data)} bytes to {target}")
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{bucket}/{quote(path)}"
        return self._resolve(bucket, path).as_uri()

    async def list(self, bucket: str, prefix: str) -> List[StorageEntry]:
        prefix = prefix.strip("/")
        folder = self._resolve(bucket, prefix) if prefix else (self.root / bucket)
        if not folder.is_dir():
            return []
        return [
            StorageEntry(name=child.name, path=join_object_path(prefix, child.name), is_folder=child.is_dir())
            for child in sorted(folder.iterdir())
        ]

    async def remove(self, bucket: str, paths: Sequence[str]) -> None:
        for path in paths:
            target = self._resolve(bucket, path)
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()
        if paths:
            _log_info(f"Removed {len(paths)} object(s) from {bucket}")
