"""
Artifact Publisher

Uploads a compiled PDF to a deterministic, per-identity object path with
bounded retries, and removes stale PDFs from the identity's folder in the
background.

Main classes:
    ArtifactPublisher: publish() and cleanup() against a StorageBackend
    CleanupQueue: Background worker that runs cleanups off the request path
"""

import asyncio
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from rescribe.contexts.publishing.identity import Identity
from rescribe.contexts.publishing.logger import (
    _log_debug,
    _log_error,
    _log_info,
    _log_success,
    _log_warning,
)
from rescribe.contexts.publishing.storage import StorageBackend, join_object_path
from rescribe.exceptions import PublishError
from rescribe.utils.retry import Sleeper, retry_with_backoff

DEFAULT_FILE_NAME = "resume.pdf"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_S = 1.0
PDF_CONTENT_TYPE = "application/pdf"


def sanitize_file_name(file_name: Optional[str]) -> str:
    """
    Normalize a requested file name into a storage-safe PDF name.

    Drops a trailing .pdf, replaces each run of non-alphanumeric characters with an
    underscore, trims underscores, lowercases, and appends .pdf. Empty results fall
    back to "resume.pdf".

    Example:
        >>> sanitize_file_name("My Résumé (2025).PDF")
        'my_r_sum_2025.pdf'
    """
    stem = re.sub(r"\.pdf$", "", (file_name or "").strip(), flags=re.IGNORECASE)
    stem = re.sub(r"[^a-z0-9]+", "_", stem.lower()).strip("_")
    return f"{stem or 'resume'}.pdf"


@dataclass
class PublishedArtifact:
    """
    A PDF stored for one identity.

    Attributes:
        public_url: Public URL of the object (no cache buster)
        storage_path: Object path inside the bucket (e.g., users/user123/resume.pdf)
    """

    public_url: str
    storage_path: str


class ArtifactPublisher:
    """
    Publishes compiled PDFs to object storage.

    Args:
        storage: Storage backend
        bucket: Bucket holding every identity's folder
        file_name: Default file name slot (sanitized)
        max_attempts: Upload attempts before giving up
        base_delay: Wait before the second attempt; doubles for each later attempt
        sleep: Awaitable sleep function (injectable for tests)

    Example:
        >>> publisher = ArtifactPublisher(LocalStorage("/tmp/store"), bucket="resumes")
        >>> artifact = await publisher.publish(Path("resume.pdf"), Identity.user("user123"))
        >>> artifact.storage_path
        'users/user123/resume.pdf'
    """

    def __init__(
        self,
        storage: StorageBackend,
        bucket: str,
        file_name: str = DEFAULT_FILE_NAME,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_S,
        sleep: Optional[Sleeper] = None,
    ):
        self.storage = storage
        self.bucket = bucket
        self.file_name = sanitize_file_name(file_name)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def storage_path_for(self, identity: Identity, file_name: Optional[str] = None) -> str:
        """Deterministic object path for an identity's file slot."""
        name = sanitize_file_name(file_name) if file_name else self.file_name
        return join_object_path(identity.storage_prefix, name)

    async def publish(
        self,
        local_path: Union[str, Path],
        identity: Identity,
        file_name: Optional[str] = None,
    ) -> PublishedArtifact:
        """
        Upload a local PDF, overwriting the identity's existing object in that slot.

        Raises:
            PublishError: If every attempt fails; wraps the last failure
            FileNotFoundError: If local_path does not exist
        """
        data = await asyncio.to_thread(Path(local_path).read_bytes)
        storage_path = self.storage_path_for(identity, file_name)
        _log_info(f"Publishing {len(data)} bytes to {self.bucket}/{storage_path}")

        async def _attempt() -> str:
            return await self.storage.upload(
                self.bucket, storage_path, data, content_type=PDF_CONTENT_TYPE, upsert=True
            )

        try:
            await retry_with_backoff(
                _attempt,
                Exception,
                error_message=f"Upload of {storage_path} failed",
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                sleep=self._sleep,
            )
        except Exception as e:
            _log_error(f"Giving up on {storage_path} after {self.max_attempts} attempts")
            raise PublishError(
                f"Failed to upload PDF after {self.max_attempts} attempts: {e}", last_error=e
            ) from e

        public_url = self.storage.get_public_url(self.bucket, storage_path)
        _log_success(f"Published {storage_path}")
        return PublishedArtifact(public_url=public_url, storage_path=storage_path)

    async def remove_stale(self, identity: Identity, keep: Iterable[str] = ()) -> List[str]:
        """
        Delete every PDF in the identity's folder except the paths in keep.

        Returns:
            Removed object paths

        Raises:
            StorageError: If listing or deletion fails
        """
        keep = set(keep)
        entries = await self.storage.list(self.bucket, identity.storage_prefix)
        stale = [
            entry.path
            for entry in entries
            if not entry.is_folder and entry.name.lower().endswith(".pdf") and entry.path not in keep
        ]
        if not stale:
            _log_debug(f"No stale PDFs under {identity.storage_prefix}")
            return []

        await self.storage.remove(self.bucket, stale)
        _log_info(f"Removed {len(stale)} stale PDF(s) under {identity.storage_prefix}")
        return stale

    async def cleanup(self, identity: Identity, keep: Iterable[str] = ()) -> List[str]:
        """Best-effort remove_stale(): failures are logged and an empty list returned."""
        try:
            return await self.remove_stale(identity, keep)
        except Exception as e:
            _log_warning(f"Cleanup of {identity.storage_prefix} failed: {e}")
            return []


@dataclass
class CleanupFailure:
    """A cleanup job that raised, kept for inspection."""

    identity: Identity
    error: BaseException


@dataclass
class _CleanupRequest:
    identity: Identity
    keep: List[str] = field(default_factory=list)


class CleanupQueue:
    """
    Runs publisher cleanups on a single background worker task.

    Callers submit() and move on; the request path never awaits deletion.
    Failures are logged and appended to `failures` instead of being lost.

    Example:
        >>> queue = CleanupQueue(publisher)
        >>> queue.submit(Identity.user("user123"), keep=["users/user123/resume.pdf"])
        >>> await queue.join()
        >>> queue.failures
        []
    """

    def __init__(self, publisher: ArtifactPublisher):
        self.publisher = publisher
        self.failures: List[CleanupFailure] = []
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    def _ensure_worker(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._worker_loop())
        return self._queue

    def submit(self, identity: Identity, keep: Iterable[str] = ()) -> None:
        """Schedule a cleanup. Must be called from within a running event loop."""
        queue = self._ensure_worker()
        queue.put_nowait(_CleanupRequest(identity=identity, keep=list(keep)))
        _log_debug(f"Queued cleanup for {identity.storage_prefix}")

    async def _worker_loop(self) -> None:
        assert self._queue is not None
        while True:
            request = await self._queue.get()
            try:
                if request is None:  # Shutdown signal
                    return
                await self.publisher.remove_stale(request.identity, request.keep)
            except Exception as e:
                _log_warning(f"Background cleanup of {request.identity.storage_prefix} failed: {e}")
                self.failures.append(CleanupFailure(identity=request.identity, error=e))
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted cleanup has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Finish pending cleanups, then stop the worker."""
        if self._worker is None or self._worker.done():
            return
        assert self._queue is not None
        self._queue.put_nowait(None)
        await self._worker
        self._worker = None
