"""
Unit tests for the publishing context.

Tests file name sanitization, identity paths, publish retries, stale-PDF cleanup
and the background cleanup queue, using LocalStorage.
"""

import pytest

from rescribe.contexts.publishing import (
    ArtifactPublisher,
    CleanupQueue,
    Identity,
    LocalStorage,
    sanitize_file_name,
)
from rescribe.exceptions import InputValidationError, PublishError, StorageError

PDF_BYTES = b"%PDF-1.4\n%%EOF\n"


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FlakyStorage(LocalStorage):
    """LocalStorage whose first `failures` uploads raise StorageError."""

    def __init__(self, root, failures):
        super().__init__(root)
        self.failures = failures
        self.attempts = 0

    async def upload(self, bucket, path, data, content_type="application/pdf", upsert=True):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise StorageError(f"503 on attempt {self.attempts}", status_code=503)
        return await super().upload(bucket, path, data, content_type, upsert)


class DiskFullStorage(LocalStorage):
    """LocalStorage whose uploads fail with an OS-level error."""

    def __init__(self, root):
        super().__init__(root)
        self.attempts = 0

    async def upload(self, bucket, path, data, content_type="application/pdf", upsert=True):
        self.attempts += 1
        raise OSError(28, "No space left on device")


class BrokenListStorage(LocalStorage):
    """LocalStorage whose listing always fails."""

    async def list(self, bucket, prefix):
        raise StorageError("listing unavailable", status_code=500)


@pytest.fixture
def local_pdf(tmp_path):
    path = tmp_path / "resume.pdf"
    path.write_bytes(PDF_BYTES)
    return path


@pytest.mark.unit
class TestSanitizeFileName:
    """Tests for sanitize_file_name()."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("resume.pdf", "resume.pdf"),
            ("My Resume!!.PDF", "my_resume.pdf"),
            ("Jane Doe - 2026", "jane_doe_2026.pdf"),
            ("__weird__", "weird.pdf"),
            ("", "resume.pdf"),
            (None, "resume.pdf"),
            ("***", "resume.pdf"),
        ],
    )
    def test_sanitize(self, raw, expected):
        """Test lowercasing, underscore runs, trimming and the .pdf extension."""
        assert sanitize_file_name(raw) == expected


@pytest.mark.unit
class TestIdentity:
    """Tests for Identity."""

    def test_user_prefix(self):
        """Test that users publish under users/<id>."""
        assert Identity.user("user123").storage_prefix == "users/user123"

    def test_guest_prefix_is_separate(self):
        """Test that guests never share the users/ folder."""
        guest = Identity.guest("abc")
        assert guest.storage_prefix == "guests/abc"

    def test_guest_sessions_are_random(self):
        """Test that guests without a session id get distinct ones."""
        assert Identity.guest().id != Identity.guest().id

    @pytest.mark.parametrize("bad_id", ["", "../etc", "a/b", "user 1"])
    def test_invalid_ids_rejected(self, bad_id):
        """Test that ids outside [A-Za-z0-9_-]+ are rejected."""
        with pytest.raises(InputValidationError):
            Identity.user(bad_id)


@pytest.mark.unit
class TestPublish:
    """Tests for ArtifactPublisher.publish()."""

    @pytest.mark.asyncio
    async def test_publish_is_idempotent_per_user(self, tmp_path, local_pdf):
        """Test that two publishes for one user share a path and overwrite."""
        storage = LocalStorage(tmp_path / "store", public_base_url="https://cdn.test")
        publisher = ArtifactPublisher(storage, bucket="resumes")
        identity = Identity.user("user123")

        first = await publisher.publish(local_pdf, identity)
        local_pdf.write_bytes(PDF_BYTES + b"v2")
        second = await publisher.publish(local_pdf, identity)

        assert first.storage_path == second.storage_path == "users/user123/resume.pdf"
        assert second.public_url == "https://cdn.test/resumes/users/user123/resume.pdf"
        stored = tmp_path / "store" / "resumes" / "users" / "user123" / "resume.pdf"
        assert stored.read_bytes().endswith(b"v2")

    @pytest.mark.asyncio
    async def test_publish_with_custom_slot(self, tmp_path, local_pdf):
        """Test that a requested file name is sanitized into its own slot."""
        publisher = ArtifactPublisher(LocalStorage(tmp_path), bucket="resumes")

        artifact = await publisher.publish(local_pdf, Identity.user("u1"), file_name="Data Role.pdf")

        assert artifact.storage_path == "users/u1/data_role.pdf"

    @pytest.mark.asyncio
    async def test_retries_with_backoff(self, tmp_path, local_pdf):
        """Test that transient failures are retried after 1s then 2s."""
        storage = FlakyStorage(tmp_path, failures=2)
        sleep = RecordingSleep()
        publisher = ArtifactPublisher(storage, bucket="resumes", sleep=sleep)

        artifact = await publisher.publish(local_pdf, Identity.user("u1"))

        assert storage.attempts == 3
        assert sleep.delays == [1.0, 2.0]
        assert artifact.storage_path == "users/u1/resume.pdf"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, tmp_path, local_pdf):
        """Test that exhausting attempts raises PublishError with the last error."""
        storage = FlakyStorage(tmp_path, failures=10)
        sleep = RecordingSleep()
        publisher = ArtifactPublisher(storage, bucket="resumes", sleep=sleep)

        with pytest.raises(PublishError) as exc_info:
            await publisher.publish(local_pdf, Identity.user("u1"))

        error = exc_info.value
        assert error.code == "STORAGE_UPLOAD_FAILED"
        assert isinstance(error.last_error, StorageError)
        assert "attempt 3" in str(error)
        assert storage.attempts == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_storage_errors_are_retried(self, tmp_path, local_pdf):
        """Test that any upload failure is retried and ends in PublishError."""
        storage = DiskFullStorage(tmp_path)
        sleep = RecordingSleep()
        publisher = ArtifactPublisher(storage, bucket="resumes", sleep=sleep)

        with pytest.raises(PublishError) as exc_info:
            await publisher.publish(local_pdf, Identity.user("u1"))

        assert storage.attempts == 3
        assert sleep.delays == [1.0, 2.0]
        assert isinstance(exc_info.value.last_error, OSError)
        assert "No space left on device" in str(exc_info.value)


@pytest.mark.unit
class TestCleanup:
    """Tests for remove_stale(), cleanup() and CleanupQueue."""

    async def _seed(self, storage, names):
        for name in names:
            await storage.upload("resumes", f"users/u1/{name}", PDF_BYTES)

    @pytest.mark.asyncio
    async def test_remove_stale_keeps_current_slot(self, tmp_path):
        """Test that only other PDFs are removed."""
        storage = LocalStorage(tmp_path)
        await self._seed(storage, ["resume.pdf", "old.pdf", "older.pdf", "notes.txt"])
        publisher = ArtifactPublisher(storage, bucket="resumes")

        removed = await publisher.remove_stale(Identity.user("u1"), keep=["users/u1/resume.pdf"])

        assert sorted(removed) == ["users/u1/old.pdf", "users/u1/older.pdf"]
        remaining = sorted(entry.name for entry in await storage.list("resumes", "users/u1"))
        assert remaining == ["notes.txt", "resume.pdf"]

    @pytest.mark.asyncio
    async def test_cleanup_never_raises(self, tmp_path):
        """Test that cleanup() logs and swallows storage failures."""
        publisher = ArtifactPublisher(BrokenListStorage(tmp_path), bucket="resumes")

        assert await publisher.cleanup(Identity.user("u1")) == []

    @pytest.mark.asyncio
    async def test_queue_runs_cleanup_in_background(self, tmp_path):
        """Test that submitted cleanups complete by join()."""
        storage = LocalStorage(tmp_path)
        await self._seed(storage, ["resume.pdf", "old.pdf"])
        queue = CleanupQueue(ArtifactPublisher(storage, bucket="resumes"))

        queue.submit(Identity.user("u1"), keep=["users/u1/resume.pdf"])
        await queue.join()
        await queue.close()

        names = [entry.name for entry in await storage.list("resumes", "users/u1")]
        assert names == ["resume.pdf"]
        assert queue.failures == []

    @pytest.mark.asyncio
    async def test_queue_collects_failures(self, tmp_path):
        """Test that failures land in the queue's error channel."""
        queue = CleanupQueue(ArtifactPublisher(BrokenListStorage(tmp_path), bucket="resumes"))

        queue.submit(Identity.user("u1"))
        queue.submit(Identity.user("u2"))
        await queue.close()

        assert [failure.identity.id for failure in queue.failures] == ["u1", "u2"]
        assert all(isinstance(failure.error, StorageError) for failure in queue.failures)

    @pytest.mark.asyncio
    async def test_close_without_work(self, tmp_path):
        """Test that closing an unused queue is a no-op."""
        queue = CleanupQueue(ArtifactPublisher(LocalStorage(tmp_path), bucket="resumes"))
        await queue.join()
        await queue.close()
        assert queue.failures == []
