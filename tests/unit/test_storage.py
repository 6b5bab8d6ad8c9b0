"""
Unit tests for storage backends.

SupabaseStorage is exercised against httpx.MockTransport; LocalStorage against tmp_path.
"""

import json

import httpx
import pytest

from rescribe.contexts.publishing import LocalStorage, SupabaseStorage
from rescribe.exceptions import StorageError

SUPABASE_URL = "https://project.supabase.co"


def supabase_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseStorage(SUPABASE_URL, "service-key", http_client=client)


@pytest.mark.unit
class TestSupabaseStorage:
    """Tests for SupabaseStorage."""

    @pytest.mark.asyncio
    async def test_upload_with_upsert(self):
        """Test upload path, auth headers, content type and upsert flag."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            seen["body"] = request.content
            return httpx.Response(200, json={"Key": "resumes/users/u1/resume.pdf"})

        storage = supabase_with(handler)
        path = await storage.upload("resumes", "users/u1/resume.pdf", b"%PDF-1.4")

        assert path == "users/u1/resume.pdf"
        assert seen["method"] == "POST"
        assert seen["path"] == "/storage/v1/object/resumes/users/u1/resume.pdf"
        assert seen["headers"]["authorization"] == "Bearer service-key"
        assert seen["headers"]["apikey"] == "service-key"
        assert seen["headers"]["x-upsert"] == "true"
        assert seen["headers"]["content-type"] == "application/pdf"
        assert seen["body"] == b"%PDF-1.4"

    def test_public_url(self):
        """Test the public object URL format."""
        storage = SupabaseStorage(SUPABASE_URL + "/", "service-key")

        assert (
            storage.get_public_url("resumes", "users/u1/resume.pdf")
            == "https://project.supabase.co/storage/v1/object/public/resumes/users/u1/resume.pdf"
        )

    @pytest.mark.asyncio
    async def test_list_maps_entries(self):
        """Test that listing posts the prefix and marks folders."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json=[
                    {"name": "resume.pdf", "id": "a1"},
                    {"name": "archive", "id": None},
                ],
            )

        storage = supabase_with(handler)
        entries = await storage.list("resumes", "users/u1/")

        assert seen["path"] == "/storage/v1/object/list/resumes"
        assert seen["body"]["prefix"] == "users/u1"
        assert [(e.name, e.path, e.is_folder) for e in entries] == [
            ("resume.pdf", "users/u1/resume.pdf", False),
            ("archive", "users/u1/archive", True),
        ]

    @pytest.mark.asyncio
    async def test_remove_sends_prefixes(self):
        """Test that deletion sends the object paths as prefixes."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[])

        storage = supabase_with(handler)
        await storage.remove("resumes", ["users/u1/old.pdf"])

        assert seen["method"] == "DELETE"
        assert seen["path"] == "/storage/v1/object/resumes"
        assert seen["body"] == {"prefixes": ["users/u1/old.pdf"]}

    @pytest.mark.asyncio
    async def test_remove_nothing_skips_request(self):
        """Test that an empty removal makes no request."""

        def handler(request):
            raise AssertionError("no request expected")

        await supabase_with(handler).remove("resumes", [])

    @pytest.mark.asyncio
    async def test_http_error_becomes_storage_error(self):
        """Test that error statuses raise StorageError with the status code."""

        def handler(request):
            return httpx.Response(503, text="unavailable")

        with pytest.raises(StorageError) as exc_info:
            await supabase_with(handler).upload("resumes", "users/u1/resume.pdf", b"x")

        assert exc_info.value.status_code == 503
        assert exc_info.value.code == "STORAGE_ERROR"

    @pytest.mark.asyncio
    async def test_transport_error_becomes_storage_error(self):
        """Test that connection failures raise StorageError without a status."""

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(StorageError) as exc_info:
            await supabase_with(handler).upload("resumes", "users/u1/resume.pdf", b"x")

        assert exc_info.value.status_code is None

    def test_requires_credentials(self):
        """Test that a missing URL or key is rejected up front."""
        with pytest.raises(ValueError):
            SupabaseStorage("", "key")
        with pytest.raises(ValueError):
            SupabaseStorage(SUPABASE_URL, "")


@pytest.mark.unit
class TestLocalStorage:
    """Tests for LocalStorage."""

    @pytest.mark.asyncio
    async def test_upload_and_list(self, tmp_path):
        """Test that uploads land under root/bucket and are listed."""
        storage = LocalStorage(tmp_path)
        await storage.upload("resumes", "users/u1/resume.pdf", b"data")

        assert (tmp_path / "resumes" / "users" / "u1" / "resume.pdf").read_bytes() == b"data"
        entries = await storage.list("resumes", "users/u1")
        assert [(e.name, e.path) for e in entries] == [("resume.pdf", "users/u1/resume.pdf")]

    @pytest.mark.asyncio
    async def test_list_missing_folder(self, tmp_path):
        """Test that listing an absent folder returns nothing."""
        assert await LocalStorage(tmp_path).list("resumes", "users/nobody") == []

    @pytest.mark.asyncio
    async def test_upload_without_upsert_conflicts(self, tmp_path):
        """Test that upsert=False refuses to overwrite."""
        storage = LocalStorage(tmp_path)
        await storage.upload("resumes", "a.pdf", b"1")

        with pytest.raises(StorageError):
            await storage.upload("resumes", "a.pdf", b"2", upsert=False)

    @pytest.mark.asyncio
    async def test_path_escape_rejected(self, tmp_path):
        """Test that object paths cannot leave the bucket directory."""
        with pytest.raises(StorageError):
            await LocalStorage(tmp_path).upload("resumes", "../outside.pdf", b"x")

    def test_public_url(self, tmp_path):
        """Test public URLs with and without a base URL."""
        assert (
            LocalStorage(tmp_path, public_base_url="http://localhost:9000/").get_public_url(
                "resumes", "users/u1/resume.pdf"
            )
            == "http://localhost:9000/resumes/users/u1/resume.pdf"
        )
        assert LocalStorage(tmp_path).get_public_url("resumes", "a.pdf").startswith("file://")

    @pytest.mark.asyncio
    async def test_remove(self, tmp_path):
        """Test removal of files, ignoring missing ones."""
        storage = LocalStorage(tmp_path)
        await storage.upload("resumes", "users/u1/old.pdf", b"x")

        await storage.remove("resumes", ["users/u1/old.pdf", "users/u1/missing.pdf"])

        assert await storage.list("resumes", "users/u1") == []
