"""Tests for knowledge-file uploads, listing and removal."""

import pytest
from sqlalchemy import select

from sharkboot.assistants.models import AssistantFileModel
from sharkboot.common.exceptions import DependencyError, NotFoundError, ValidationError
from sharkboot.files.service import UploadedFile


@pytest.fixture
async def owned(db, services, make_principal):
    principal = await make_principal()
    async with db.get_session() as session:
        assistant = await services.assistants.create_assistant(
            session, principal.client_id, name="Docs", tool_config={"file_search": {}},
        )
    return principal.client_id, assistant.id


async def _upload(db, services, owned, *files):
    async with db.get_session() as session:
        return await services.files.upload_files(session, owned[0], owned[1], list(files))


class TestUpload:
    async def test_upload_attaches_to_store(self, db, services, fake_openai, owned):
        result = await _upload(db, services, owned, UploadedFile("faq.txt", b"Q: A", "text/plain"))

        assert result["success"] is True
        assert result["summary"] == {"total": 1, "success": 1, "errors": 0}
        entry = result["results"][0]
        assert entry["status"] == "success"
        assert entry["size"] == 4
        assert fake_openai.store_files[result["vector_store_id"]] == [entry["file_id"]]

        async with db.get_session() as session:
            row = (await session.execute(select(AssistantFileModel))).scalar_one()
        assert row.filename == "faq.txt"
        assert row.size_bytes == 4

    async def test_no_files(self, db, services, owned):
        with pytest.raises(ValidationError):
            await _upload(db, services, owned)

    async def test_store_failure_fails_whole_upload(self, db, services, fake_openai, owned):
        fake_openai.fail("POST", "/vector_stores", 500)
        with pytest.raises(DependencyError):
            await _upload(db, services, owned, UploadedFile("a.txt", b"a"))
        assert fake_openai.count("POST", "/files") == 0

    async def test_attach_failure_deletes_uploaded_file(self, db, services, fake_openai, owned):
        first = await _upload(db, services, owned, UploadedFile("ok.txt", b"ok"))
        store_id = first["vector_store_id"]
        fake_openai.fail("POST", f"/vector_stores/{store_id}/files", 500)

        result = await _upload(db, services, owned, UploadedFile("bad.txt", b"bad"))

        assert result["success"] is False
        assert result["results"][0]["status"] == "error"
        assert [f["filename"] for f in fake_openai.files.values()] == ["ok.txt"]

    async def test_partial_success(self, db, services, fake_openai, owned):
        await _upload(db, services, owned, UploadedFile("warmup.txt", b"w"))
        fake_openai.fail("POST", "/files", 500)
        result = await _upload(db, services, owned, UploadedFile("a.txt", b"a"))
        assert result["summary"] == {"total": 1, "success": 0, "errors": 1}

    async def test_other_tenant_cannot_upload(self, db, services, owned, make_principal):
        other = await make_principal("other@x.test")
        with pytest.raises(NotFoundError):
            await _upload(db, services, (other.client_id, owned[1]), UploadedFile("a.txt", b"a"))


class TestList:
    async def test_enriched_with_remote_status(self, db, services, fake_openai, owned):
        result = await _upload(db, services, owned, UploadedFile("a.txt", b"a"), UploadedFile("b.txt", b"b"))
        gone = result["results"][1]["file_id"]
        del fake_openai.files[gone]

        async with db.get_session() as session:
            files = await services.files.list_files(session, owned[0], owned[1])

        by_name = {f["filename"]: f for f in files}
        assert by_name["a.txt"]["status"] == "success"
        assert by_name["a.txt"]["exists_in_openai"] is True
        assert by_name["b.txt"]["status"] == "missing"

    async def test_remote_unavailable(self, db, services, fake_openai, owned):
        await _upload(db, services, owned, UploadedFile("a.txt", b"a"))
        fake_openai.fail("GET", "/files", 503)
        async with db.get_session() as session:
            files = await services.files.list_files(session, owned[0], owned[1])
        assert files[0]["status"] == "unknown"


class TestDelete:
    async def test_delete_everywhere(self, db, services, fake_openai, owned):
        result = await _upload(db, services, owned, UploadedFile("a.txt", b"a"))
        file_id = result["results"][0]["file_id"]

        async with db.get_session() as session:
            report = await services.files.delete_file(session, owned[0], owned[1], file_id)

        assert report["operations"] == {
            "vector_store_removed": True, "file_deleted": True, "local_record_deleted": True,
        }
        assert file_id not in fake_openai.files
        assert fake_openai.store_files[result["vector_store_id"]] == []

    async def test_remote_failures_still_delete_locally(self, db, services, fake_openai, owned):
        result = await _upload(db, services, owned, UploadedFile("a.txt", b"a"))
        file_id = result["results"][0]["file_id"]
        fake_openai.fail("DELETE", f"/files/{file_id}", 500)

        async with db.get_session() as session:
            report = await services.files.delete_file(session, owned[0], owned[1], file_id)

        assert report["operations"]["file_deleted"] is False
        async with db.get_session() as session:
            assert (await session.execute(select(AssistantFileModel))).first() is None

    async def test_unknown_file(self, db, services, owned):
        with pytest.raises(NotFoundError):
            async with db.get_session() as session:
                await services.files.delete_file(session, owned[0], owned[1], "file-nope")


class TestVectorStoreFiles:
    async def test_never_creates_a_store(self, db, services, fake_openai, owned):
        async with db.get_session() as session:
            listing = await services.files.list_vector_store_files(session, owned[0], owned[1])
        assert listing == {"files": [], "vector_store_id": None, "count": 0}
        assert fake_openai.count("POST", "/vector_stores") == 0

    async def test_lists_store_contents(self, db, services, owned):
        result = await _upload(db, services, owned, UploadedFile("a.txt", b"a"))
        async with db.get_session() as session:
            listing = await services.files.list_vector_store_files(session, owned[0], owned[1])
        assert listing["vector_store_id"] == result["vector_store_id"]
        assert listing["count"] == 1
