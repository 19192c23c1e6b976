"""Integration tests for assistant and file routes, including tenant isolation."""

import pytest


@pytest.fixture
async def other_headers(register):
    return await register("intruder@other.test")


async def _create(client, headers, **body):
    body.setdefault("name", "Support")
    resp = await client.post("/assistants", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestAssistantRouter:
    async def test_crud(self, client, auth_headers, fake_openai):
        created = await _create(client, auth_headers, instructions="Be brief")
        assert created["openai_id"] in fake_openai.assistants

        listed = await client.get("/assistants", headers=auth_headers)
        assert [a["id"] for a in listed.json()] == [created["id"]]

        patched = await client.patch(
            f"/assistants/{created['id']}", json={"name": "Renamed"}, headers=auth_headers,
        )
        assert patched.status_code == 200
        assert patched.json()["name"] == "Renamed"
        assert fake_openai.assistants[created["openai_id"]]["name"] == "Renamed"

        deleted = await client.delete(f"/assistants/{created['id']}", headers=auth_headers)
        assert deleted.status_code == 200
        assert deleted.json()["local_deleted"] is True
        gone = await client.get(f"/assistants/{created['id']}", headers=auth_headers)
        assert gone.status_code == 404

    async def test_remote_error_envelope(self, client, auth_headers, fake_openai):
        fake_openai.fail("POST", "/assistants", 429)
        resp = await client.post("/assistants", json={"name": "X"}, headers=auth_headers)
        assert resp.status_code == 502
        data = resp.json()
        assert data["code"] == "REMOTE_API_ERROR"
        assert data["details"] == {"service": "openai", "status": 429}

    async def test_upload_then_list(self, client, auth_headers, fake_openai):
        assistant = await _create(client, auth_headers, tool_config={"file_search": {}})

        upload = await client.post(
            f"/assistants/{assistant['id']}/files",
            files=[("files", ("handbook.txt", b"Opening hours: 9-5", "text/plain"))],
            headers=auth_headers,
        )
        assert upload.status_code == 201, upload.text
        store_id = upload.json()["vector_store_id"]

        listed = await client.get(f"/assistants/{assistant['id']}/files", headers=auth_headers)
        files = listed.json()["files"]
        assert len(files) == 1
        assert files[0]["status"] == "success"
        assert files[0]["filename"] == "handbook.txt"

        fetched = await client.get(f"/assistants/{assistant['id']}", headers=auth_headers)
        assert fetched.json()["tool_config"]["file_search"]["vector_store_ids"] == [store_id]
        assert store_id in fake_openai.vector_stores

        vs = await client.get(f"/assistants/{assistant['id']}/files/vector-store", headers=auth_headers)
        assert vs.json()["count"] == 1

        removed = await client.delete(
            f"/assistants/{assistant['id']}/files/{files[0]['file_id']}", headers=auth_headers,
        )
        assert removed.status_code == 200
        assert removed.json()["operations"]["local_record_deleted"] is True


class TestTenantIsolation:
    async def test_assistant_routes_hide_foreign_assistant(
        self, client, auth_headers, other_headers, fake_openai,
    ):
        assistant = await _create(client, auth_headers)
        aid = assistant["id"]
        calls_before = len(fake_openai.calls)

        attempts = [
            client.get(f"/assistants/{aid}", headers=other_headers),
            client.patch(f"/assistants/{aid}", json={"name": "x"}, headers=other_headers),
            client.delete(f"/assistants/{aid}", headers=other_headers),
            client.get(f"/assistants/{aid}/files", headers=other_headers),
            client.get(f"/assistants/{aid}/files/vector-store", headers=other_headers),
            client.post(f"/assistants/{aid}/runs", json={"message": "hi"}, headers=other_headers),
            client.get(f"/assistants/{aid}/runs", headers=other_headers),
        ]
        for attempt in attempts:
            resp = await attempt
            assert resp.status_code == 404, resp.text
            assert resp.json()["code"] == "NOT_FOUND"
            assert "Support" not in resp.text

        assert len(fake_openai.calls) == calls_before
        assert (await client.get("/assistants", headers=other_headers)).json() == []

    async def test_run_routes_hide_foreign_runs(self, client, auth_headers, other_headers):
        assistant = await _create(client, auth_headers)
        aid = assistant["id"]
        run = (await client.post(
            f"/assistants/{aid}/runs", json={"message": "hi"}, headers=auth_headers,
        )).json()

        mine = await _create(client, other_headers, name="Mine")
        for path in (
            f"/assistants/{aid}/runs/{run['run_id']}",
            f"/assistants/{mine['id']}/runs/{run['run_id']}",
        ):
            resp = await client.get(path, headers=other_headers)
            assert resp.status_code == 404
        cancel = await client.post(
            f"/assistants/{mine['id']}/runs/{run['run_id']}/cancel", headers=other_headers,
        )
        assert cancel.status_code == 404
        hijack = await client.post(
            f"/assistants/{mine['id']}/threads/{run['thread_id']}/messages",
            json={"message": "hi"}, headers=other_headers,
        )
        assert hijack.status_code == 404
