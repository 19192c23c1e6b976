"""Shared test fixtures for SharkBoot.

OpenAI and the Graph API are replaced by in-memory fakes served through
``httpx.MockTransport``; every request they receive is recorded in
``calls`` so tests can assert which remote calls happened.
"""

import itertools
import json
import os
import re
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient


SECRET_KEY = "test-secret-key-for-unit-tests"
REDIRECT_URI = "http://localhost:5173/auth/callback"


def _json(status: int, payload: Any) -> httpx.Response:
    return httpx.Response(status, json=payload)


def _error(status: int, message: str) -> httpx.Response:
    return _json(status, {"error": {"message": message, "type": "invalid_request_error"}})


def _strip_version(path: str) -> str:
    # "/v1/assistants" -> "/assistants", "/v23.0/me" -> "/me"
    parts = path.split("/", 2)
    return "/" + parts[2] if len(parts) > 2 else "/"


class _FakeApi:
    """Call log plus injectable failures keyed by (method, path)."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[str, str], int] = {}
        self._ids = itertools.count(1)

    def next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def fail(self, method: str, path: str, status: int = 500) -> None:
        self._failures[(method, path)] = status

    def heal(self, method: str, path: str) -> None:
        self._failures.pop((method, path), None)

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p == path)

    def count_prefix(self, method: str, prefix: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p.startswith(prefix))

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = _strip_version(request.url.path)
        self.calls.append((method, path))
        status = self._failures.get((method, path))
        if status is not None:
            return _error(status, f"Injected failure {status}")
        return self.route(method, path, request)

    def route(self, method: str, path: str, request: httpx.Request) -> httpx.Response:
        raise NotImplementedError

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeOpenAI(_FakeApi):
    """Stateful stand-in for the Assistants v2 API.

    Each GET of a run advances it one step along
    queued -> in_progress -> completed; completion appends an assistant reply.
    """

    def __init__(self):
        super().__init__()
        self.assistants: dict[str, dict] = {}
        self.vector_stores: dict[str, dict] = {}
        self.store_files: dict[str, list[str]] = {}
        self.files: dict[str, dict] = {}
        self.threads: dict[str, list[dict]] = {}
        self.runs: dict[str, dict] = {}
        self.file_contents: dict[str, bytes] = {}
        self.cancel_status = "cancelling"
        # (filename, content) the next completed run writes with code interpreter
        self.next_output: tuple[str, bytes] | None = None
        self.clock = 1_700_000_000

    def now(self) -> int:
        self.clock += 1
        return self.clock

    def route(self, method, path, request):
        parts = path.strip("/").split("/")
        body = json.loads(request.content) if request.content and method == "POST" and parts[0] != "files" else {}
        head = parts[0]
        if head == "assistants":
            return self._assistants(method, parts[1:], body)
        if head == "vector_stores":
            return self._vector_stores(method, parts[1:], body)
        if head == "files":
            return self._files(method, parts[1:], request)
        if head == "threads":
            return self._threads(method, parts[1:], body, request)
        return _error(404, f"Unknown path {path}")

    # ── Assistants ──

    def _assistants(self, method, rest, body):
        if not rest and method == "POST":
            asst = {
                "id": self.next_id("asst_"),
                "object": "assistant",
                "model": body.get("model"),
                "name": body.get("name"),
                "instructions": body.get("instructions"),
                "tools": body.get("tools") or [],
                "tool_resources": body.get("tool_resources") or {},
            }
            self.assistants[asst["id"]] = asst
            return _json(200, asst)
        asst = self.assistants.get(rest[0]) if rest else None
        if asst is None:
            return _error(404, "No assistant found")
        if method == "GET":
            return _json(200, asst)
        if method == "POST":
            asst.update(body)
            return _json(200, asst)
        if method == "DELETE":
            del self.assistants[asst["id"]]
            return _json(200, {"id": asst["id"], "deleted": True})
        return _error(405, "Method not allowed")

    # ── Vector stores ──

    def _vector_stores(self, method, rest, body):
        if not rest and method == "POST":
            store = {
                "id": self.next_id("vs_"),
                "object": "vector_store",
                "name": body.get("name"),
                "expires_after": body.get("expires_after"),
            }
            self.vector_stores[store["id"]] = store
            self.store_files[store["id"]] = []
            return _json(200, store)
        store = self.vector_stores.get(rest[0]) if rest else None
        if store is None:
            return _error(404, "No vector store found")
        if len(rest) == 1:
            if method == "GET":
                return _json(200, store)
            if method == "DELETE":
                del self.vector_stores[store["id"]]
                return _json(200, {"id": store["id"], "deleted": True})
        files = self.store_files[store["id"]]
        if len(rest) == 2 and method == "GET":
            return _json(200, {"object": "list", "data": [
                {"id": fid, "object": "vector_store.file", "status": "completed"} for fid in files
            ]})
        if len(rest) == 2 and method == "POST":
            files.append(body["file_id"])
            return _json(200, {"id": body["file_id"], "object": "vector_store.file", "status": "in_progress"})
        if len(rest) == 3 and method == "DELETE":
            if rest[2] not in files:
                return _error(404, "No file found")
            files.remove(rest[2])
            return _json(200, {"id": rest[2], "deleted": True})
        return _error(405, "Method not allowed")

    # ── Files ──

    def _files(self, method, rest, request):
        if not rest and method == "POST":
            match = re.search(rb'filename="([^"]+)"', request.content)
            f = {
                "id": self.next_id("file-"),
                "object": "file",
                "filename": match.group(1).decode() if match else "upload",
                "bytes": len(request.content),
                "status": "processed",
                "purpose": "assistants",
            }
            self.files[f["id"]] = f
            return _json(200, f)
        if not rest and method == "GET":
            return _json(200, {"object": "list", "data": list(self.files.values())})
        f = self.files.get(rest[0]) if rest else None
        if f is None:
            return _error(404, "No such file")
        if method == "DELETE":
            del self.files[f["id"]]
            return _json(200, {"id": f["id"], "deleted": True})
        if len(rest) == 2 and rest[1] == "content":
            return httpx.Response(
                200, content=self.file_contents.get(f["id"], b""),
                headers={"content-type": "application/octet-stream"},
            )
        return _json(200, f)

    # ── Threads, messages, runs ──

    def add_message(self, thread_id: str, role: str, text: str, run_id: str | None = None) -> dict:
        msg = {
            "id": self.next_id("msg_"),
            "object": "thread.message",
            "thread_id": thread_id,
            "role": role,
            "run_id": run_id,
            "created_at": self.now(),
            "content": [{"type": "text", "text": {"value": text, "annotations": []}}],
        }
        self.threads[thread_id].append(msg)
        return msg

    def _threads(self, method, rest, body, request):
        if not rest and method == "POST":
            thread_id = self.next_id("thread_")
            self.threads[thread_id] = []
            return _json(200, {"id": thread_id, "object": "thread"})
        thread_id = rest[0]
        if thread_id not in self.threads:
            return _error(404, "No thread found")
        if len(rest) == 2 and rest[1] == "messages":
            if method == "POST":
                return _json(200, self.add_message(thread_id, "user", body.get("content", "")))
            limit = int(request.url.params.get("limit", 20))
            messages = list(self.threads[thread_id])
            if request.url.params.get("order", "desc") == "desc":
                messages.reverse()
            return _json(200, {"object": "list", "data": messages[:limit]})
        if len(rest) == 2 and rest[1] == "runs" and method == "POST":
            run = {
                "id": self.next_id("run_"),
                "object": "thread.run",
                "thread_id": thread_id,
                "assistant_id": body.get("assistant_id"),
                "status": "queued",
                "created_at": self.now(),
            }
            self.runs[run["id"]] = run
            return _json(200, run)
        run = self.runs.get(rest[2]) if len(rest) >= 3 else None
        if run is None or run["thread_id"] != thread_id:
            return _error(404, "No run found")
        if len(rest) == 3 and method == "GET":
            self._advance(run)
            return _json(200, run)
        if len(rest) == 4 and rest[3] == "cancel" and method == "POST":
            run["status"] = self.cancel_status
            return _json(200, run)
        return _error(405, "Method not allowed")

    def _advance(self, run: dict) -> None:
        if run["status"] == "queued":
            run["status"] = "in_progress"
        elif run["status"] == "in_progress":
            run["status"] = "completed"
            user_messages = [m for m in self.threads[run["thread_id"]] if m["role"] == "user"]
            prompt = user_messages[-1]["content"][0]["text"]["value"] if user_messages else ""
            reply = self.add_message(run["thread_id"], "assistant", f"Echo: {prompt}", run_id=run["id"])
            if self.next_output is not None:
                self._attach_output(reply, *self.next_output)
                self.next_output = None

    def _attach_output(self, message: dict, filename: str, content: bytes) -> None:
        f = {
            "id": self.next_id("file-"),
            "object": "file",
            "filename": f"/mnt/data/{filename}",
            "bytes": len(content),
            "status": "processed",
            "purpose": "assistants_output",
        }
        self.files[f["id"]] = f
        self.file_contents[f["id"]] = content
        message["content"][0]["text"]["annotations"].append({
            "type": "file_path",
            "text": f"sandbox:/mnt/data/{filename}",
            "file_path": {"file_id": f["id"]},
        })
        message["attachments"] = [{"file_id": f["id"], "tools": [{"type": "code_interpreter"}]}]


class FakeGraph(_FakeApi):
    """Stand-in for the Graph API with cursor pagination (two items per page)."""

    page_size = 2

    def __init__(self):
        super().__init__()
        self.codes: dict[str, str] = {}
        self.profiles: dict[str, dict] = {}
        self.businesses: dict[str, list[dict]] = {}
        self.pages: dict[str, list[dict]] = {}
        self.wabas: dict[str, list[dict]] = {}
        self.numbers: dict[str, list[dict]] = {}
        # (business_id, edge) -> items, for owned_ad_accounts and friends
        self.business_assets: dict[tuple[str, str], list[dict]] = {}
        self.permissions: dict[str, list[dict]] = {}
        self.token_expiry = 1_800_000_000

    def add_user(self, code: str, token: str, facebook_id: str, name: str = "FB User",
                 email: str | None = None) -> None:
        self.codes[code] = token
        self.profiles[token] = {"id": facebook_id, "name": name, "email": email}
        self.businesses.setdefault(token, [])
        self.pages.setdefault(token, [])

    def add_number(self, token: str, business_id: str, waba_id: str, number_id: str,
                   display: str = "+1 555 0100", status: str = "VERIFIED") -> dict:
        if not any(b["id"] == business_id for b in self.businesses[token]):
            self.businesses[token].append({
                "id": business_id, "name": f"Business {business_id}", "verification_status": "verified",
            })
        wabas = self.wabas.setdefault(business_id, [])
        if not any(w["id"] == waba_id for w in wabas):
            wabas.append({"id": waba_id, "name": f"WABA {waba_id}"})
        number = {
            "id": number_id,
            "display_phone_number": display,
            "verified_name": f"Name {number_id}",
            "code_verification_status": status,
        }
        self.numbers.setdefault(waba_id, []).append(number)
        return number

    def _page(self, items: list[dict], request: httpx.Request) -> httpx.Response:
        start = int(request.url.params.get("after") or 0)
        chunk = items[start:start + self.page_size]
        page: dict[str, Any] = {"data": chunk}
        end = start + len(chunk)
        if end < len(items):
            page["paging"] = {"cursors": {"after": str(end)}, "next": f"https://graph.test/next?after={end}"}
        return _json(200, page)

    def route(self, method, path, request):
        params = request.url.params
        if path == "/oauth/access_token":
            token = self.codes.get(params.get("code", ""))
            if token is None:
                return _error(400, "Invalid verification code format.")
            return _json(200, {"access_token": token, "token_type": "bearer"})
        if path == "/debug_token":
            profile = self.profiles.get(params.get("input_token", ""))
            if profile is None:
                return _json(200, {"data": {"is_valid": False}})
            return _json(200, {"data": {
                "is_valid": True,
                "app_id": params.get("access_token", "").split("|")[0],
                "user_id": profile["id"],
                "expires_at": self.token_expiry,
            }})

        token = params.get("access_token", "")
        if token not in self.profiles:
            return _error(401, "Invalid OAuth access token.")
        if path == "/me":
            return _json(200, self.profiles[token])
        if path == "/me/accounts":
            return self._page(self.pages[token], request)
        if path == "/me/businesses":
            return self._page(self.businesses[token], request)
        if path == "/me/permissions":
            return self._page(self.permissions.get(token, [
                {"permission": "email", "status": "granted"},
                {"permission": "whatsapp_business_management", "status": "granted"},
                {"permission": "ads_read", "status": "declined"},
            ]), request)

        parts = path.strip("/").split("/")
        if len(parts) == 2 and parts[1] == "owned_whatsapp_business_accounts":
            return self._page(self.wabas.get(parts[0], []), request)
        if len(parts) == 2 and parts[1] == "phone_numbers":
            return self._page(self.numbers.get(parts[0], []), request)
        if len(parts) == 2 and parts[1].startswith("owned_"):
            return self._page(self.business_assets.get((parts[0], parts[1]), []), request)
        if len(parts) == 1:
            for numbers in self.numbers.values():
                for number in numbers:
                    if number["id"] == parts[0]:
                        return _json(200, number)
        return _error(404, "Unsupported get request.")


# ── Fixtures ──

@pytest.fixture
def fake_openai():
    return FakeOpenAI()


@pytest.fixture
def fake_graph():
    return FakeGraph()


@pytest.fixture
def settings():
    from sharkboot.common.config import SharkbootSettings
    return SharkbootSettings(
        secret_key=SECRET_KEY,
        db_url="sqlite+aiosqlite://",
        openai_api_key="sk-test",
        allowed_redirects=[REDIRECT_URI],
    )


@pytest.fixture
async def db(settings):
    from sharkboot.common.database import DatabaseManager
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def openai_client(settings, fake_openai):
    from sharkboot.remote.openai_client import OpenAIClient, OpenAIConfig
    client = OpenAIClient(OpenAIConfig.from_settings(settings), transport=fake_openai.transport())
    yield client
    await client.aclose()


@pytest.fixture
async def graph_client(settings, fake_graph):
    from sharkboot.remote.graph_client import GraphClient, GraphConfig
    client = GraphClient(GraphConfig.from_settings(settings), transport=fake_graph.transport())
    yield client
    await client.aclose()


@pytest.fixture
def services(settings, openai_client, graph_client):
    """All services wired together the way deps.py wires them."""
    from types import SimpleNamespace

    from sharkboot.assistants.service import AssistantService
    from sharkboot.facebook.service import FacebookService
    from sharkboot.files.service import FileService
    from sharkboot.runs.files import RunFileService
    from sharkboot.runs.service import RunTracker
    from sharkboot.tenants.service import TenantService
    from sharkboot.vectorstores.reconciler import VectorStoreReconciler
    from sharkboot.whatsapp.service import WhatsAppService

    reconciler = VectorStoreReconciler(settings, openai_client)
    tenants = TenantService(settings, graph_client=graph_client)
    assistants = AssistantService(settings, openai_client, reconciler)
    run_files = RunFileService(settings, openai_client, assistants)
    return SimpleNamespace(
        reconciler=reconciler,
        tenants=tenants,
        assistants=assistants,
        files=FileService(settings, openai_client, assistants, reconciler),
        run_files=run_files,
        runs=RunTracker(settings, openai_client, assistants, run_files),
        whatsapp=WhatsAppService(settings, graph_client, tenants, assistants),
        facebook=FacebookService(settings, graph_client, tenants),
    )


@pytest.fixture
def make_principal(db, services):
    """Register an email user (a fresh tenant) and return its Principal."""
    from sharkboot.common.security import Principal

    async def _make(email: str = "owner@acme.test", name: str = "Owner"):
        async with db.get_session() as session:
            user, _ = await services.tenants.register_email(session, name, email, "s3cret-pass")
            return Principal(user_id=user.id, client_id=user.client_id, name=user.name)

    return _make


@pytest.fixture
def app(fake_openai, fake_graph):
    """Create a test app with in-memory DB and faked remote APIs."""
    os.environ["SHARKBOOT_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["SHARKBOOT_SECRET_KEY"] = SECRET_KEY
    os.environ["SHARKBOOT_OPENAI_API_KEY"] = "sk-test"
    os.environ["SHARKBOOT_ALLOWED_REDIRECTS"] = json.dumps([REDIRECT_URI])

    # Clear caches and singletons so new env vars take effect
    from sharkboot.common.config import get_settings
    get_settings.cache_clear()

    from sharkboot.deps import reset_singletons, set_transports
    reset_singletons()
    set_transports(openai=fake_openai.transport(), graph=fake_graph.transport())

    from sharkboot.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from sharkboot.deps import close_remote_clients, get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await close_remote_clients()
    await db.close()


@pytest.fixture
def register(client):
    """Register a user over HTTP and return its Authorization headers."""

    async def _register(email: str = "owner@acme.test", password: str = "s3cret-pass"):
        resp = await client.post("/auth/register", json={
            "name": email.split("@")[0], "email": email, "password": password,
        })
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _register


@pytest.fixture
async def auth_headers(register):
    return await register("owner@acme.test")
