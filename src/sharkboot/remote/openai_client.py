"""HTTP client for the OpenAI Assistants, Threads, Runs and Vector Stores API."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from sharkboot.common.config import SharkbootSettings
from sharkboot.remote.result import (
    RemoteResult,
    result_from_response,
    result_from_transport_error,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenAIConfig:
    api_key: str
    base_url: str = "https://api.openai.com/v1"
    beta_header: str = "assistants=v2"
    timeout: float = 30.0
    upload_timeout: float = 60.0

    @classmethod
    def from_settings(cls, settings: SharkbootSettings) -> "OpenAIConfig":
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            beta_header=settings.openai_beta_header,
            timeout=settings.openai_timeout,
            upload_timeout=settings.openai_upload_timeout,
        )


class OpenAIClient:
    """Thin typed wrapper over the OpenAI REST API.

    Every method returns a RemoteResult. No retries are performed here;
    callers decide what a failure means for their operation.
    """

    service = "openai"

    def __init__(
        self,
        config: OpenAIConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy-init httpx.AsyncClient."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "OpenAI-Beta": self.config.beta_header,
                },
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _request(
        self,
        method: str,
        path: str,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> RemoteResult:
        try:
            resp = await self._get_http_client().request(
                method, path, timeout=timeout or self.config.timeout, **kwargs
            )
        except httpx.HTTPError as exc:
            logger.warning("OpenAI %s %s failed: %s", method, path, exc)
            return result_from_transport_error(self.service, exc)
        result = result_from_response(self.service, resp)
        if not result.ok:
            logger.warning(
                "OpenAI %s %s answered %s: %s",
                method, path, resp.status_code, result.error.message,
            )
        return result

    # ── Assistants ──

    async def create_assistant(
        self,
        model: str,
        name: str,
        instructions: str = "",
        tools: list[dict[str, Any]] | None = None,
        tool_resources: dict[str, Any] | None = None,
    ) -> RemoteResult:
        body: dict[str, Any] = {
            "model": model,
            "name": name,
            "instructions": instructions,
            "tools": tools or [],
        }
        if tool_resources:
            body["tool_resources"] = tool_resources
        return await self._request("POST", "/assistants", json=body)

    async def get_assistant(self, assistant_id: str) -> RemoteResult:
        return await self._request("GET", f"/assistants/{assistant_id}")

    async def update_assistant(self, assistant_id: str, patch: dict[str, Any]) -> RemoteResult:
        return await self._request("POST", f"/assistants/{assistant_id}", json=patch)

    async def delete_assistant(self, assistant_id: str) -> RemoteResult:
        return await self._request("DELETE", f"/assistants/{assistant_id}")

    # ── Vector stores ──

    async def create_vector_store(
        self, name: str, expires_after_days: int | None = None,
    ) -> RemoteResult:
        body: dict[str, Any] = {"name": name}
        if expires_after_days:
            body["expires_after"] = {
                "anchor": "last_active_at",
                "days": expires_after_days,
            }
        return await self._request("POST", "/vector_stores", json=body)

    async def get_vector_store(self, store_id: str) -> RemoteResult:
        return await self._request("GET", f"/vector_stores/{store_id}")

    async def delete_vector_store(self, store_id: str) -> RemoteResult:
        return await self._request("DELETE", f"/vector_stores/{store_id}")

    async def list_vector_store_files(self, store_id: str) -> RemoteResult:
        return await self._request("GET", f"/vector_stores/{store_id}/files")

    async def attach_file_to_vector_store(self, store_id: str, file_id: str) -> RemoteResult:
        return await self._request(
            "POST", f"/vector_stores/{store_id}/files", json={"file_id": file_id},
        )

    async def detach_file_from_vector_store(self, store_id: str, file_id: str) -> RemoteResult:
        return await self._request("DELETE", f"/vector_stores/{store_id}/files/{file_id}")

    # ── Files ──

    async def upload_file(
        self,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        purpose: str = "assistants",
    ) -> RemoteResult:
        return await self._request(
            "POST",
            "/files",
            timeout=self.config.upload_timeout,
            files={"file": (filename, content, content_type)},
            data={"purpose": purpose},
        )

    async def delete_file(self, file_id: str) -> RemoteResult:
        return await self._request("DELETE", f"/files/{file_id}")

    async def list_files(self) -> RemoteResult:
        return await self._request("GET", "/files")

    async def get_file(self, file_id: str) -> RemoteResult:
        return await self._request("GET", f"/files/{file_id}")

    async def get_file_content(self, file_id: str) -> RemoteResult:
        """Download raw bytes; ``data`` is ``{"content", "content_type"}`` on success."""
        path = f"/files/{file_id}/content"
        try:
            resp = await self._get_http_client().get(path, timeout=self.config.upload_timeout)
        except httpx.HTTPError as exc:
            logger.warning("OpenAI GET %s failed: %s", path, exc)
            return result_from_transport_error(self.service, exc)
        if not 200 <= resp.status_code < 300:
            result = result_from_response(self.service, resp)
            logger.warning(
                "OpenAI GET %s answered %s: %s", path, resp.status_code, result.error.message,
            )
            return result
        return RemoteResult.success({
            "content": resp.content,
            "content_type": resp.headers.get("content-type", "application/octet-stream"),
        })

    # ── Threads, messages, runs ──

    async def create_thread(self) -> RemoteResult:
        return await self._request("POST", "/threads", json={})

    async def post_message(
        self,
        thread_id: str,
        content: str,
        attachments: list[dict[str, Any]] | None = None,
    ) -> RemoteResult:
        body: dict[str, Any] = {"role": "user", "content": content}
        if attachments:
            body["attachments"] = attachments
        return await self._request("POST", f"/threads/{thread_id}/messages", json=body)

    async def list_messages(
        self,
        thread_id: str,
        order: str = "desc",
        limit: int = 20,
    ) -> RemoteResult:
        params: dict[str, Any] = {"order": order, "limit": limit}
        return await self._request("GET", f"/threads/{thread_id}/messages", params=params)

    async def create_run(self, thread_id: str, assistant_id: str) -> RemoteResult:
        return await self._request(
            "POST", f"/threads/{thread_id}/runs", json={"assistant_id": assistant_id},
        )

    async def get_run(self, thread_id: str, run_id: str) -> RemoteResult:
        return await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")

    async def cancel_run(self, thread_id: str, run_id: str) -> RemoteResult:
        return await self._request("POST", f"/threads/{thread_id}/runs/{run_id}/cancel")
