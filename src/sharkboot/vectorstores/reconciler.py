"""Vector store reconciler: one live remote vector store per assistant.

The local ``tool_config`` is the record of which store an assistant uses.
``get_or_create`` verifies that record against OpenAI and repairs it when
the store was deleted out of band:

1. no store referenced            -> create, persist, push to the assistant
2. referenced and found remotely  -> return it, no writes
3. referenced, remote says 404    -> stale; create a new one and overwrite
4. referenced, any other failure  -> DependencyError, nothing is recreated

Creation is serialized per assistant inside this process and the new id is
committed before the lock is released, so a second caller sees it.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncSession

from sharkboot.assistants.models import AssistantModel
from sharkboot.assistants.tool_config import ToolConfig
from sharkboot.common.config import SharkbootSettings
from sharkboot.common.exceptions import DependencyError, NotFoundError
from sharkboot.remote.openai_client import OpenAIClient

logger = logging.getLogger(__name__)


def vector_store_name(assistant_id: str) -> str:
    return f"vs_{assistant_id}"


class VectorStoreReconciler:
    """Keeps ``assistant.tool_config`` and the remote vector store in agreement."""

    def __init__(self, settings: SharkbootSettings, openai_client: OpenAIClient):
        self.settings = settings
        self.openai = openai_client
        # Entries vanish once no coroutine holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, assistant_id: str) -> asyncio.Lock:
        lock = self._locks.get(assistant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[assistant_id] = lock
        return lock

    @asynccontextmanager
    async def locked(self, assistant_id: str) -> AsyncIterator[None]:
        """Hold the assistant's store lock, e.g. while deleting the assistant."""
        async with self._lock_for(assistant_id):
            yield

    @staticmethod
    def current_store_id(assistant: AssistantModel) -> Optional[str]:
        """The store id recorded locally, without contacting OpenAI."""
        return ToolConfig.from_raw(assistant.tool_config).vector_store_id

    async def get_or_create(self, session: AsyncSession, assistant: AssistantModel) -> str:
        """Return the id of a vector store that exists remotely for this assistant."""
        async with self.locked(assistant.id):
            # Another request may have committed a store, or deleted the
            # assistant, while we waited.
            try:
                await session.refresh(assistant, ["tool_config"])
            except InvalidRequestError:
                raise NotFoundError("Assistant not found") from None
            config = ToolConfig.from_raw(assistant.tool_config)
            store_id = config.vector_store_id

            if store_id:
                found = await self.openai.get_vector_store(store_id)
                if found.ok:
                    return store_id
                if not found.not_found:
                    raise DependencyError(
                        "Could not verify the assistant's vector store",
                        details=_error_details(found.error),
                    )
                logger.warning(
                    "Vector store %s of assistant %s no longer exists; recreating",
                    store_id, assistant.id,
                )

            created = await self.openai.create_vector_store(
                vector_store_name(assistant.id),
                expires_after_days=self.settings.vector_store_expiry_days,
            )
            if not created.ok:
                raise DependencyError(
                    "Could not create a vector store", details=_error_details(created.error),
                )
            new_id = created.data["id"]

            assistant.tool_config = config.with_vector_store(new_id).to_raw()
            await session.flush()
            await session.commit()
            logger.info(
                "Vector store created",
                extra={"assistant_id": assistant.id, "vector_store_id": new_id, "replaced": store_id},
            )

            await self._propagate(assistant, new_id)
            return new_id

    async def _propagate(self, assistant: AssistantModel, store_id: str) -> None:
        """Point the remote assistant's file_search at ``store_id``."""
        remote = await self.openai.get_assistant(assistant.openai_id)
        if not remote.ok:
            raise DependencyError(
                "Could not load the remote assistant", details=_error_details(remote.error),
            )

        tools = list(remote.data.get("tools") or [])
        if not any(tool.get("type") == "file_search" for tool in tools):
            tools.append({"type": "file_search"})
        resources = dict(remote.data.get("tool_resources") or {})
        resources["file_search"] = {"vector_store_ids": [store_id]}

        updated = await self.openai.update_assistant(
            assistant.openai_id, {"tools": tools, "tool_resources": resources},
        )
        if not updated.ok:
            raise DependencyError(
                "Could not attach the vector store to the assistant",
                details=_error_details(updated.error),
            )

    async def delete_store(self, assistant: AssistantModel) -> bool:
        """Best-effort removal of the assistant's remote store.

        Callers that also drop the assistant hold ``locked(assistant.id)``
        around both steps so no upload recreates the store in between.
        """
        store_id = self.current_store_id(assistant)
        if not store_id:
            return False
        result = await self.openai.delete_vector_store(store_id)
        if not result.ok and not result.not_found:
            logger.warning("Failed to delete vector store %s: %s", store_id, result.error.message)
            return False
        return True


def _error_details(error: Any) -> dict[str, Any]:
    return {
        "service": getattr(error, "service", None),
        "status": getattr(error, "remote_status", None),
        "message": getattr(error, "message", str(error)),
    }
