"""Assistant service: local rows mirrored by remote OpenAI assistants."""

import logging
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sharkboot.assistants.models import AssistantFileModel, AssistantModel
from sharkboot.assistants.tool_config import ToolConfig
from sharkboot.common.config import SharkbootSettings
from sharkboot.common.exceptions import NotFoundError
from sharkboot.remote.openai_client import OpenAIClient
from sharkboot.runs.models import AssistantRunFileModel, AssistantRunModel
from sharkboot.vectorstores.reconciler import VectorStoreReconciler
from sharkboot.whatsapp.models import AssistantWhatsAppConfigModel, WhatsAppNumberModel

logger = logging.getLogger(__name__)


class AssistantService:
    """Assistant CRUD. Every lookup is scoped by the caller's client_id."""

    def __init__(
        self,
        settings: SharkbootSettings,
        openai_client: OpenAIClient,
        reconciler: VectorStoreReconciler,
    ):
        self.settings = settings
        self.openai = openai_client
        self.reconciler = reconciler

    async def get_owned(
        self, session: AsyncSession, client_id: str, assistant_id: str,
    ) -> AssistantModel:
        """Ownership check; runs before any remote call that uses the assistant."""
        result = await session.execute(
            select(AssistantModel).where(
                AssistantModel.id == assistant_id,
                AssistantModel.client_id == client_id,
            )
        )
        assistant = result.scalar_one_or_none()
        if assistant is None:
            raise NotFoundError("Assistant not found")
        return assistant

    async def create_assistant(
        self,
        session: AsyncSession,
        client_id: str,
        name: str,
        instructions: str = "",
        model: str | None = None,
        tool_config: dict[str, Any] | None = None,
    ) -> AssistantModel:
        """Create remotely first; the local row is only written on success."""
        config = ToolConfig.from_raw(tool_config)
        model = model or self.settings.openai_default_model

        remote = (await self.openai.create_assistant(
            model=model,
            name=name,
            instructions=instructions,
            tools=config.tools(),
            tool_resources=config.tool_resources() or None,
        )).unwrap()

        assistant = AssistantModel(
            client_id=client_id,
            openai_id=remote["id"],
            name=name,
            instructions=instructions,
            model=model,
            tool_config=config.to_raw(),
        )
        session.add(assistant)
        await session.flush()
        logger.info(
            "Assistant created",
            extra={"assistant_id": assistant.id, "openai_id": assistant.openai_id},
        )
        return assistant

    async def list_assistants(
        self, session: AsyncSession, client_id: str,
    ) -> list[AssistantModel]:
        result = await session.execute(
            select(AssistantModel)
            .where(AssistantModel.client_id == client_id)
            .order_by(AssistantModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_assistant(
        self,
        session: AsyncSession,
        client_id: str,
        assistant_id: str,
        name: Optional[str] = None,
        instructions: Optional[str] = None,
        model: Optional[str] = None,
    ) -> AssistantModel:
        """Ownership, then remote update, then local update.

        The current tool configuration is pushed along, which also repairs a
        remote assistant that missed an earlier vector store propagation.
        """
        assistant = await self.get_owned(session, client_id, assistant_id)
        config = ToolConfig.from_raw(assistant.tool_config)

        patch: dict[str, Any] = {"tools": config.tools()}
        resources = config.tool_resources()
        if resources:
            patch["tool_resources"] = resources
        if name is not None:
            patch["name"] = name
        if instructions is not None:
            patch["instructions"] = instructions
        if model is not None:
            patch["model"] = model

        (await self.openai.update_assistant(assistant.openai_id, patch)).unwrap()

        if name is not None:
            assistant.name = name
        if instructions is not None:
            assistant.instructions = instructions
        if model is not None:
            assistant.model = model
        await session.flush()
        return assistant

    async def delete_assistant(
        self, session: AsyncSession, client_id: str, assistant_id: str,
    ) -> dict[str, bool]:
        """Remote cleanup is best-effort; the local delete always happens.

        Runs under the reconciler's per-assistant lock and commits before
        releasing it, so a concurrent upload either finishes first (and its
        store is deleted here) or finds the assistant gone.
        """
        assistant = await self.get_owned(session, client_id, assistant_id)

        async with self.reconciler.locked(assistant.id):
            await session.refresh(assistant, ["tool_config"])
            vector_store_deleted = await self.reconciler.delete_store(assistant)

            remote = await self.openai.delete_assistant(assistant.openai_id)
            remote_deleted = remote.ok or remote.not_found
            if not remote_deleted:
                logger.warning(
                    "Remote assistant %s not deleted: %s",
                    assistant.openai_id, remote.error.message,
                )

            # Dependent rows go explicitly; SQLite does not enforce FK cascades.
            await session.execute(
                delete(AssistantFileModel).where(AssistantFileModel.assistant_id == assistant.id)
            )
            await session.execute(
                delete(AssistantRunFileModel)
                .where(AssistantRunFileModel.assistant_id == assistant.id)
            )
            await session.execute(
                delete(AssistantRunModel).where(AssistantRunModel.assistant_id == assistant.id)
            )
            await session.execute(
                delete(AssistantWhatsAppConfigModel)
                .where(AssistantWhatsAppConfigModel.assistant_id == assistant.id)
            )
            await session.execute(
                update(WhatsAppNumberModel)
                .where(WhatsAppNumberModel.assistant_id == assistant.id)
                .values(assistant_id=None)
            )
            await session.delete(assistant)
            await session.commit()

        return {
            "vector_store_deleted": vector_store_deleted,
            "remote_deleted": remote_deleted,
            "local_deleted": True,
        }
