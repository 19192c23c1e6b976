"""Run lifecycle tracker: starts runs on remote threads and caches their state.

OpenAI owns the run state machine::

    queued -> in_progress -> completed | failed | cancelled | expired
                          -> requires_action (returned to the caller as-is)

The ``assistant_runs`` table is an observer cache. It is written right after
the remote run exists and committed before the response goes out, so a
client never holds a run id the ownership gate does not know. A failed
cache write is logged and reported as ``cached=False``; the remote run is
never rolled back.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sharkboot.assistants.models import AssistantModel
from sharkboot.assistants.service import AssistantService
from sharkboot.common.config import SharkbootSettings
from sharkboot.common.exceptions import NotFoundError, ValidationError
from sharkboot.remote.openai_client import OpenAIClient
from sharkboot.runs.files import RunFileService
from sharkboot.runs.models import AssistantRunModel
from sharkboot.runs.schemas import RunMessage, RunResponse

logger = logging.getLogger(__name__)

ACTIVE_STATUSES: frozenset[str] = frozenset({
    "queued",
    "in_progress",
    "requires_action",
    "cancelling",
})
TERMINAL_STATUSES: frozenset[str] = frozenset({
    "completed",
    "failed",
    "cancelled",
    "expired",
    "incomplete",
})

ATTACHMENT_TOOLS = [{"type": "code_interpreter"}, {"type": "file_search"}]


def _message_text(message: dict[str, Any]) -> str:
    parts = []
    for block in message.get("content") or []:
        if block.get("type") == "text":
            parts.append((block.get("text") or {}).get("value", ""))
    return "\n".join(parts)


class RunTracker:
    """Creates, continues, polls and cancels runs for an owned assistant."""

    def __init__(
        self,
        settings: SharkbootSettings,
        openai_client: OpenAIClient,
        assistant_service: AssistantService,
        run_files: RunFileService,
    ):
        self.settings = settings
        self.openai = openai_client
        self.assistants = assistant_service
        self.run_files = run_files

    # ── Cache access ──

    async def _get_cached(
        self, session: AsyncSession, client_id: str, assistant_id: str, run_id: str,
    ) -> AssistantRunModel:
        """Ownership + thread lookup in one query; runs before any remote call."""
        result = await session.execute(
            select(AssistantRunModel).where(
                AssistantRunModel.run_id == run_id,
                AssistantRunModel.client_id == client_id,
                AssistantRunModel.assistant_id == assistant_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("Run not found")
        return row

    async def _require_known_thread(
        self, session: AsyncSession, client_id: str, assistant_id: str, thread_id: str,
    ) -> None:
        result = await session.execute(
            select(AssistantRunModel.id).where(
                AssistantRunModel.thread_id == thread_id,
                AssistantRunModel.client_id == client_id,
                AssistantRunModel.assistant_id == assistant_id,
            ).limit(1)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Thread not found")

    async def _commit_cache(self, session: AsyncSession, what: str, run_id: str) -> bool:
        try:
            await session.commit()
            return True
        except SQLAlchemyError:
            await session.rollback()
            logger.exception("Run cache %s failed for run %s", what, run_id)
            return False

    # ── Create / continue ──

    async def start_run(
        self,
        session: AsyncSession,
        client_id: str,
        assistant_id: str,
        message: str,
        thread_id: Optional[str] = None,
        file_ids: list[str] | None = None,
    ) -> RunResponse:
        """Post ``message`` on a new (or known) thread and start a run."""
        if not message or not message.strip():
            raise ValidationError("message is required")

        assistant = await self.assistants.get_owned(session, client_id, assistant_id)
        if thread_id:
            await self._require_known_thread(session, client_id, assistant_id, thread_id)
        else:
            thread = (await self.openai.create_thread()).unwrap()
            thread_id = thread["id"]

        attachments = [
            {"file_id": file_id, "tools": ATTACHMENT_TOOLS} for file_id in (file_ids or [])
        ]
        (await self.openai.post_message(thread_id, message, attachments)).unwrap()
        run = (await self.openai.create_run(thread_id, assistant.openai_id)).unwrap()

        cached = await self._cache_run(session, assistant, client_id, thread_id, run)
        return RunResponse(
            assistant_id=assistant_id,
            thread_id=thread_id,
            run_id=run["id"],
            status=run.get("status", "queued"),
            remote_status=run.get("status"),
            created_at=run.get("created_at"),
            cached=cached,
        )

    async def continue_thread(
        self,
        session: AsyncSession,
        client_id: str,
        assistant_id: str,
        thread_id: str,
        message: str,
        file_ids: list[str] | None = None,
    ) -> RunResponse:
        """Post into a thread this tenant already used with this assistant."""
        if not thread_id:
            raise ValidationError("thread_id is required")
        return await self.start_run(
            session, client_id, assistant_id, message,
            thread_id=thread_id, file_ids=file_ids,
        )

    async def _cache_run(
        self,
        session: AsyncSession,
        assistant: AssistantModel,
        client_id: str,
        thread_id: str,
        run: dict[str, Any],
    ) -> bool:
        session.add(AssistantRunModel(
            assistant_id=assistant.id,
            client_id=client_id,
            thread_id=thread_id,
            run_id=run["id"],
            status=run.get("status", "queued"),
            remote_created_at=run.get("created_at"),
        ))
        return await self._commit_cache(session, "insert", run["id"])

    # ── Poll / cancel ──

    async def get_status(
        self, session: AsyncSession, client_id: str, assistant_id: str, run_id: str,
    ) -> RunResponse:
        """Fetch the remote run and fold its status into the cache.

        On completion the run's assistant messages are returned and any
        code-interpreter output files they reference are indexed.
        """
        row = await self._get_cached(session, client_id, assistant_id, run_id)
        thread_id = row.thread_id

        run = (await self.openai.get_run(thread_id, run_id)).unwrap()
        status = run.get("status", row.status)
        created_at = run.get("created_at") or row.remote_created_at

        row.status = status
        if row.remote_created_at is None:
            row.remote_created_at = created_at
        cached = await self._commit_cache(session, "update", run_id)

        latest = None
        output_ids = None
        if status == "completed":
            messages = await self._run_messages(thread_id, created_at)
            latest = [
                RunMessage(
                    id=msg["id"],
                    role=msg["role"],
                    content=_message_text(msg),
                    created_at=msg.get("created_at") or 0,
                    run_id=msg.get("run_id"),
                )
                for msg in messages
            ]
            output_ids = await self.run_files.record_outputs(
                session, client_id, assistant_id, run_id, messages,
            )
            if output_ids:
                await self._commit_cache(session, "output files", run_id)

        return RunResponse(
            assistant_id=assistant_id,
            thread_id=thread_id,
            run_id=run_id,
            status=status,
            remote_status=run.get("status"),
            created_at=created_at,
            cached=cached,
            latest_messages=latest,
            output_file_ids=output_ids,
        )

    async def _run_messages(self, thread_id: str, since: Optional[int]) -> list[dict[str, Any]]:
        """Assistant messages created at or after ``since``, newest first."""
        page = (await self.openai.list_messages(
            thread_id, order="desc", limit=self.settings.latest_messages_limit,
        )).unwrap()
        messages = []
        for msg in page.get("data") or []:
            if msg.get("role") != "assistant":
                continue
            if since is not None and (msg.get("created_at") or 0) < since:
                continue
            messages.append(msg)
        return messages

    async def cancel(
        self, session: AsyncSession, client_id: str, assistant_id: str, run_id: str,
    ) -> RunResponse:
        """Cancel remotely; the cache records ``cancelled`` whatever OpenAI answered."""
        row = await self._get_cached(session, client_id, assistant_id, run_id)
        thread_id = row.thread_id
        created_at = row.remote_created_at

        remote = (await self.openai.cancel_run(thread_id, run_id)).unwrap()

        row.status = "cancelled"
        cached = await self._commit_cache(session, "update", run_id)
        return RunResponse(
            assistant_id=assistant_id,
            thread_id=thread_id,
            run_id=run_id,
            status="cancelled",
            remote_status=remote.get("status"),
            created_at=created_at,
            cached=cached,
        )

    async def list_runs(
        self, session: AsyncSession, client_id: str, assistant_id: str,
    ) -> list[AssistantRunModel]:
        await self.assistants.get_owned(session, client_id, assistant_id)
        result = await session.execute(
            select(AssistantRunModel)
            .where(
                AssistantRunModel.client_id == client_id,
                AssistantRunModel.assistant_id == assistant_id,
            )
            .order_by(AssistantRunModel.created_at.desc())
        )
        return list(result.scalars().all())
