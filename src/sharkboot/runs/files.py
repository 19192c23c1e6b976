"""Code-interpreter files around a run: uploaded inputs and produced outputs.

Inputs are plain OpenAI files (never added to the vector store) whose ids
the caller passes as ``file_ids`` when starting or continuing a run.
Outputs are discovered when a poll sees the run completed and are indexed
in ``assistant_run_files``; only indexed files can be downloaded.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sharkboot.assistants.service import AssistantService
from sharkboot.common.config import SharkbootSettings
from sharkboot.common.exceptions import NotFoundError, ValidationError
from sharkboot.files.service import UploadedFile
from sharkboot.remote.openai_client import OpenAIClient
from sharkboot.runs.models import AssistantRunFileModel, AssistantRunModel

logger = logging.getLogger(__name__)


def output_file_ids(message: dict[str, Any]) -> list[str]:
    """File ids a message points at: images, ``file_path`` annotations, attachments."""
    found: list[str] = []
    for block in message.get("content") or []:
        if block.get("type") == "image_file":
            found.append((block.get("image_file") or {}).get("file_id"))
        elif block.get("type") == "text":
            for annotation in (block.get("text") or {}).get("annotations") or []:
                if annotation.get("type") == "file_path":
                    found.append((annotation.get("file_path") or {}).get("file_id"))
    for attachment in message.get("attachments") or []:
        found.append(attachment.get("file_id"))
    return list(dict.fromkeys(f for f in found if f))


class RunFileService:
    """Uploads run inputs and serves run outputs behind the ownership gate."""

    def __init__(
        self,
        settings: SharkbootSettings,
        openai_client: OpenAIClient,
        assistant_service: AssistantService,
    ):
        self.settings = settings
        self.openai = openai_client
        self.assistants = assistant_service

    async def _require_run(
        self, session: AsyncSession, client_id: str, assistant_id: str, run_id: str,
    ) -> None:
        await self.assistants.get_owned(session, client_id, assistant_id)
        result = await session.execute(
            select(AssistantRunModel.id).where(
                AssistantRunModel.run_id == run_id,
                AssistantRunModel.client_id == client_id,
                AssistantRunModel.assistant_id == assistant_id,
            )
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Run not found")

    # ── Inputs ──

    async def upload_inputs(
        self,
        session: AsyncSession,
        client_id: str,
        assistant_id: str,
        files: list[UploadedFile],
    ) -> dict[str, Any]:
        """Upload files for a later run; failures are reported per file."""
        if not files:
            raise ValidationError("No files provided")
        await self.assistants.get_owned(session, client_id, assistant_id)

        file_ids: list[str] = []
        results = []
        for upload in files:
            uploaded = await self.openai.upload_file(
                upload.filename, upload.content, upload.content_type,
            )
            if uploaded.ok:
                file_ids.append(uploaded.data["id"])
                results.append({
                    "file_id": uploaded.data["id"],
                    "filename": upload.filename,
                    "status": "success",
                })
            else:
                results.append({
                    "file_id": None,
                    "filename": upload.filename,
                    "status": "error",
                    "error": uploaded.error.message,
                })

        return {"file_ids": file_ids, "results": results, "success": bool(file_ids)}

    # ── Outputs ──

    async def record_outputs(
        self,
        session: AsyncSession,
        client_id: str,
        assistant_id: str,
        run_id: str,
        messages: list[dict[str, Any]],
    ) -> list[str]:
        """Index output files of a completed run; returns every output file id.

        Rows are added to the session, the caller commits.
        """
        file_ids: list[str] = []
        for message in messages:
            file_ids.extend(output_file_ids(message))
        file_ids = list(dict.fromkeys(file_ids))
        if not file_ids:
            return []

        result = await session.execute(
            select(AssistantRunFileModel.file_id).where(AssistantRunFileModel.run_id == run_id)
        )
        known = set(result.scalars().all())

        for file_id in file_ids:
            if file_id in known:
                continue
            filename, size = file_id, 0
            meta = await self.openai.get_file(file_id)
            if meta.ok:
                # Code interpreter names outputs like "/mnt/data/chart.png".
                filename = (meta.data.get("filename") or file_id).rsplit("/", 1)[-1]
                size = meta.data.get("bytes") or 0
            else:
                logger.warning(
                    "Metadata of output file %s unavailable: %s", file_id, meta.error.message,
                )
            session.add(AssistantRunFileModel(
                assistant_id=assistant_id,
                client_id=client_id,
                run_id=run_id,
                file_id=file_id,
                filename=filename,
                size_bytes=size,
            ))
        return file_ids

    async def list_outputs(
        self, session: AsyncSession, client_id: str, assistant_id: str, run_id: str,
    ) -> list[dict[str, Any]]:
        await self._require_run(session, client_id, assistant_id, run_id)
        result = await session.execute(
            select(AssistantRunFileModel)
            .where(
                AssistantRunFileModel.run_id == run_id,
                AssistantRunFileModel.client_id == client_id,
                AssistantRunFileModel.assistant_id == assistant_id,
            )
            .order_by(AssistantRunFileModel.created_at.desc())
        )
        return [
            {
                "file_id": row.file_id,
                "filename": row.filename,
                "bytes": row.size_bytes,
                "created_at": row.created_at,
            }
            for row in result.scalars().all()
        ]

    async def download_output(
        self,
        session: AsyncSession,
        client_id: str,
        assistant_id: str,
        run_id: str,
        file_id: str,
    ) -> tuple[str, bytes, str]:
        """Return ``(filename, content, content_type)`` of an indexed output file."""
        await self._require_run(session, client_id, assistant_id, run_id)
        result = await session.execute(
            select(AssistantRunFileModel).where(
                AssistantRunFileModel.run_id == run_id,
                AssistantRunFileModel.client_id == client_id,
                AssistantRunFileModel.assistant_id == assistant_id,
                AssistantRunFileModel.file_id == file_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("File not found")

        downloaded = await self.openai.get_file_content(file_id)
        if downloaded.not_found:
            raise NotFoundError("File not found in OpenAI")
        data = downloaded.unwrap()
        return row.filename, data["content"], data["content_type"]
