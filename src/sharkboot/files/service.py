"""Knowledge files: uploads into the assistant's vector store."""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sharkboot.assistants.models import AssistantFileModel
from sharkboot.assistants.service import AssistantService
from sharkboot.common.config import SharkbootSettings
from sharkboot.common.exceptions import NotFoundError, ValidationError
from sharkboot.remote.openai_client import OpenAIClient
from sharkboot.vectorstores.reconciler import VectorStoreReconciler

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


class FileService:
    """Upload, list and remove the files behind an assistant's file search."""

    def __init__(
        self,
        settings: SharkbootSettings,
        openai_client: OpenAIClient,
        assistant_service: AssistantService,
        reconciler: VectorStoreReconciler,
    ):
        self.settings = settings
        self.openai = openai_client
        self.assistants = assistant_service
        self.reconciler = reconciler

    async def upload_files(
        self,
        session: AsyncSession,
        client_id: str,
        assistant_id: str,
        files: list[UploadedFile],
    ) -> dict[str, Any]:
        """Upload each file and attach it to the assistant's vector store.

        The store is required: if it cannot be obtained the whole upload
        fails. Individual file failures are reported per file.
        """
        if not files:
            raise ValidationError("No files provided")

        assistant = await self.assistants.get_owned(session, client_id, assistant_id)
        store_id = await self.reconciler.get_or_create(session, assistant)

        results = []
        for upload in files:
            results.append(await self._upload_one(session, assistant_id, store_id, upload))

        success = sum(1 for r in results if r["status"] == "success")
        return {
            "success": success > 0,
            "vector_store_id": store_id,
            "results": results,
            "summary": {
                "total": len(files),
                "success": success,
                "errors": len(files) - success,
            },
        }

    async def _upload_one(
        self, session: AsyncSession, assistant_id: str, store_id: str, upload: UploadedFile,
    ) -> dict[str, Any]:
        uploaded = await self.openai.upload_file(
            upload.filename, upload.content, upload.content_type,
        )
        if not uploaded.ok:
            return {"filename": upload.filename, "status": "error", "error": uploaded.error.message}
        file_id = uploaded.data["id"]

        attached = await self.openai.attach_file_to_vector_store(store_id, file_id)
        if not attached.ok:
            # Do not leave an orphan file behind the failed attach.
            cleanup = await self.openai.delete_file(file_id)
            if not cleanup.ok:
                logger.warning("Orphan OpenAI file %s left after failed attach", file_id)
            return {"filename": upload.filename, "status": "error", "error": attached.error.message}

        session.add(AssistantFileModel(
            assistant_id=assistant_id,
            openai_file_id=file_id,
            filename=upload.filename,
            size_bytes=upload.size,
        ))
        await session.flush()
        return {
            "file_id": file_id,
            "filename": upload.filename,
            "size": upload.size,
            "status": "success",
        }

    async def list_files(
        self, session: AsyncSession, client_id: str, assistant_id: str,
    ) -> list[dict[str, Any]]:
        """Local file rows, enriched with OpenAI's view when it is reachable."""
        await self.assistants.get_owned(session, client_id, assistant_id)
        result = await session.execute(
            select(AssistantFileModel)
            .where(AssistantFileModel.assistant_id == assistant_id)
            .order_by(AssistantFileModel.created_at.desc())
        )
        rows = list(result.scalars().all())

        remote = await self.openai.list_files()
        remote_files = (
            {f["id"]: f for f in remote.data.get("data") or []} if remote.ok else None
        )
        if remote_files is None:
            logger.warning("Could not enrich files with OpenAI status: %s", remote.error.message)

        files = []
        for row in rows:
            entry: dict[str, Any] = {
                "file_id": row.openai_file_id,
                "filename": row.filename,
                "bytes": row.size_bytes,
                "created_at": row.created_at.isoformat(),
            }
            if remote_files is None:
                entry["status"] = "unknown"
            else:
                remote_file = remote_files.get(row.openai_file_id)
                entry["status"] = "success" if remote_file else "missing"
                entry["openai_status"] = remote_file.get("status") if remote_file else None
                entry["exists_in_openai"] = remote_file is not None
            files.append(entry)
        return files

    async def delete_file(
        self, session: AsyncSession, client_id: str, assistant_id: str, file_id: str,
    ) -> dict[str, Any]:
        """Remote removal is best-effort; the local row is always deleted."""
        assistant = await self.assistants.get_owned(session, client_id, assistant_id)
        result = await session.execute(
            select(AssistantFileModel).where(
                AssistantFileModel.assistant_id == assistant_id,
                AssistantFileModel.openai_file_id == file_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("File not found")
        filename = row.filename

        store_id = self.reconciler.current_store_id(assistant)
        vector_store_removed = False
        if store_id:
            detached = await self.openai.detach_file_from_vector_store(store_id, file_id)
            vector_store_removed = detached.ok
            if not detached.ok:
                logger.warning("Could not detach %s from %s: %s", file_id, store_id, detached.error.message)

        deleted = await self.openai.delete_file(file_id)
        if not deleted.ok:
            logger.warning("Could not delete OpenAI file %s: %s", file_id, deleted.error.message)

        await session.delete(row)
        await session.flush()
        return {
            "success": True,
            "file_id": file_id,
            "filename": filename,
            "operations": {
                "vector_store_removed": vector_store_removed,
                "file_deleted": deleted.ok,
                "local_record_deleted": True,
            },
        }

    async def list_vector_store_files(
        self, session: AsyncSession, client_id: str, assistant_id: str,
    ) -> dict[str, Any]:
        """Files as OpenAI sees them; never creates a store."""
        assistant = await self.assistants.get_owned(session, client_id, assistant_id)
        store_id = self.reconciler.current_store_id(assistant)
        if not store_id:
            return {"files": [], "vector_store_id": None, "count": 0}

        page = (await self.openai.list_vector_store_files(store_id)).unwrap()
        files = page.get("data") or []
        return {"files": files, "vector_store_id": store_id, "count": len(files)}
