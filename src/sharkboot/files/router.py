"""Assistant knowledge-file API router."""

from typing import Any

from fastapi import APIRouter, Depends, File, UploadFile

from sharkboot.common.security import Principal, require_principal
from sharkboot.files.service import UploadedFile

router = APIRouter(prefix="/assistants/{assistant_id}", tags=["files"])


def _get_service():
    from sharkboot.deps import get_file_service
    return get_file_service()


def _get_db():
    from sharkboot.deps import get_db
    return get_db()


@router.post("/files", status_code=201)
async def upload_files(
    assistant_id: str,
    files: list[UploadFile] = File(...),
    principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    uploads = [
        UploadedFile(
            filename=f.filename or "upload",
            content=await f.read(),
            content_type=f.content_type or "application/octet-stream",
        )
        for f in files
    ]
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.upload_files(session, principal.client_id, assistant_id, uploads)


@router.get("/files")
async def list_files(
    assistant_id: str, principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        files = await svc.list_files(session, principal.client_id, assistant_id)
        return {"files": files, "total": len(files)}


@router.delete("/files/{file_id}")
async def delete_file(
    assistant_id: str, file_id: str, principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.delete_file(session, principal.client_id, assistant_id, file_id)


@router.get("/files/vector-store")
async def vector_store_files(
    assistant_id: str, principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.list_vector_store_files(session, principal.client_id, assistant_id)
