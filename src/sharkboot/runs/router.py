"""Run API router: start, continue, poll and cancel assistant runs, plus run files."""

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response

from sharkboot.common.security import Principal, require_principal
from sharkboot.files.service import UploadedFile
from sharkboot.runs.schemas import (
    RunCreate,
    RunFileResponse,
    RunInputUploadResponse,
    RunResponse,
    RunSummary,
    ThreadMessageCreate,
)

router = APIRouter(prefix="/assistants/{assistant_id}", tags=["runs"])


def _get_service():
    from sharkboot.deps import get_run_tracker
    return get_run_tracker()


def _get_file_service():
    from sharkboot.deps import get_run_file_service
    return get_run_file_service()


def _get_db():
    from sharkboot.deps import get_db
    return get_db()


@router.post("/runs", response_model=RunResponse, status_code=201)
async def start_run(
    assistant_id: str, body: RunCreate, principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.start_run(
            session,
            principal.client_id,
            assistant_id,
            body.message,
            thread_id=body.thread_id,
            file_ids=body.file_ids,
        )


@router.get("/runs", response_model=list[RunSummary])
async def list_runs(assistant_id: str, principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        runs = await svc.list_runs(session, principal.client_id, assistant_id)
        return [RunSummary.model_validate(r) for r in runs]


@router.get("/runs/{run_id}", response_model=RunResponse)
async def get_run(
    assistant_id: str, run_id: str, principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.get_status(session, principal.client_id, assistant_id, run_id)


@router.post("/runs/{run_id}/cancel", response_model=RunResponse)
async def cancel_run(
    assistant_id: str, run_id: str, principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.cancel(session, principal.client_id, assistant_id, run_id)


@router.post("/threads/{thread_id}/messages", response_model=RunResponse, status_code=201)
async def post_thread_message(
    assistant_id: str,
    thread_id: str,
    body: ThreadMessageCreate,
    principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.continue_thread(
            session,
            principal.client_id,
            assistant_id,
            thread_id,
            body.message,
            file_ids=body.file_ids,
        )


@router.post("/runs/input-files", response_model=RunInputUploadResponse, status_code=201)
async def upload_run_inputs(
    assistant_id: str,
    files: list[UploadFile] = File(...),
    principal: Principal = Depends(require_principal),
):
    uploads = [
        UploadedFile(
            filename=f.filename or "upload",
            content=await f.read(),
            content_type=f.content_type or "application/octet-stream",
        )
        for f in files
    ]
    svc = _get_file_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.upload_inputs(session, principal.client_id, assistant_id, uploads)


@router.get("/runs/{run_id}/files", response_model=list[RunFileResponse])
async def list_run_files(
    assistant_id: str, run_id: str, principal: Principal = Depends(require_principal),
):
    svc = _get_file_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.list_outputs(session, principal.client_id, assistant_id, run_id)


@router.get("/runs/{run_id}/files/{file_id}")
async def download_run_file(
    assistant_id: str,
    run_id: str,
    file_id: str,
    principal: Principal = Depends(require_principal),
):
    svc = _get_file_service()
    db = _get_db()
    async with db.get_session() as session:
        filename, content, content_type = await svc.download_output(
            session, principal.client_id, assistant_id, run_id, file_id,
        )
    safe_name = filename.replace('"', "")
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{safe_name}"'},
    )
