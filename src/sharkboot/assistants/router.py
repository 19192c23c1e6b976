"""Assistant API router: every route is scoped to the caller's tenant."""

from fastapi import APIRouter, Depends

from sharkboot.assistants.schemas import (
    AssistantCreate,
    AssistantDeleteResponse,
    AssistantResponse,
    AssistantUpdate,
)
from sharkboot.common.security import Principal, require_principal

router = APIRouter(prefix="/assistants", tags=["assistants"])


def _get_service():
    from sharkboot.deps import get_assistant_service
    return get_assistant_service()


def _get_db():
    from sharkboot.deps import get_db
    return get_db()


@router.post("", response_model=AssistantResponse, status_code=201)
async def create_assistant(
    body: AssistantCreate, principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        assistant = await svc.create_assistant(
            session,
            principal.client_id,
            name=body.name,
            instructions=body.instructions,
            model=body.model,
            tool_config=body.tool_config,
        )
        return AssistantResponse.model_validate(assistant)


@router.get("", response_model=list[AssistantResponse])
async def list_assistants(principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        assistants = await svc.list_assistants(session, principal.client_id)
        return [AssistantResponse.model_validate(a) for a in assistants]


@router.get("/{assistant_id}", response_model=AssistantResponse)
async def get_assistant(assistant_id: str, principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        assistant = await svc.get_owned(session, principal.client_id, assistant_id)
        return AssistantResponse.model_validate(assistant)


@router.patch("/{assistant_id}", response_model=AssistantResponse)
async def update_assistant(
    assistant_id: str,
    body: AssistantUpdate,
    principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        assistant = await svc.update_assistant(
            session, principal.client_id, assistant_id, **body.model_dump(exclude_none=True)
        )
        return AssistantResponse.model_validate(assistant)


@router.delete("/{assistant_id}", response_model=AssistantDeleteResponse)
async def delete_assistant(assistant_id: str, principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        outcome = await svc.delete_assistant(session, principal.client_id, assistant_id)
        return AssistantDeleteResponse(id=assistant_id, **outcome)
