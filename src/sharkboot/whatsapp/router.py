"""WhatsApp number API router."""

from typing import Any

from fastapi import APIRouter, Depends

from sharkboot.common.schemas import OkResponse
from sharkboot.common.security import Principal, require_principal
from sharkboot.tenants.schemas import PlanResponse
from sharkboot.whatsapp.schemas import (
    AssignRequest,
    AssignResponse,
    AvailableAssistant,
    ConfigUpdate,
    NumberConfigResponse,
    NumberListResponse,
    NumberResponse,
    RegisterNumberRequest,
    UnassignResponse,
)

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


def _get_service():
    from sharkboot.deps import get_whatsapp_service
    return get_whatsapp_service()


def _get_facebook_service():
    from sharkboot.deps import get_facebook_service
    return get_facebook_service()


def _get_db():
    from sharkboot.deps import get_db
    return get_db()


def _number_response(number, assistant_name=None) -> NumberResponse:
    return NumberResponse(
        id=number.id,
        phone_number_id=number.phone_number_id,
        waba_id=number.waba_id,
        display_name=number.display_name,
        phone_number=number.phone_number,
        status=number.status,
        assistant_id=number.assistant_id,
        assistant_name=assistant_name,
        created_at=number.created_at,
    )


@router.get("/numbers", response_model=NumberListResponse)
async def list_numbers(principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        numbers, plan = await svc.list_numbers(session, principal.client_id)
        return NumberListResponse(
            numbers=[_number_response(n, name) for n, name in numbers],
            plan=PlanResponse(**plan.as_dict()),
        )


@router.get("/business-accounts")
async def business_accounts(
    principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    svc = _get_facebook_service()
    db = _get_db()
    async with db.get_session() as session:
        accounts = await svc.whatsapp_accounts(session, principal)
        return {"business_accounts": accounts}


@router.post("/register-number", response_model=NumberResponse, status_code=201)
async def register_number(
    body: RegisterNumberRequest, principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        number = await svc.register_number(
            session,
            principal,
            waba_id=body.waba_id,
            phone_number_id=body.phone_number_id,
            display_name=body.display_name,
        )
        return _number_response(number)


@router.get("/assistants-available", response_model=list[AvailableAssistant])
async def assistants_available(principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.available_assistants(session, principal.client_id)


@router.post("/{number_id}/assign", response_model=AssignResponse)
async def assign_assistant(
    number_id: str, body: AssignRequest, principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        number, assistant, config = await svc.assign(
            session, principal.client_id, number_id, body.assistant_id,
        )
        return AssignResponse(
            number_id=number.id,
            assistant_id=assistant.id,
            assistant_name=assistant.name,
            auto_reply_enabled=config.auto_reply_enabled,
            welcome_message=config.welcome_message,
            response_delay_seconds=config.response_delay_seconds,
        )


@router.delete("/{number_id}/unassign", response_model=UnassignResponse)
async def unassign_assistant(number_id: str, principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        previous = await svc.unassign(session, principal.client_id, number_id)
        return UnassignResponse(number_id=number_id, previous_assistant_id=previous)


@router.get("/{number_id}/config", response_model=NumberConfigResponse)
async def get_config(number_id: str, principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.get_config(session, principal.client_id, number_id)


@router.put("/{number_id}/config", response_model=NumberConfigResponse)
async def update_config(
    number_id: str, body: ConfigUpdate, principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await svc.update_config(
            session, principal.client_id, number_id, **body.model_dump(exclude_none=True)
        )
        return await svc.get_config(session, principal.client_id, number_id)


@router.delete("/{number_id}", response_model=OkResponse)
async def delete_number(number_id: str, principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await svc.delete_number(session, principal.client_id, number_id)
        return OkResponse()
