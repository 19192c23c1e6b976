"""Facebook Graph browsing router."""

from typing import Any

from fastapi import APIRouter, Depends

from sharkboot.common.security import Principal, require_principal

router = APIRouter(prefix="/facebook", tags=["facebook"])


def _get_service():
    from sharkboot.deps import get_facebook_service
    return get_facebook_service()


def _get_db():
    from sharkboot.deps import get_db
    return get_db()


@router.get("/profile")
async def profile(principal: Principal = Depends(require_principal)) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.profile(session, principal)


@router.get("/pages")
async def pages(principal: Principal = Depends(require_principal)) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return {"pages": await svc.pages(session, principal)}


@router.get("/businesses")
async def businesses(principal: Principal = Depends(require_principal)) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return {"businesses": await svc.businesses(session, principal)}


@router.get("/business/{business_id}/assets")
async def business_assets(
    business_id: str, principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.business_assets(session, principal, business_id)


@router.get("/whatsapp/{waba_id}/numbers")
async def waba_numbers(
    waba_id: str, principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return {"phone_numbers": await svc.waba_numbers(session, principal, waba_id)}


@router.get("/whatsapp-sync")
async def whatsapp_sync(principal: Principal = Depends(require_principal)) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.whatsapp_sync(session, principal)


@router.get("/token-info")
async def token_info(principal: Principal = Depends(require_principal)) -> dict[str, Any]:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.token_info(session, principal)
