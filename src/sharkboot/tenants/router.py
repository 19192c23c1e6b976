"""Auth and client API router."""

from fastapi import APIRouter, Depends

from sharkboot.common.security import Principal, require_principal
from sharkboot.tenants.schemas import (
    AuthResponse,
    ClientResponse,
    FacebookCodeRequest,
    FacebookLinkResponse,
    LoginRequest,
    PlanResponse,
    ProfileResponse,
    RegisterRequest,
    StatsResponse,
    UserResponse,
)

router = APIRouter()


def _get_service():
    from sharkboot.deps import get_tenant_service
    return get_tenant_service()


def _get_db():
    from sharkboot.deps import get_db
    return get_db()


def _auth_response(user, token: str) -> AuthResponse:
    return AuthResponse(token=token, user=UserResponse.model_validate(user))


# ── Auth ──

@router.post("/auth/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        user, token = await svc.register_email(
            session, name=body.name, email=body.email, password=body.password,
        )
        return _auth_response(user, token)


@router.post("/auth/login", response_model=AuthResponse)
async def login(body: LoginRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        user, token = await svc.login_email(session, body.email, body.password)
        return _auth_response(user, token)


@router.post("/auth/facebook", response_model=AuthResponse)
async def login_facebook(body: FacebookCodeRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        user, token = await svc.login_facebook(session, body.code, body.redirect_uri)
        return _auth_response(user, token)


@router.post("/auth/link/facebook", response_model=FacebookLinkResponse)
async def link_facebook(
    body: FacebookCodeRequest, principal: Principal = Depends(require_principal),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        provider = await svc.link_facebook(session, principal, body.code, body.redirect_uri)
        return FacebookLinkResponse(provider_id=provider.provider_id)


# ── Client ──

@router.get("/client/profile", response_model=ProfileResponse)
async def get_profile(principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        client, user = await svc.get_profile(session, principal)
        plan = await svc.get_plan_info(session, client.id)
        return ProfileResponse(
            client=ClientResponse.model_validate(client),
            user=UserResponse.model_validate(user),
            plan=PlanResponse(**plan.as_dict()),
        )


@router.get("/client/stats", response_model=StatsResponse)
async def get_stats(principal: Principal = Depends(require_principal)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return StatsResponse(**await svc.get_stats(session, principal.client_id))
