"""Tenant service: registration, login, Facebook linking, profile and quotas."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sharkboot.assistants.models import AssistantModel
from sharkboot.common.config import SharkbootSettings
from sharkboot.common.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from sharkboot.common.security import Principal, hash_password, issue_token, verify_password
from sharkboot.remote.graph_client import GraphClient
from sharkboot.tenants.models import (
    PLANS,
    PROVIDER_EMAIL,
    PROVIDER_FACEBOOK,
    ClientModel,
    UserModel,
    UserProviderModel,
)
from sharkboot.whatsapp.models import WhatsAppNumberModel

logger = logging.getLogger(__name__)


@dataclass
class PlanInfo:
    plan: str
    current: int
    limit: int

    @property
    def can_add(self) -> bool:
        return self.current < self.limit

    def as_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan,
            "current": self.current,
            "limit": self.limit,
            "can_add": self.can_add,
        }


@dataclass
class FacebookIdentity:
    facebook_id: str
    name: str
    email: Optional[str]
    access_token: str


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class TenantService:
    """Tenant, user and login-provider operations."""

    def __init__(self, settings: SharkbootSettings, graph_client: GraphClient | None = None):
        self.settings = settings
        self.graph = graph_client

    def _token_for(self, user: UserModel) -> str:
        return issue_token(
            Principal(user_id=user.id, client_id=user.client_id, name=user.name),
            secret_key=self.settings.secret_key,
        )

    async def _create_client_and_user(
        self, session: AsyncSession, name: str, email: Optional[str],
    ) -> UserModel:
        """Every first login creates its own tenant; users never span tenants."""
        client = ClientModel(name=f"Client of {name}")
        session.add(client)
        await session.flush()
        user = UserModel(client_id=client.id, name=name, email=email)
        session.add(user)
        await session.flush()
        return user

    # ── Email ──

    async def register_email(
        self, session: AsyncSession, name: str | None, email: str, password: str,
    ) -> tuple[UserModel, str]:
        """Create tenant + user + EMAIL provider. Returns (user, bearer_token)."""
        if not email or not password:
            raise ValidationError("Email and password are required")
        email = _normalize_email(email)

        dup = await session.execute(
            select(UserProviderModel.id).where(
                UserProviderModel.provider == PROVIDER_EMAIL,
                UserProviderModel.provider_id == email,
            )
        )
        if dup.scalar_one_or_none() is not None:
            raise ConflictError("Email already registered")

        display_name = name or email
        user = await self._create_client_and_user(session, display_name, email)
        session.add(UserProviderModel(
            user_id=user.id,
            provider=PROVIDER_EMAIL,
            provider_id=email,
            password_hash=hash_password(password),
        ))
        try:
            await session.flush()
        except IntegrityError:
            # Concurrent registration won the unique index.
            raise ConflictError("Email already registered")

        logger.info("Registered email user", extra={"user_id": user.id, "client_id": user.client_id})
        return user, self._token_for(user)

    async def login_email(
        self, session: AsyncSession, email: str, password: str,
    ) -> tuple[UserModel, str]:
        result = await session.execute(
            select(UserProviderModel, UserModel)
            .join(UserModel, UserModel.id == UserProviderModel.user_id)
            .where(
                UserProviderModel.provider == PROVIDER_EMAIL,
                UserProviderModel.provider_id == _normalize_email(email or ""),
            )
        )
        row = result.first()
        if row is None or not verify_password(password or "", row[0].password_hash):
            raise AuthenticationError("Invalid credentials")
        user = row[1]
        return user, self._token_for(user)

    # ── Facebook ──

    def _resolve_redirect(self, redirect_uri: Optional[str]) -> str:
        """Default to the configured callback; anything else must be allowlisted."""
        if not redirect_uri:
            return self.settings.facebook_redirect_uri
        allowed = {self.settings.facebook_redirect_uri, *self.settings.allowed_redirects}
        if redirect_uri not in allowed:
            raise ValidationError("Redirect not allowed")
        return redirect_uri

    async def _facebook_identity(self, code: str, redirect_uri: str) -> FacebookIdentity:
        if self.graph is None:
            raise RuntimeError("TenantService has no Graph client configured")
        exchanged = await self.graph.exchange_code_for_token(code, redirect_uri)
        if not exchanged.ok:
            if exchanged.error.remote_status is not None and exchanged.error.remote_status < 500:
                raise AuthenticationError("Facebook authorization failed")
            raise exchanged.error
        access_token = exchanged.data.get("access_token")
        if not access_token:
            raise AuthenticationError("Facebook authorization failed")

        profile = (await self.graph.get_profile(access_token, fields="id,name,email")).unwrap()
        return FacebookIdentity(
            facebook_id=str(profile["id"]),
            name=profile.get("name") or "Facebook user",
            email=profile.get("email"),
            access_token=access_token,
        )

    async def _get_provider(
        self, session: AsyncSession, provider: str, provider_id: str,
    ) -> UserProviderModel | None:
        result = await session.execute(
            select(UserProviderModel).where(
                UserProviderModel.provider == provider,
                UserProviderModel.provider_id == provider_id,
            )
        )
        return result.scalar_one_or_none()

    async def login_facebook(
        self, session: AsyncSession, code: str, redirect_uri: Optional[str] = None,
    ) -> tuple[UserModel, str]:
        """Log in with a Facebook OAuth code, creating tenant + user on first login."""
        redirect_uri = self._resolve_redirect(redirect_uri)
        identity = await self._facebook_identity(code, redirect_uri)

        provider = await self._get_provider(session, PROVIDER_FACEBOOK, identity.facebook_id)
        if provider is not None:
            provider.access_token = identity.access_token
            user = await session.get(UserModel, provider.user_id)
        else:
            user = await self._create_client_and_user(
                session, identity.name, identity.email,
            )
            session.add(UserProviderModel(
                user_id=user.id,
                provider=PROVIDER_FACEBOOK,
                provider_id=identity.facebook_id,
                access_token=identity.access_token,
            ))
        await session.flush()
        return user, self._token_for(user)

    async def link_facebook(
        self, session: AsyncSession, principal: Principal, code: str,
        redirect_uri: Optional[str] = None,
    ) -> UserProviderModel:
        """Attach (or refresh) a FACEBOOK provider on the current user."""
        redirect_uri = self._resolve_redirect(redirect_uri)
        identity = await self._facebook_identity(code, redirect_uri)

        existing = await self._get_provider(session, PROVIDER_FACEBOOK, identity.facebook_id)
        if existing is not None and existing.user_id != principal.user_id:
            raise ConflictError("Facebook account already linked to another user")

        result = await session.execute(
            select(UserProviderModel).where(
                UserProviderModel.user_id == principal.user_id,
                UserProviderModel.provider == PROVIDER_FACEBOOK,
            )
        )
        provider = result.scalar_one_or_none()
        if provider is None:
            provider = UserProviderModel(
                user_id=principal.user_id,
                provider=PROVIDER_FACEBOOK,
                provider_id=identity.facebook_id,
            )
            session.add(provider)
        provider.provider_id = identity.facebook_id
        provider.access_token = identity.access_token
        await session.flush()
        return provider

    async def get_facebook_token(self, session: AsyncSession, user_id: str) -> str:
        result = await session.execute(
            select(UserProviderModel.access_token).where(
                UserProviderModel.user_id == user_id,
                UserProviderModel.provider == PROVIDER_FACEBOOK,
            )
        )
        token = result.scalar_one_or_none()
        if not token:
            raise ValidationError("Facebook is not linked to this account")
        return token

    # ── Profile & quotas ──

    async def get_client(self, session: AsyncSession, client_id: str) -> ClientModel:
        client = await session.get(ClientModel, client_id)
        if client is None:
            raise NotFoundError("Client not found")
        return client

    async def get_profile(
        self, session: AsyncSession, principal: Principal,
    ) -> tuple[ClientModel, UserModel]:
        client = await self.get_client(session, principal.client_id)
        result = await session.execute(
            select(UserModel).where(
                UserModel.id == principal.user_id,
                UserModel.client_id == principal.client_id,
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")
        return client, user

    async def _count(self, session: AsyncSession, model, client_id: str) -> int:
        result = await session.execute(
            select(func.count()).select_from(model).where(model.client_id == client_id)
        )
        return result.scalar_one()

    async def get_stats(self, session: AsyncSession, client_id: str) -> dict[str, int]:
        return {
            "assistants": await self._count(session, AssistantModel, client_id),
            "members": await self._count(session, UserModel, client_id),
            "whatsapp_numbers": await self._count(session, WhatsAppNumberModel, client_id),
        }

    async def get_plan_info(self, session: AsyncSession, client_id: str) -> PlanInfo:
        client = await self.get_client(session, client_id)
        plan = client.plan or "FREE"
        current = await self._count(session, WhatsAppNumberModel, client_id)
        return PlanInfo(plan=plan, current=current, limit=self.settings.plan_limit(plan))

    async def set_plan(self, session: AsyncSession, client_id: str, plan: str) -> ClientModel:
        plan = plan.upper()
        if plan not in PLANS:
            raise ValidationError(f"Unknown plan: {plan}", details={"allowed": list(PLANS)})
        client = await self.get_client(session, client_id)
        client.plan = plan
        await session.flush()
        return client
