"""Graph API browsing with the caller's linked Facebook token."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sharkboot.common.config import SharkbootSettings
from sharkboot.common.security import Principal
from sharkboot.remote.graph_client import GraphClient
from sharkboot.tenants.service import TenantService
from sharkboot.whatsapp.models import WhatsAppNumberModel

logger = logging.getLogger(__name__)


class FacebookService:
    """Read-only views over the user's token, businesses, WABAs and phone numbers."""

    def __init__(
        self,
        settings: SharkbootSettings,
        graph_client: GraphClient,
        tenant_service: TenantService,
    ):
        self.settings = settings
        self.graph = graph_client
        self.tenants = tenant_service

    async def _token(self, session: AsyncSession, principal: Principal) -> str:
        return await self.tenants.get_facebook_token(session, principal.user_id)

    async def profile(self, session: AsyncSession, principal: Principal) -> dict[str, Any]:
        token = await self._token(session, principal)
        profile = (await self.graph.get_profile(token)).unwrap()
        picture = ((profile.get("picture") or {}).get("data") or {}).get("url")
        return {
            "id": profile.get("id"),
            "name": profile.get("name"),
            "email": profile.get("email"),
            "picture_url": picture,
        }

    async def pages(self, session: AsyncSession, principal: Principal) -> list[dict[str, Any]]:
        token = await self._token(session, principal)
        data = (await self.graph.get_pages(token)).unwrap()
        return [
            {
                "id": page.get("id"),
                "name": page.get("name"),
                "category": page.get("category"),
                "has_access_token": bool(page.get("access_token")),
            }
            for page in data.get("data") or []
        ]

    async def businesses(self, session: AsyncSession, principal: Principal) -> list[dict[str, Any]]:
        token = await self._token(session, principal)
        data = (await self.graph.get_businesses(token)).unwrap()
        return [
            {
                "id": business.get("id"),
                "name": business.get("name"),
                "verification_status": business.get("verification_status"),
            }
            for business in data.get("data") or []
        ]

    async def waba_numbers(
        self, session: AsyncSession, principal: Principal, waba_id: str,
    ) -> list[dict[str, Any]]:
        token = await self._token(session, principal)
        data = (await self.graph.get_phone_numbers(token, waba_id)).unwrap()
        return [
            {
                "id": number.get("id"),
                "display_phone_number": number.get("display_phone_number"),
                "verified_name": number.get("verified_name"),
                "verification_status": number.get("code_verification_status"),
            }
            for number in data.get("data") or []
        ]

    async def _walk_wabas(self, token: str, errors: list[str]):
        """Yield (business, waba, numbers) across all businesses.

        A failing node is recorded in ``errors`` and skipped.
        """
        businesses = (await self.graph.get_businesses(token)).unwrap()
        for business in businesses.get("data") or []:
            wabas = await self.graph.get_owned_wabas(token, business["id"])
            if not wabas.ok:
                errors.append(f"WABAs of business {business.get('name')}: {wabas.error.message}")
                continue
            for waba in wabas.data.get("data") or []:
                numbers = await self.graph.get_phone_numbers(token, waba["id"])
                if not numbers.ok:
                    errors.append(f"Numbers of WABA {waba.get('name')}: {numbers.error.message}")
                    continue
                yield business, waba, numbers.data.get("data") or []

    async def whatsapp_accounts(
        self, session: AsyncSession, principal: Principal,
    ) -> list[dict[str, Any]]:
        token = await self._token(session, principal)
        errors: list[str] = []
        accounts = []
        async for business, waba, numbers in self._walk_wabas(token, errors):
            accounts.append({
                "business_id": business.get("id"),
                "business_name": business.get("name"),
                "waba_id": waba.get("id"),
                "waba_name": waba.get("name"),
                "phone_numbers": numbers,
            })
        for error in errors:
            logger.warning("Skipped WhatsApp account node: %s", error)
        return accounts

    async def whatsapp_sync(
        self, session: AsyncSession, principal: Principal,
    ) -> dict[str, Any]:
        """Remote numbers annotated with whether they are registered locally."""
        token = await self._token(session, principal)
        result = await session.execute(
            select(WhatsAppNumberModel).where(
                WhatsAppNumberModel.client_id == principal.client_id,
            )
        )
        local = {n.phone_number_id: n for n in result.scalars().all()}

        errors: list[str] = []
        synced = []
        async for business, waba, numbers in self._walk_wabas(token, errors):
            for number in numbers:
                local_number = local.get(number.get("id"))
                synced.append({
                    "phone_number_id": number.get("id"),
                    "display_phone_number": number.get("display_phone_number"),
                    "verified_name": number.get("verified_name"),
                    "verification_status": number.get("code_verification_status"),
                    "waba_id": waba.get("id"),
                    "waba_name": waba.get("name"),
                    "business_name": business.get("name"),
                    "in_local_db": local_number is not None,
                    "local_display_name": local_number.display_name if local_number else None,
                })

        return {
            "synced_numbers": synced,
            "total_remote": len(synced),
            "total_local": sum(1 for n in synced if n["in_local_db"]),
            "errors": errors or None,
        }

    async def business_assets(
        self, session: AsyncSession, principal: Principal, business_id: str,
    ) -> dict[str, Any]:
        """Owned ad accounts, pages, Instagram and WhatsApp accounts of one business.

        Each kind is fetched independently; a failing kind is logged and
        reported as empty.
        """
        token = await self._token(session, principal)
        results = await self.graph.get_business_assets(token, business_id)

        assets: dict[str, list[dict[str, Any]]] = {}
        for kind, result in results.items():
            if result.ok:
                assets[kind] = result.data.get("data") or []
            else:
                logger.warning(
                    "Could not load %s of business %s: %s",
                    kind, business_id, result.error.message,
                )
                assets[kind] = []

        return {
            "business_id": business_id,
            "assets": assets,
            "summary": {f"{kind}_count": len(items) for kind, items in assets.items()},
        }

    async def token_info(self, session: AsyncSession, principal: Principal) -> dict[str, Any]:
        """Validity, expiry and granted scopes of the linked Facebook token."""
        token = await self._token(session, principal)
        debug, permissions = await asyncio.gather(
            self.graph.debug_token(token),
            self.graph.get_permissions(token),
        )

        info: dict[str, Any] = {}
        if debug.ok:
            info = (debug.data or {}).get("data") or {}
        else:
            logger.warning("Could not inspect Facebook token: %s", debug.error.message)

        scopes: list[str] = []
        if permissions.ok:
            scopes = [
                perm["permission"]
                for perm in permissions.data.get("data") or []
                if perm.get("status") == "granted"
            ]
        else:
            logger.warning("Could not load Facebook permissions: %s", permissions.error.message)

        expires_at = info.get("expires_at")
        return {
            "token_valid": bool(info.get("is_valid")),
            # 0 means the token never expires
            "expires_at": (
                datetime.fromtimestamp(expires_at, tz=timezone.utc).isoformat()
                if expires_at else None
            ),
            "scopes": scopes,
            "app_id": info.get("app_id"),
            "user_id": info.get("user_id"),
        }
