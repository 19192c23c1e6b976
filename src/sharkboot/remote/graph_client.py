"""HTTP client for Meta's Graph API (Facebook login, WhatsApp Business)."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from sharkboot.common.config import SharkbootSettings
from sharkboot.remote.result import (
    RemoteResult,
    result_from_response,
    result_from_transport_error,
)

logger = logging.getLogger(__name__)

PHONE_NUMBER_FIELDS = "id,display_phone_number,verified_name,code_verification_status"
MAX_PAGES = 20

# kind -> (edge, fields)
BUSINESS_ASSET_EDGES: dict[str, tuple[str, str]] = {
    "ad_accounts": ("owned_ad_accounts", "id,name,currency,timezone_id,account_status"),
    "pages": ("owned_pages", "id,name,category"),
    "instagram_accounts": ("owned_instagram_accounts", "id,username,name"),
    "whatsapp_accounts": ("owned_whatsapp_business_accounts", "id,name"),
}


@dataclass(frozen=True)
class GraphConfig:
    base_url: str = "https://graph.facebook.com/v23.0"
    app_id: str = ""
    app_secret: str = ""
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: SharkbootSettings) -> "GraphConfig":
        return cls(
            base_url=settings.graph_base_url,
            app_id=settings.facebook_app_id,
            app_secret=settings.facebook_app_secret,
            timeout=settings.graph_timeout,
        )


class GraphClient:
    """Calls the Graph API with the user's access token as a query parameter."""

    service = "graph"

    def __init__(
        self,
        config: GraphConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy-init httpx.AsyncClient."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _get(self, path: str, params: dict[str, Any]) -> RemoteResult:
        try:
            resp = await self._get_http_client().get(path, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Graph GET %s failed: %s", path, exc)
            return result_from_transport_error(self.service, exc)
        result = result_from_response(self.service, resp)
        if not result.ok:
            logger.warning(
                "Graph GET %s answered %s: %s", path, resp.status_code, result.error.message,
            )
        return result

    async def _list(
        self, path: str, access_token: str, fields: Optional[str] = None,
    ) -> RemoteResult:
        """Fetch every page of a ``{data, paging}`` edge into one data list.

        At most ``MAX_PAGES`` pages are read; hitting the cap is logged and
        flagged with ``truncated`` in the returned payload.
        """
        items: list[dict[str, Any]] = []
        params: dict[str, Any] = {"access_token": access_token}
        if fields:
            params["fields"] = fields
        for _ in range(MAX_PAGES):
            result = await self._get(path, params)
            if not result.ok:
                return result
            page = result.data or {}
            items.extend(page.get("data") or [])
            paging = page.get("paging") or {}
            after = (paging.get("cursors") or {}).get("after")
            if not paging.get("next") or not after:
                return RemoteResult.success({"data": items})
            params = {**params, "after": after}
        logger.warning(
            "Graph GET %s still had more pages after %d; returning the first %d items",
            path, MAX_PAGES, len(items),
        )
        return RemoteResult.success({"data": items, "truncated": True})

    # ── OAuth ──

    async def exchange_code_for_token(self, code: str, redirect_uri: str) -> RemoteResult:
        return await self._get("/oauth/access_token", {
            "client_id": self.config.app_id,
            "client_secret": self.config.app_secret,
            "redirect_uri": redirect_uri,
            "code": code,
        })

    async def get_profile(
        self,
        access_token: str,
        fields: str = "id,name,email,picture.width(200).height(200)",
    ) -> RemoteResult:
        return await self._get("/me", {"access_token": access_token, "fields": fields})

    # ── Assets ──

    async def get_pages(self, access_token: str) -> RemoteResult:
        return await self._list("/me/accounts", access_token, "id,name,category,access_token")

    async def get_businesses(self, access_token: str) -> RemoteResult:
        return await self._list("/me/businesses", access_token, "id,name,verification_status")

    async def get_owned_wabas(self, access_token: str, business_id: str) -> RemoteResult:
        return await self._list(
            f"/{business_id}/owned_whatsapp_business_accounts", access_token, "id,name",
        )

    async def get_phone_numbers(self, access_token: str, waba_id: str) -> RemoteResult:
        return await self._list(f"/{waba_id}/phone_numbers", access_token, PHONE_NUMBER_FIELDS)

    async def get_phone_number(self, access_token: str, phone_number_id: str) -> RemoteResult:
        return await self._get(
            f"/{phone_number_id}",
            {"access_token": access_token, "fields": PHONE_NUMBER_FIELDS},
        )

    async def get_business_assets(
        self, access_token: str, business_id: str,
    ) -> dict[str, RemoteResult]:
        """Fetch every owned-asset edge of a business concurrently, one result per kind."""
        results = await asyncio.gather(*(
            self._list(f"/{business_id}/{edge}", access_token, fields)
            for edge, fields in BUSINESS_ASSET_EDGES.values()
        ))
        return dict(zip(BUSINESS_ASSET_EDGES, results))

    # ── Token inspection ──

    async def debug_token(self, input_token: str) -> RemoteResult:
        """Inspect a user token with the app token (``app_id|app_secret``)."""
        return await self._get("/debug_token", {
            "input_token": input_token,
            "access_token": f"{self.config.app_id}|{self.config.app_secret}",
        })

    async def get_permissions(self, access_token: str) -> RemoteResult:
        return await self._list("/me/permissions", access_token)
