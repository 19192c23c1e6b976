"""Tests for Graph browsing with the linked Facebook token."""

import pytest

from sharkboot.common.exceptions import ValidationError

REDIRECT_URI = "http://localhost:5173/auth/callback"


@pytest.fixture
async def linked(db, services, fake_graph, make_principal):
    principal = await make_principal()
    fake_graph.add_user("code-1", "fb-token", "fb-100", name="Owner")
    fake_graph.add_number("fb-token", "biz-1", "waba-1", "pn-1")
    fake_graph.add_number("fb-token", "biz-1", "waba-2", "pn-2")
    fake_graph.add_number("fb-token", "biz-2", "waba-3", "pn-3")
    async with db.get_session() as session:
        await services.tenants.link_facebook(session, principal, "code-1", REDIRECT_URI)
    return principal


class TestBrowse:
    async def test_requires_linked_account(self, db, services, make_principal):
        principal = await make_principal("plain@x.test")
        with pytest.raises(ValidationError):
            async with db.get_session() as session:
                await services.facebook.businesses(session, principal)

    async def test_profile(self, db, services, linked):
        async with db.get_session() as session:
            profile = await services.facebook.profile(session, linked)
        assert profile["id"] == "fb-100"
        assert profile["name"] == "Owner"

    async def test_waba_numbers(self, db, services, linked):
        async with db.get_session() as session:
            numbers = await services.facebook.waba_numbers(session, linked, "waba-1")
        assert [n["id"] for n in numbers] == ["pn-1"]
        assert numbers[0]["verification_status"] == "VERIFIED"

    async def test_accounts_skip_failing_nodes(self, db, services, fake_graph, linked):
        fake_graph.fail("GET", "/waba-2/phone_numbers", 500)
        async with db.get_session() as session:
            accounts = await services.facebook.whatsapp_accounts(session, linked)
        assert [(a["business_id"], a["waba_id"]) for a in accounts] == [
            ("biz-1", "waba-1"), ("biz-2", "waba-3"),
        ]

    async def test_sync_flags_local_numbers(self, db, services, fake_graph, linked):
        async with db.get_session() as session:
            await services.whatsapp.register_number(session, linked, "waba-1", "pn-1", "Main")
        fake_graph.fail("GET", "/biz-2/owned_whatsapp_business_accounts", 500)

        async with db.get_session() as session:
            synced = await services.facebook.whatsapp_sync(session, linked)

        flags = {n["phone_number_id"]: n["in_local_db"] for n in synced["synced_numbers"]}
        assert flags == {"pn-1": True, "pn-2": False}
        assert synced["total_remote"] == 2
        assert synced["total_local"] == 1
        assert len(synced["errors"]) == 1


class TestBusinessAssets:
    async def test_assets_by_kind(self, db, services, fake_graph, linked):
        fake_graph.business_assets[("biz-1", "owned_ad_accounts")] = [
            {"id": "act_1", "name": "Ads", "currency": "USD"},
        ]
        fake_graph.business_assets[("biz-1", "owned_pages")] = [
            {"id": f"page-{i}", "name": f"Page {i}"} for i in range(3)
        ]
        async with db.get_session() as session:
            result = await services.facebook.business_assets(session, linked, "biz-1")

        assert result["business_id"] == "biz-1"
        assert [a["id"] for a in result["assets"]["ad_accounts"]] == ["act_1"]
        assert len(result["assets"]["pages"]) == 3
        assert [w["id"] for w in result["assets"]["whatsapp_accounts"]] == ["waba-1", "waba-2"]
        assert result["summary"] == {
            "ad_accounts_count": 1,
            "pages_count": 3,
            "instagram_accounts_count": 0,
            "whatsapp_accounts_count": 2,
        }

    async def test_failing_kind_is_empty(self, db, services, fake_graph, linked):
        fake_graph.business_assets[("biz-1", "owned_pages")] = [{"id": "page-1", "name": "P"}]
        fake_graph.fail("GET", "/biz-1/owned_ad_accounts", 403)
        async with db.get_session() as session:
            result = await services.facebook.business_assets(session, linked, "biz-1")
        assert result["assets"]["ad_accounts"] == []
        assert result["summary"]["pages_count"] == 1


class TestTokenInfo:
    async def test_valid_token(self, db, services, fake_graph, linked):
        async with db.get_session() as session:
            info = await services.facebook.token_info(session, linked)
        assert info["token_valid"] is True
        assert info["user_id"] == "fb-100"
        assert info["expires_at"] == "2027-01-15T08:00:00+00:00"
        assert info["scopes"] == ["email", "whatsapp_business_management"]

    async def test_never_expiring_token(self, db, services, fake_graph, linked):
        fake_graph.token_expiry = 0
        async with db.get_session() as session:
            info = await services.facebook.token_info(session, linked)
        assert info["expires_at"] is None

    async def test_inspection_failures_degrade(self, db, services, fake_graph, linked):
        fake_graph.fail("GET", "/debug_token", 500)
        fake_graph.fail("GET", "/me/permissions", 500)
        async with db.get_session() as session:
            info = await services.facebook.token_info(session, linked)
        assert info == {
            "token_valid": False, "expires_at": None, "scopes": [], "app_id": None, "user_id": None,
        }
