"""
HTTP-level tests for /platforms routes, driven through httpx.ASGITransport
with the orchestrator's collaborators swapped for test doubles.
"""

from datetime import timedelta
from http.cookies import SimpleCookie
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import pytest_asyncio
from fastapi import HTTPException
from jose import jwt

from linkhub.config import get_settings
from linkhub.dependencies.auth import get_current_user_id
from linkhub.dependencies.db import get_session_dep
from linkhub.dependencies.linking import get_cipher, get_pending_link_cache, get_registry
from linkhub.errors import AccountAlreadyLinkedElsewhere, CredentialExpired, SessionExpired, StateMismatch
from linkhub.infrastructure.database import get_session
from linkhub.infrastructure.linked_accounts_repo import LinkedAccountRepository
from linkhub.main import app
from linkhub.models.linked_account import utcnow
from linkhub.providers.x import X_TOKEN_URL
from linkhub.routers.platforms_router import session_cookie_name, status_for
from linkhub.schemas.link_schema import Credential


@pytest_asyncio.fixture
async def client(engine, registry, cache, cipher, settings):
    current_user = {"id": "u1"}

    async def session_override():
        async with get_session(engine) as s:
            yield s

    app.dependency_overrides[get_current_user_id] = lambda: current_user["id"]
    app.dependency_overrides[get_session_dep] = session_override
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_pending_link_cache] = lambda: cache
    app.dependency_overrides[get_cipher] = lambda: cipher
    app.dependency_overrides[get_settings] = lambda: settings

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        c.current_user = current_user
        yield c
    app.dependency_overrides.clear()


def session_cookie(response: httpx.Response, platform: str) -> str:
    jar = SimpleCookie()
    jar.load(response.headers["set-cookie"])
    return jar[session_cookie_name(platform)].value


async def connect(client, platform="microblog"):
    start = await client.get(f"/platforms/{platform}/connect/start")
    assert start.status_code == 200
    state = parse_qs(urlparse(start.json()["auth_url"]).query).get("state", [""])[0]
    return session_cookie(start, platform), state


class TestConnect:
    @pytest.mark.asyncio
    async def test_start_sets_http_only_session_cookie(self, client):
        response = await client.get("/platforms/microblog/connect/start")

        assert response.status_code == 200
        assert response.json()["auth_url"].startswith("https://twitter.com/i/oauth2/authorize")
        set_cookie = response.headers["set-cookie"].lower()
        assert "link_session_microblog=" in set_cookie
        assert "httponly" in set_cookie
        assert "max-age=600" in set_cookie

    @pytest.mark.asyncio
    async def test_start_unknown_platform(self, client):
        response = await client.get("/platforms/long-form/connect/start")
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "unknown_platform"

    @pytest.mark.asyncio
    async def test_callback_links_account(self, client, script_microblog):
        script_microblog(user_id="42")
        ref, state = await connect(client)

        response = await client.get(
            "/platforms/microblog/callback",
            params={"code": "auth-code", "state": state},
            headers={"cookie": f"link_session_microblog={ref}"},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "connected"
        assert body["external_account_id"] == "42"
        assert body["owner_user_id"] == "u1"
        assert "access_token" not in body
        assert 'link_session_microblog=""' in response.headers["set-cookie"]

    @pytest.mark.asyncio
    async def test_callback_state_mismatch(self, client, script_microblog):
        platforms = script_microblog()
        ref, _ = await connect(client)

        response = await client.get(
            "/platforms/microblog/callback",
            params={"code": "auth-code", "state": "forged"},
            headers={"cookie": f"link_session_microblog={ref}"},
        )

        assert response.status_code == 400
        assert response.json() == {"status": "failed", "error": "state_mismatch", "message": "state parameter does not match"}
        assert platforms.requests == []
        assert "link_session_microblog" in response.headers["set-cookie"]

    @pytest.mark.asyncio
    async def test_callback_without_cookie(self, client):
        response = await client.get("/platforms/microblog/callback", params={"code": "c", "state": "s"})
        assert response.status_code == 400
        assert response.json()["error"] == "session_expired"

    @pytest.mark.asyncio
    async def test_callback_denied(self, client):
        ref, _ = await connect(client)
        response = await client.get(
            "/platforms/microblog/callback",
            params={"error": "access_denied"},
            headers={"cookie": f"link_session_microblog={ref}"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "authorization_denied"

    @pytest.mark.asyncio
    async def test_callback_for_account_owned_elsewhere(self, client, script_microblog):
        script_microblog(user_id="42")
        ref, state = await connect(client)
        await client.get(
            "/platforms/microblog/callback",
            params={"code": "c", "state": state},
            headers={"cookie": f"link_session_microblog={ref}"},
        )

        client.current_user["id"] = "u2"
        ref, state = await connect(client)
        response = await client.get(
            "/platforms/microblog/callback",
            params={"code": "c", "state": state},
            headers={"cookie": f"link_session_microblog={ref}"},
        )

        assert response.status_code == 409
        assert response.json()["error"] == "account_already_linked_elsewhere"


class TestAccounts:
    @pytest_asyncio.fixture
    async def linked(self, engine, cipher):
        async with get_session(engine) as s:
            repo = LinkedAccountRepository(s, cipher)
            return await repo.insert(
                repo.build(
                    "microblog",
                    "42",
                    "u1",
                    Credential(access_token="at-old", refresh_token="rt-old", expires_at=utcnow() - timedelta(minutes=5)),
                )
            )

    @pytest.mark.asyncio
    async def test_list_and_status(self, client, linked):
        accounts = (await client.get("/platforms/accounts")).json()
        assert [a["id"] for a in accounts] == [str(linked.id)]

        status = (await client.get("/platforms/microblog/status")).json()
        assert status == {"connected": True, "external_account_id": "42", "expired": True}

        status = (await client.get("/platforms/video/status")).json()
        assert status["connected"] is False

    @pytest.mark.asyncio
    async def test_fresh_credential_refreshes(self, client, platforms, linked):
        platforms.on("POST", X_TOKEN_URL, (200, {"access_token": "at-new", "expires_in": 3600}))

        response = await client.post(f"/platforms/accounts/{linked.id}/fresh-credential")

        assert response.status_code == 200
        assert response.json()["access_token"] == "at-new"
        assert "refresh_token" not in response.json()

    @pytest.mark.asyncio
    async def test_fresh_credential_expired(self, client, platforms, linked):
        platforms.on("POST", X_TOKEN_URL, (400, {"error": "invalid_grant"}))
        response = await client.post(f"/platforms/accounts/{linked.id}/fresh-credential")
        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "credential_expired"

    @pytest.mark.asyncio
    async def test_other_user_cannot_see_or_delete(self, client, linked):
        client.current_user["id"] = "u2"
        assert (await client.get("/platforms/accounts")).json() == []
        assert (await client.post(f"/platforms/accounts/{linked.id}/fresh-credential")).status_code == 404
        assert (await client.delete(f"/platforms/accounts/{linked.id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_unlink(self, client, linked):
        response = await client.delete(f"/platforms/accounts/{linked.id}")
        assert response.status_code == 204
        assert (await client.get("/platforms/accounts")).json() == []


@pytest.mark.asyncio
async def test_health_lists_platforms_and_echoes_request_id(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-1"})
    assert response.json() == {"status": "ok", "platforms": ["video", "photo-short-video", "microblog", "short-video"]}
    assert response.headers["x-request-id"] == "req-1"


@pytest.mark.parametrize(
    "exc, code",
    [
        (SessionExpired(), 400),
        (StateMismatch(), 400),
        (CredentialExpired("microblog"), 401),
        (AccountAlreadyLinkedElsewhere(), 409),
    ],
)
def test_status_for(exc, code):
    assert status_for(exc) == code


class TestCurrentUser:
    def token(self, settings, **claims):
        payload = {"sub": "u1", "type": "access", "jti": "j1", "exp": utcnow() + timedelta(minutes=5)}
        payload.update(claims)
        return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)

    @pytest.mark.asyncio
    async def test_valid_token(self, settings):
        with patch("linkhub.dependencies.auth.redis_client") as redis:
            redis.exists = AsyncMock(return_value=0)
            assert await get_current_user_id(self.token(settings), settings) == "u1"
            redis.exists.assert_awaited_once_with("bl:j1")

    @pytest.mark.asyncio
    async def test_revoked_token(self, settings):
        with patch("linkhub.dependencies.auth.redis_client") as redis:
            redis.exists = AsyncMock(return_value=1)
            with pytest.raises(HTTPException) as exc_info:
                await get_current_user_id(self.token(settings), settings)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_token_rejected(self, settings):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_id(self.token(settings, type="refresh"), settings)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token(self, settings):
        with pytest.raises(HTTPException):
            await get_current_user_id("not-a-jwt", settings)
