"""
Shared pytest fixtures for the linkhub test suite.

Provides:
- a file-backed aiosqlite engine with the real schema (unique constraint included)
- an in-memory pending-link cache with the same single-use semantics as redis
- a scripted fake of the external platforms, plugged in through httpx.MockTransport
"""

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from sqlalchemy.ext.asyncio import create_async_engine

from linkhub.config import Settings
from linkhub.infrastructure.database import get_session, init_db
from linkhub.infrastructure.linked_accounts_repo import LinkedAccountRepository
from linkhub.models.linked_account import Platform
from linkhub.providers.registry import ProviderRegistry
from linkhub.providers.x import X_ME_URL, X_TOKEN_URL
from linkhub.services.link_orchestrator import LinkOrchestrator
from linkhub.utils.security import TokenCipher
from tests.fakes import FakePlatforms, InMemoryPendingLinkCache, make_provider_config


@pytest.fixture
def settings() -> Settings:
    return Settings(
        oauth_token_key=Fernet.generate_key().decode(),
        public_base_url="https://linkhub.test",
        providers={p: make_provider_config(p) for p in Platform},
    )


@pytest.fixture
def platforms() -> FakePlatforms:
    return FakePlatforms()


@pytest.fixture
def registry(settings: Settings, platforms: FakePlatforms) -> ProviderRegistry:
    return ProviderRegistry.from_settings(settings, transport=platforms.transport)


@pytest.fixture
def cache() -> InMemoryPendingLinkCache:
    return InMemoryPendingLinkCache()


@pytest.fixture
def cipher(settings: Settings) -> TokenCipher:
    return TokenCipher(settings.oauth_token_key)


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'linkhub.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session(engine):
    async with get_session(engine) as s:
        yield s


@pytest.fixture
def repo(session, cipher) -> LinkedAccountRepository:
    return LinkedAccountRepository(session, cipher)


@pytest.fixture
def orchestrator(registry, cache, repo) -> LinkOrchestrator:
    return LinkOrchestrator(registry, cache, repo)


@pytest.fixture
def script_microblog(platforms: FakePlatforms):
    """X happy path: token exchange then users/me resolving to the given id."""

    def _script(user_id: str = "42", access_token: str = "x-access", refresh_token: str = "x-refresh"):
        platforms.on(
            "POST",
            X_TOKEN_URL,
            (200, {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "expires_in": 7200,
                "token_type": "bearer",
                "scope": "tweet.read users.read offline.access",
            }),
        )
        platforms.on("GET", X_ME_URL, (200, {"data": {"id": user_id, "username": "someone"}}))
        return platforms

    return _script
