# linkhub/dependencies/linking.py
from functools import lru_cache

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from linkhub.config import Settings, get_settings
from linkhub.dependencies.db import get_session_dep
from linkhub.infrastructure.linked_accounts_repo import LinkedAccountRepository
from linkhub.infrastructure.pending_link_cache import PendingLinkCache
from linkhub.infrastructure.redis_cache import redis_client
from linkhub.providers.registry import ProviderRegistry
from linkhub.services.link_orchestrator import LinkOrchestrator
from linkhub.utils.security import TokenCipher


@lru_cache
def get_registry() -> ProviderRegistry:
    return ProviderRegistry.from_settings(get_settings())


@lru_cache
def get_cipher() -> TokenCipher:
    return TokenCipher(get_settings().oauth_token_key)


def get_pending_link_cache(settings: Settings = Depends(get_settings)) -> PendingLinkCache:
    return PendingLinkCache(redis_client, ttl=settings.pending_link_ttl)


def get_orchestrator(
    session: AsyncSession = Depends(get_session_dep),
    registry: ProviderRegistry = Depends(get_registry),
    cache: PendingLinkCache = Depends(get_pending_link_cache),
    cipher: TokenCipher = Depends(get_cipher),
) -> LinkOrchestrator:
    return LinkOrchestrator(registry, cache, LinkedAccountRepository(session, cipher))
