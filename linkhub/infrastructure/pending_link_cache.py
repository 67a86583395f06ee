# linkhub/infrastructure/pending_link_cache.py
from datetime import timedelta
from typing import Optional

import structlog
from pydantic import ValidationError

from linkhub.config import PENDING_LINK_TTL_SECONDS
from linkhub.models.linked_account import utcnow
from linkhub.schemas.link_schema import PendingLink
from linkhub.utils.security import generate_session_reference

logger = structlog.get_logger(__name__)


class PendingLinkCache:
    """
    Single-use, expiring store for PendingLink records, keyed by an opaque
    session reference. Backed by redis; `pop` reads and deletes in one
    MULTI/EXEC so a record is handed out at most once.
    """

    key_prefix = "pending_link:"

    def __init__(self, redis, ttl: int = PENDING_LINK_TTL_SECONDS):
        self.redis = redis
        self.ttl = ttl

    def _key(self, session_reference: str) -> str:
        return f"{self.key_prefix}{session_reference}"

    async def put(self, pending: PendingLink) -> str:
        session_reference = generate_session_reference()
        await self.redis.set(self._key(session_reference), pending.model_dump_json(), ex=self.ttl)
        logger.debug("pending_link_stored", platform=pending.platform, ttl=self.ttl)
        return session_reference

    async def pop(self, session_reference: Optional[str]) -> Optional[PendingLink]:
        if not session_reference:
            return None
        key = self._key(session_reference)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.get(key)
            pipe.delete(key)
            raw, _ = await pipe.execute()
        if not raw:
            return None
        try:
            pending = PendingLink.model_validate_json(raw)
        except ValidationError:
            logger.warning("pending_link_corrupt")
            return None
        if utcnow() - pending.created_at > timedelta(seconds=self.ttl):
            logger.info("pending_link_stale", platform=pending.platform)
            return None
        return pending
