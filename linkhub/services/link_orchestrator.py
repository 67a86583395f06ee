# linkhub/services/link_orchestrator.py
import uuid
from dataclasses import dataclass
from typing import List, Mapping, Optional

import structlog

from linkhub.errors import (
    AccountAlreadyLinkedElsewhere,
    AuthorizationDenied,
    CredentialExpired,
    ExchangeFailed,
    LinkedAccountNotFound,
    SessionExpired,
    StateMismatch,
    UniquenessViolation,
    UnknownPlatform,
    Unsupported,
)
from linkhub.infrastructure.linked_accounts_repo import LinkedAccountRepository
from linkhub.infrastructure.pending_link_cache import PendingLinkCache
from linkhub.models.linked_account import LinkedAccount, Platform, utcnow
from linkhub.providers.registry import ProviderRegistry
from linkhub.schemas.link_schema import Credential, LinkedAccountSummary, LinkStatus
from linkhub.utils.security import constant_time_equals

logger = structlog.get_logger(__name__)

# one retry covers a row deleted between a losing insert and the re-read
STORE_ATTEMPTS = 2


@dataclass(frozen=True)
class LinkStart:
    redirect_url: str
    session_reference: str


def summarize(account: LinkedAccount) -> LinkedAccountSummary:
    return LinkedAccountSummary.model_validate(account, from_attributes=True)


class LinkOrchestrator:
    """
    Drives the link flow: begin (authorization redirect + pending link),
    complete (callback validation, code exchange, identity, store write)
    and keeps stored credentials fresh.

    Holds no mutable state of its own; everything shared lives in the
    pending-link cache and the credential store.
    """

    def __init__(self, registry: ProviderRegistry, cache: PendingLinkCache, repo: LinkedAccountRepository):
        self.registry = registry
        self.cache = cache
        self.repo = repo

    async def begin_link(self, platform: str, owner_user_id: str) -> LinkStart:
        adapter = self.registry.get(platform)
        request = adapter.build_authorization_request(owner_user_id)
        session_reference = await self.cache.put(request.pending_link)
        logger.info("link_started", platform=adapter.platform.value, owner_user_id=owner_user_id)
        return LinkStart(redirect_url=request.redirect_url, session_reference=session_reference)

    async def complete_link(
        self, platform: str, callback_params: Mapping[str, str], session_reference: Optional[str]
    ) -> LinkedAccountSummary:
        adapter = self.registry.get(platform)
        platform_value = adapter.platform.value

        error = callback_params.get("error")
        if error:
            # burn the pending link so the denied round-trip cannot be replayed
            await self.cache.pop(session_reference)
            logger.info("link_authorization_denied", platform=platform_value, error=error)
            raise AuthorizationDenied(f"{platform_value} authorization was denied: {error}")

        pending = await self.cache.pop(session_reference)
        if pending is None or pending.platform != platform_value:
            logger.info("link_session_expired", platform=platform_value)
            raise SessionExpired("link session expired, start again")

        if adapter.capabilities.requires_state and not constant_time_equals(
            callback_params.get("state"), pending.anti_forgery_state
        ):
            logger.warning(
                "oauth_state_mismatch",
                security_event=True,
                platform=platform_value,
                owner_user_id=pending.owner_user_id,
            )
            raise StateMismatch("state parameter does not match")

        code = callback_params.get("code")
        if not code:
            raise ExchangeFailed("callback carried no authorization code")

        credential = await adapter.exchange_code(code, pending)
        external_account_id = await adapter.resolve_external_account_id(credential)

        # owner always comes from the pending link, never from the callback
        account = await self._store(platform_value, external_account_id, pending.owner_user_id, credential)
        return summarize(account)

    async def _store(
        self, platform: str, external_account_id: str, owner_user_id: str, credential: Credential
    ) -> LinkedAccount:
        for _ in range(STORE_ATTEMPTS):
            existing = await self.repo.find_by_platform_and_external_id(platform, external_account_id)
            if existing is not None:
                if existing.owner_user_id != owner_user_id:
                    logger.info(
                        "link_rejected_owned_elsewhere",
                        platform=platform,
                        owner_user_id=owner_user_id,
                        linked_account_id=str(existing.id),
                    )
                    raise AccountAlreadyLinkedElsewhere(
                        f"this {platform} account is linked to another user; unlink it there first"
                    )
                account = await self.repo.update_credential(existing, credential)
                logger.info("linked_account_relinked", platform=platform, linked_account_id=str(account.id))
                return account

            try:
                account = await self.repo.insert(
                    self.repo.build(platform, external_account_id, owner_user_id, credential)
                )
            except UniquenessViolation:
                # a concurrent completion won the insert; re-read and decide by owner
                logger.info("linked_account_insert_raced", platform=platform, owner_user_id=owner_user_id)
                continue
            logger.info("linked_account_created", platform=platform, linked_account_id=str(account.id))
            return account

        raise AccountAlreadyLinkedElsewhere(f"this {platform} account is being linked concurrently")

    async def ensure_fresh_credential(self, account: LinkedAccount) -> Credential:
        """
        Return a usable credential for `account`, refreshing it when expired.
        A credential that cannot be refreshed raises CredentialExpired and the
        row is left in place so the pairing survives until the user re-links.
        """
        credential = self.repo.credential_of(account)
        if not credential.access_token:
            raise CredentialExpired(account.platform, "stored credential is unreadable, reconnect the account")
        if account.expires_at is None or account.expires_at > utcnow():
            return credential

        if not credential.refresh_token:
            logger.info("credential_expired_no_refresh_token", platform=account.platform, linked_account_id=str(account.id))
            raise CredentialExpired(account.platform)

        adapter = self.registry.get(account.platform)
        try:
            refreshed = await adapter.refresh(credential.refresh_token)
        except (ExchangeFailed, Unsupported) as e:
            # another request may have rotated the refresh token first
            await self.repo.reload(account)
            if account.expires_at is not None and account.expires_at > utcnow():
                logger.info("credential_refreshed_concurrently", linked_account_id=str(account.id))
                return self.repo.credential_of(account)
            logger.warning("credential_refresh_failed", platform=account.platform, linked_account_id=str(account.id))
            raise CredentialExpired(account.platform) from e

        account = await self.repo.update_credential(account, refreshed)
        logger.info("credential_refreshed", platform=account.platform, linked_account_id=str(account.id))
        return self.repo.credential_of(account)

    async def _owned_account(self, account_id: uuid.UUID, owner_user_id: str) -> LinkedAccount:
        account = await self.repo.get_by_id(account_id)
        if account is None or account.owner_user_id != owner_user_id:
            raise LinkedAccountNotFound("linked account not found")
        return account

    async def ensure_fresh_credential_by_id(self, account_id: uuid.UUID, owner_user_id: str) -> Credential:
        account = await self._owned_account(account_id, owner_user_id)
        return await self.ensure_fresh_credential(account)

    async def unlink(self, account_id: uuid.UUID, owner_user_id: str) -> None:
        account = await self._owned_account(account_id, owner_user_id)
        await self.repo.delete(account)
        logger.info("linked_account_deleted", platform=account.platform, linked_account_id=str(account_id))

    async def link_status(self, platform: str, owner_user_id: str) -> LinkStatus:
        try:
            key = Platform(platform)
        except ValueError:
            raise UnknownPlatform(f"unknown platform: {platform}")
        account = await self.repo.find_by_platform_and_owner(key.value, owner_user_id)
        if account is None:
            return LinkStatus(connected=False)
        expired = account.expires_at is not None and account.expires_at <= utcnow()
        return LinkStatus(connected=True, external_account_id=account.external_account_id, expired=expired)

    async def list_accounts(self, owner_user_id: str) -> List[LinkedAccountSummary]:
        return [summarize(a) for a in await self.repo.list_by_owner(owner_user_id)]
