# linkhub/infrastructure/linked_accounts_repo.py
from typing import Optional, List
import uuid

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select

from linkhub.errors import UniquenessViolation
from linkhub.models.linked_account import LinkedAccount, utcnow
from linkhub.schemas.link_schema import Credential
from linkhub.utils.security import TokenCipher

logger = structlog.get_logger(__name__)


class LinkedAccountRepository:
    """
    Credential store for LinkedAccount rows.
    All methods are async and expect an AsyncSession to be injected from the outside.
    Tokens are encrypted on the way in and decrypted only by `credential_of`.
    """

    def __init__(self, session: AsyncSession, cipher: TokenCipher):
        self.session = session
        self.cipher = cipher

    async def get_by_id(self, id: uuid.UUID) -> Optional[LinkedAccount]:
        q = select(LinkedAccount).where(LinkedAccount.id == id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def find_by_platform_and_external_id(self, platform: str, external_account_id: str) -> Optional[LinkedAccount]:
        q = select(LinkedAccount).where(
            LinkedAccount.platform == platform,
            LinkedAccount.external_account_id == external_account_id,
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def find_by_platform_and_owner(self, platform: str, owner_user_id: str) -> Optional[LinkedAccount]:
        # a user may own several accounts on one platform; status reports the most recent
        q = (
            select(LinkedAccount)
            .where(LinkedAccount.platform == platform, LinkedAccount.owner_user_id == owner_user_id)
            .order_by(LinkedAccount.updated_at.desc())
        )
        res = await self.session.execute(q)
        return res.scalars().first()

    async def list_by_owner(self, owner_user_id: str) -> List[LinkedAccount]:
        q = select(LinkedAccount).where(LinkedAccount.owner_user_id == owner_user_id)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    def build(self, platform: str, external_account_id: str, owner_user_id: str, credential: Credential) -> LinkedAccount:
        return LinkedAccount(
            platform=platform,
            external_account_id=external_account_id,
            owner_user_id=owner_user_id,
            access_token_enc=self.cipher.encrypt(credential.access_token),
            refresh_token_enc=self.cipher.encrypt(credential.refresh_token),
            expires_at=credential.expires_at,
            token_type=credential.token_type or "bearer",
            scope=credential.scope,
        )

    async def insert(self, account: LinkedAccount) -> LinkedAccount:
        """
        Persist a new row. The (platform, external_account_id) unique constraint is
        the only guard against two owners for one external account; a clash raises
        UniquenessViolation after the session has been rolled back.
        """
        self.session.add(account)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info("linked_account_insert_conflict", platform=account.platform)
            raise UniquenessViolation(
                f"{account.platform} account {account.external_account_id} already stored"
            ) from e
        await self.session.refresh(account)
        return account

    async def update_credential(self, account: LinkedAccount, credential: Credential) -> LinkedAccount:
        """
        Replace token fields in place. A credential without a refresh token keeps
        the stored one.
        """
        account.access_token_enc = self.cipher.encrypt(credential.access_token)
        if credential.refresh_token:
            account.refresh_token_enc = self.cipher.encrypt(credential.refresh_token)
        account.expires_at = credential.expires_at
        account.token_type = credential.token_type or account.token_type
        if credential.scope is not None:
            account.scope = credential.scope
        account.updated_at = utcnow()
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def reload(self, account: LinkedAccount) -> LinkedAccount:
        await self.session.refresh(account)
        return account

    def credential_of(self, account: LinkedAccount) -> Credential:
        return Credential(
            access_token=self.cipher.decrypt(account.access_token_enc) or "",
            refresh_token=self.cipher.decrypt(account.refresh_token_enc),
            expires_at=account.expires_at,
            token_type=account.token_type,
            scope=account.scope,
        )

    async def delete(self, account: LinkedAccount) -> None:
        await self.session.delete(account)
        await self.session.commit()
