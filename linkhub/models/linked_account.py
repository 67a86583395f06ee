# linkhub/models/linked_account.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime, timezone
from enum import Enum
import uuid
from sqlalchemy import DateTime, String, TypeDecorator, UniqueConstraint


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetimes in and out, stored as naive UTC so every backend
    (SQLite included) compares them the same way.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime passed to a UTC column")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Platform(str, Enum):
    VIDEO = "video"
    PHOTO_SHORT_VIDEO = "photo-short-video"
    MICROBLOG = "microblog"
    SHORT_VIDEO = "short-video"


class LinkedAccount(SQLModel, table=True):
    __tablename__ = "linked_account"
    __table_args__ = (
        UniqueConstraint("platform", "external_account_id", name="uq_linked_account_platform_external_id"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    platform: str = Field(sa_column=Column(String, index=True, nullable=False))
    external_account_id: str = Field(sa_column=Column(String, nullable=False))
    owner_user_id: str = Field(index=True)
    access_token_enc: str
    refresh_token_enc: Optional[str] = None
    expires_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))
    token_type: str = Field(default="bearer")
    scope: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime, nullable=False))
