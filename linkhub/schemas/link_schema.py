# linkhub/schemas/link_schema.py
from pydantic import AwareDatetime, BaseModel, Field
from typing import Optional
import uuid
from datetime import datetime


class PendingLink(BaseModel):
    """State of one in-flight authorization round-trip, kept in the session cache."""

    platform: str
    owner_user_id: str
    anti_forgery_state: Optional[str] = None
    pkce_verifier: Optional[str] = None
    created_at: AwareDatetime


class Credential(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[AwareDatetime] = None
    token_type: str = "bearer"
    scope: Optional[str] = None
    # account id some platforms return alongside the token; never persisted
    account_hint: Optional[str] = Field(default=None, exclude=True)


class LinkedAccountSummary(BaseModel):
    id: uuid.UUID
    platform: str
    external_account_id: str
    owner_user_id: str
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LinkStartResponse(BaseModel):
    auth_url: str


class LinkStatus(BaseModel):
    connected: bool
    external_account_id: Optional[str] = None
    expired: bool = False


class FreshCredential(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[datetime] = None
