# linkhub/providers/base.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

import httpx
import structlog

from linkhub.config import ProviderConfig
from linkhub.errors import ExchangeFailed, IdentityUnresolvable, Unsupported
from linkhub.infrastructure.http_client import ExternalAPIClient
from linkhub.models.linked_account import Platform, utcnow
from linkhub.schemas.link_schema import Credential, PendingLink
from linkhub.utils.security import generate_pkce_pair, generate_state_token

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProviderCapabilities:
    requires_pkce: bool = False
    requires_state: bool = False
    issues_refresh_token: bool = False
    # False when the token response may omit the lifetime; `default_lifetime_seconds` applies then
    lifetime_known_at_issuance: bool = True


@dataclass(frozen=True)
class AuthorizationRequest:
    redirect_url: str
    pending_link: PendingLink


class ProviderAdapter(ABC):
    """
    One external platform's flavour of the OAuth2 authorization-code flow.

    Subclasses declare endpoints and capabilities and implement identity
    resolution; the shared flow (authorization URL, code exchange, refresh)
    lives here and is steered only by `capabilities`.
    """

    platform: Platform
    capabilities: ProviderCapabilities
    authorize_url: str
    token_url: str
    client_id_param = "client_id"
    scope_separator = " "
    default_lifetime_seconds: Optional[int] = None

    def __init__(self, config: ProviderConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.http = ExternalAPIClient(timeout=config.timeout, transport=transport)

    # --- authorization request ---
    def extra_authorize_params(self) -> Dict[str, str]:
        return {}

    def build_authorization_request(self, owner_user_id: str) -> AuthorizationRequest:
        pending = PendingLink(platform=self.platform.value, owner_user_id=owner_user_id, created_at=utcnow())
        params = {
            self.client_id_param: self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": self.scope_separator.join(self.config.scopes),
        }
        params.update(self.extra_authorize_params())

        if self.capabilities.requires_state:
            pending.anti_forgery_state = generate_state_token()
            params["state"] = pending.anti_forgery_state

        if self.capabilities.requires_pkce:
            verifier, challenge = generate_pkce_pair()
            pending.pkce_verifier = verifier
            params["code_challenge"] = challenge
            params["code_challenge_method"] = "S256"

        url = httpx.URL(self.authorize_url).copy_merge_params(params)
        return AuthorizationRequest(redirect_url=str(url), pending_link=pending)

    # --- token endpoint ---
    def client_auth(self, data: Dict[str, str]) -> Tuple[Dict[str, str], Optional[httpx.Auth]]:
        """Attach client credentials; default is in the form body."""
        data = dict(data)
        data[self.client_id_param] = self.config.client_id
        data["client_secret"] = self.config.client_secret
        return data, None

    async def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        body, auth = self.client_auth(data)
        try:
            resp = await self.http.post_form(self.token_url, data=body, auth=auth)
        except httpx.HTTPError as e:
            logger.warning("token_request_transport_error", platform=self.platform.value, error=str(e))
            raise ExchangeFailed(f"{self.platform.value} token endpoint unreachable") from e

        if resp.status_code >= 400:
            logger.warning("token_request_rejected", platform=self.platform.value, status=resp.status_code)
            raise ExchangeFailed(f"{self.platform.value} token endpoint returned {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise ExchangeFailed(f"{self.platform.value} token endpoint returned invalid JSON") from e
        if not isinstance(payload, dict) or payload.get("error") or not payload.get("access_token"):
            logger.warning("token_request_error_body", platform=self.platform.value)
            raise ExchangeFailed(f"{self.platform.value} token endpoint returned no access token")
        return payload

    def lifetime_of(self, expires_in: Any) -> Optional[int]:
        """Seconds from an `expires_in` value; platforms send ints, numeric strings or floats."""
        if expires_in is None or expires_in == "":
            return None
        try:
            seconds = int(float(expires_in))
        except (TypeError, ValueError, OverflowError) as e:
            raise ExchangeFailed(f"{self.platform.value} token endpoint returned a bad expires_in") from e
        if seconds <= 0:
            return None
        return seconds

    def parse_token_response(self, payload: Dict[str, Any]) -> Credential:
        expires_at = None
        seconds = self.lifetime_of(payload.get("expires_in"))
        if seconds is None and not self.capabilities.lifetime_known_at_issuance:
            seconds = self.default_lifetime_seconds
        if seconds is not None:
            expires_at = utcnow() + timedelta(seconds=seconds)
        return Credential(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or None,
            expires_at=expires_at,
            token_type=(payload.get("token_type") or "bearer").lower(),
            scope=payload.get("scope"),
        )

    async def exchange_code(self, code: str, pending: PendingLink) -> Credential:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
        }
        if self.capabilities.requires_pkce:
            if not pending.pkce_verifier:
                raise ExchangeFailed("missing PKCE verifier")
            data["code_verifier"] = pending.pkce_verifier
        payload = await self._token_request(data)
        return self.parse_token_response(payload)

    async def refresh(self, refresh_token: str) -> Credential:
        if not self.capabilities.issues_refresh_token:
            raise Unsupported(f"{self.platform.value} does not issue refresh tokens")
        payload = await self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})
        return self.parse_token_response(payload)

    # --- identity ---
    async def _get_identity_json(self, url: str, access_token: str, params=None) -> Dict[str, Any]:
        try:
            resp = await self.http.get(url, headers={"Authorization": f"Bearer {access_token}"}, params=params)
        except httpx.HTTPError as e:
            raise IdentityUnresolvable(f"{self.platform.value} identity endpoint unreachable") from e
        if resp.status_code >= 400:
            raise IdentityUnresolvable(f"{self.platform.value} identity endpoint returned {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as e:
            raise IdentityUnresolvable(f"{self.platform.value} identity endpoint returned invalid JSON") from e
        if not isinstance(body, dict):
            raise IdentityUnresolvable(f"{self.platform.value} identity endpoint returned no JSON object")
        return body

    @abstractmethod
    async def resolve_external_account_id(self, credential: Credential) -> str:
        """Return the platform-stable account id (never the mutable username)."""
