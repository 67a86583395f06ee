# linkhub/providers/tiktok.py
from typing import Any, Dict

from linkhub.errors import IdentityUnresolvable
from linkhub.models.linked_account import Platform
from linkhub.providers.base import ProviderAdapter, ProviderCapabilities
from linkhub.schemas.link_schema import Credential

TIKTOK_AUTH_URL = "https://www.tiktok.com/v2/auth/authorize/"
TIKTOK_TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"
TIKTOK_USER_INFO_URL = "https://open.tiktokapis.com/v2/user/info/"


class TikTokAdapter(ProviderAdapter):
    platform = Platform.SHORT_VIDEO
    capabilities = ProviderCapabilities(requires_pkce=True, requires_state=True, issues_refresh_token=True)
    authorize_url = TIKTOK_AUTH_URL
    token_url = TIKTOK_TOKEN_URL
    client_id_param = "client_key"
    scope_separator = ","

    def parse_token_response(self, payload: Dict[str, Any]) -> Credential:
        credential = super().parse_token_response(payload)
        if payload.get("open_id"):
            credential.account_hint = str(payload["open_id"])
        return credential

    async def resolve_external_account_id(self, credential: Credential) -> str:
        try:
            body = await self._get_identity_json(
                TIKTOK_USER_INFO_URL, credential.access_token, params={"fields": "open_id,union_id,display_name"}
            )
        except IdentityUnresolvable:
            if credential.account_hint:
                return credential.account_hint
            raise

        error = body.get("error")
        data = body.get("data")
        user = data.get("user") if isinstance(data, dict) else None
        failed = isinstance(error, dict) and error.get("code") not in (None, "ok")
        if failed or not isinstance(user, dict) or not user.get("open_id"):
            if credential.account_hint:
                return credential.account_hint
            raise IdentityUnresolvable("tiktok user info has no open_id")
        return str(user["open_id"])
