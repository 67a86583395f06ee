# linkhub/providers/youtube.py
from typing import Dict

from linkhub.errors import IdentityUnresolvable
from linkhub.models.linked_account import Platform
from linkhub.providers.base import ProviderAdapter, ProviderCapabilities
from linkhub.schemas.link_schema import Credential

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class YouTubeAdapter(ProviderAdapter):
    """Google account behind a YouTube channel. Plain code flow, refreshable."""

    platform = Platform.VIDEO
    capabilities = ProviderCapabilities(issues_refresh_token=True)
    authorize_url = GOOGLE_AUTH_URL
    token_url = GOOGLE_TOKEN_URL

    def extra_authorize_params(self) -> Dict[str, str]:
        # offline + forced consent, otherwise Google omits the refresh token on re-link
        return {"access_type": "offline", "prompt": "consent"}

    async def resolve_external_account_id(self, credential: Credential) -> str:
        info = await self._get_identity_json(GOOGLE_USERINFO_URL, credential.access_token)
        account_id = info.get("id")
        if not account_id:
            raise IdentityUnresolvable("google userinfo has no account id")
        return str(account_id)
