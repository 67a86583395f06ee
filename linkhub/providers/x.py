# linkhub/providers/x.py
from typing import Dict, Optional, Tuple

import httpx

from linkhub.errors import IdentityUnresolvable
from linkhub.models.linked_account import Platform
from linkhub.providers.base import ProviderAdapter, ProviderCapabilities
from linkhub.schemas.link_schema import Credential

X_AUTH_URL = "https://twitter.com/i/oauth2/authorize"
X_TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
X_ME_URL = "https://api.twitter.com/2/users/me"


class XAdapter(ProviderAdapter):
    platform = Platform.MICROBLOG
    capabilities = ProviderCapabilities(requires_pkce=True, requires_state=True, issues_refresh_token=True)
    authorize_url = X_AUTH_URL
    token_url = X_TOKEN_URL

    def client_auth(self, data: Dict[str, str]) -> Tuple[Dict[str, str], Optional[httpx.Auth]]:
        # confidential client: HTTP Basic, no secret in the body
        return dict(data), httpx.BasicAuth(self.config.client_id, self.config.client_secret)

    async def resolve_external_account_id(self, credential: Credential) -> str:
        body = await self._get_identity_json(X_ME_URL, credential.access_token)
        user = body.get("data")
        if not isinstance(user, dict) or not user.get("id"):
            raise IdentityUnresolvable("x users/me has no user id")
        return str(user["id"])
