# linkhub/providers/instagram.py
from datetime import timedelta

import httpx
import structlog

from linkhub.errors import ExchangeFailed, IdentityUnresolvable
from linkhub.models.linked_account import Platform, utcnow
from linkhub.providers.base import ProviderAdapter, ProviderCapabilities
from linkhub.schemas.link_schema import Credential, PendingLink

logger = structlog.get_logger(__name__)

GRAPH_VERSION = "v19.0"
FACEBOOK_AUTH_URL = f"https://www.facebook.com/{GRAPH_VERSION}/dialog/oauth"
GRAPH_TOKEN_URL = f"https://graph.facebook.com/{GRAPH_VERSION}/oauth/access_token"
GRAPH_PAGES_URL = f"https://graph.facebook.com/{GRAPH_VERSION}/me/accounts"

SHORT_LIVED_SECONDS = 3600
LONG_LIVED_SECONDS = 60 * 24 * 3600


class InstagramAdapter(ProviderAdapter):
    """
    Instagram business account, reached through the Facebook page it is attached to.

    Facebook issues no refresh token. The code exchange yields a short-lived user
    token which is immediately traded for a long-lived one; its lifetime is taken
    from that second response (fallbacks: 1 hour short-lived, 60 days long-lived).
    """

    platform = Platform.PHOTO_SHORT_VIDEO
    capabilities = ProviderCapabilities(lifetime_known_at_issuance=False)
    authorize_url = FACEBOOK_AUTH_URL
    token_url = GRAPH_TOKEN_URL
    scope_separator = ","
    default_lifetime_seconds = SHORT_LIVED_SECONDS

    async def exchange_code(self, code: str, pending: PendingLink) -> Credential:
        short_lived = await super().exchange_code(code, pending)
        return await self._upgrade_to_long_lived(short_lived)

    async def _upgrade_to_long_lived(self, short_lived: Credential) -> Credential:
        params = {
            "grant_type": "fb_exchange_token",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "fb_exchange_token": short_lived.access_token,
        }
        try:
            resp = await self.http.get(self.token_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            # not fatal: the short-lived token is still usable
            logger.warning("instagram_long_lived_upgrade_failed", error=str(e))
            return short_lived

        if not isinstance(data, dict) or not data.get("access_token"):
            logger.warning("instagram_long_lived_upgrade_empty")
            return short_lived

        try:
            expires_in = self.lifetime_of(data.get("expires_in")) or LONG_LIVED_SECONDS
        except ExchangeFailed:
            logger.warning("instagram_long_lived_bad_lifetime", expires_in=str(data.get("expires_in")))
            expires_in = LONG_LIVED_SECONDS
        return Credential(
            access_token=data["access_token"],
            expires_at=utcnow() + timedelta(seconds=expires_in),
            token_type=(data.get("token_type") or short_lived.token_type).lower(),
            scope=short_lived.scope,
        )

    async def resolve_external_account_id(self, credential: Credential) -> str:
        body = await self._get_identity_json(
            GRAPH_PAGES_URL, credential.access_token, params={"fields": "id,name,instagram_business_account"}
        )
        pages = body.get("data")
        for page in pages if isinstance(pages, list) else []:
            business = page.get("instagram_business_account") if isinstance(page, dict) else None
            if isinstance(business, dict) and business.get("id"):
                return str(business["id"])
        # personal/creator accounts without a linked page cannot be read
        raise IdentityUnresolvable("no instagram business account is linked to a facebook page")
