# linkhub/config.py
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional, Tuple

from cryptography.fernet import Fernet

from linkhub.models.linked_account import Platform

PENDING_LINK_TTL_SECONDS = 600

# default scopes per platform, overridable with <PREFIX>_SCOPES
DEFAULT_SCOPES: Dict[Platform, Tuple[str, ...]] = {
    Platform.VIDEO: (
        "openid",
        "email",
        "profile",
        "https://www.googleapis.com/auth/youtube.readonly",
        "https://www.googleapis.com/auth/yt-analytics.readonly",
    ),
    Platform.PHOTO_SHORT_VIDEO: (
        "instagram_basic",
        "instagram_manage_insights",
        "pages_show_list",
        "pages_read_engagement",
    ),
    Platform.MICROBLOG: ("tweet.read", "users.read", "offline.access"),
    Platform.SHORT_VIDEO: ("user.info.basic", "user.info.profile", "user.info.stats", "video.list"),
}

# env prefixes for client credentials: (id var, secret var, scopes var)
_CREDENTIAL_ENV: Dict[Platform, Tuple[str, str, str]] = {
    Platform.VIDEO: ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_SCOPES"),
    Platform.PHOTO_SHORT_VIDEO: ("INSTAGRAM_APP_ID", "INSTAGRAM_APP_SECRET", "INSTAGRAM_SCOPES"),
    Platform.MICROBLOG: ("X_CLIENT_ID", "X_CLIENT_SECRET", "X_SCOPES"),
    Platform.SHORT_VIDEO: ("TIKTOK_CLIENT_KEY", "TIKTOK_CLIENT_SECRET", "TIKTOK_SCOPES"),
}


@dataclass(frozen=True)
class ProviderConfig:
    """Client registration for one external platform."""

    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: Tuple[str, ...] = ()
    timeout: float = 30.0


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite+aiosqlite:///./linkhub.db"
    redis_url: str = "redis://localhost:6379/0"
    secret_key: str = "change_me_now"
    algorithm: str = "HS256"
    oauth_token_key: str = ""
    public_base_url: str = "http://localhost:8000"
    cookie_secure: bool = False
    cookie_samesite: str = "lax"
    http_timeout: float = 30.0
    pending_link_ttl: int = PENDING_LINK_TTL_SECONDS
    providers: Dict[Platform, ProviderConfig] = field(default_factory=dict)

    def provider(self, platform: Platform) -> Optional[ProviderConfig]:
        return self.providers.get(platform)


def _split_scopes(raw: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not raw:
        return default
    return tuple(s for s in raw.replace(",", " ").split() if s)


def load_provider_configs(env, public_base_url: str, timeout: float) -> Dict[Platform, ProviderConfig]:
    """
    Build a ProviderConfig for every platform whose client id and secret are set.
    Platforms with missing credentials are left out and surface as unavailable.
    """
    configs: Dict[Platform, ProviderConfig] = {}
    base = public_base_url.rstrip("/")
    for platform, (id_var, secret_var, scopes_var) in _CREDENTIAL_ENV.items():
        client_id = (env.get(id_var) or "").strip()
        client_secret = (env.get(secret_var) or "").strip()
        if not client_id or not client_secret:
            continue
        configs[platform] = ProviderConfig(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=f"{base}/platforms/{platform.value}/callback",
            scopes=_split_scopes(env.get(scopes_var), DEFAULT_SCOPES[platform]),
            timeout=timeout,
        )
    return configs


def load_settings(env=None) -> Settings:
    env = os.environ if env is None else env
    public_base_url = env.get("PUBLIC_BASE_URL", "http://localhost:8000")
    timeout = float(env.get("OAUTH_HTTP_TIMEOUT", "30"))

    # dev fallback (not for production): tokens encrypted with a per-process key
    oauth_token_key = env.get("OAUTH_TOKEN_KEY") or Fernet.generate_key().decode()

    return Settings(
        database_url=env.get("DATABASE_URL", "sqlite+aiosqlite:///./linkhub.db"),
        redis_url=env.get("REDIS_URL", "redis://localhost:6379/0"),
        secret_key=env.get("SECRET_KEY", "change_me_now"),
        algorithm=env.get("ALGORITHM", "HS256"),
        oauth_token_key=oauth_token_key,
        public_base_url=public_base_url,
        cookie_secure=env.get("COOKIE_SECURE", "false").lower() == "true",
        cookie_samesite=env.get("COOKIE_SAMESITE", "lax"),
        http_timeout=timeout,
        providers=load_provider_configs(env, public_base_url, timeout),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
