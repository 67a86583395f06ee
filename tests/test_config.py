"""
Tests for settings loading from the environment.
"""

import dataclasses

import pytest

from linkhub.config import DEFAULT_SCOPES, PENDING_LINK_TTL_SECONDS, load_settings
from linkhub.models.linked_account import Platform


@pytest.fixture
def env():
    return {
        "PUBLIC_BASE_URL": "https://app.example.com/",
        "X_CLIENT_ID": "x-id",
        "X_CLIENT_SECRET": "x-secret",
        "GOOGLE_CLIENT_ID": "g-id",
        "GOOGLE_CLIENT_SECRET": "g-secret",
        "GOOGLE_SCOPES": "openid, email",
        "TIKTOK_CLIENT_KEY": "tt-key",
        "OAUTH_HTTP_TIMEOUT": "12.5",
        "COOKIE_SECURE": "true",
    }


class TestLoadSettings:
    def test_only_fully_configured_platforms_get_a_provider(self, env):
        settings = load_settings(env)
        assert set(settings.providers) == {Platform.MICROBLOG, Platform.VIDEO}
        assert settings.provider(Platform.SHORT_VIDEO) is None
        assert settings.provider(Platform.PHOTO_SHORT_VIDEO) is None

    def test_redirect_uri_built_from_public_base_url(self, env):
        config = load_settings(env).provider(Platform.MICROBLOG)
        assert config.redirect_uri == "https://app.example.com/platforms/microblog/callback"

    def test_scopes_default_and_override(self, env):
        settings = load_settings(env)
        assert settings.provider(Platform.MICROBLOG).scopes == DEFAULT_SCOPES[Platform.MICROBLOG]
        assert settings.provider(Platform.VIDEO).scopes == ("openid", "email")

    def test_timeout_and_cookie_flags(self, env):
        settings = load_settings(env)
        assert settings.http_timeout == 12.5
        assert settings.provider(Platform.VIDEO).timeout == 12.5
        assert settings.cookie_secure is True
        assert settings.pending_link_ttl == PENDING_LINK_TTL_SECONDS == 600

    def test_missing_token_key_falls_back_to_generated_key(self, env):
        assert load_settings(env).oauth_token_key

    def test_settings_are_immutable(self, env):
        settings = load_settings(env)
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.secret_key = "other"
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.provider(Platform.VIDEO).client_secret = "other"
