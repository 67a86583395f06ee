# linkhub/providers/registry.py
from typing import Dict, List, Optional, Type, Union

import httpx
import structlog

from linkhub.config import Settings
from linkhub.errors import AdapterUnavailable, UnknownPlatform
from linkhub.models.linked_account import Platform
from linkhub.providers.base import ProviderAdapter
from linkhub.providers.instagram import InstagramAdapter
from linkhub.providers.tiktok import TikTokAdapter
from linkhub.providers.x import XAdapter
from linkhub.providers.youtube import YouTubeAdapter

logger = structlog.get_logger(__name__)

ADAPTER_CLASSES: Dict[Platform, Type[ProviderAdapter]] = {
    Platform.VIDEO: YouTubeAdapter,
    Platform.PHOTO_SHORT_VIDEO: InstagramAdapter,
    Platform.MICROBLOG: XAdapter,
    Platform.SHORT_VIDEO: TikTokAdapter,
}


class ProviderRegistry:
    """Adapters for every configured platform, looked up by platform value."""

    def __init__(self, adapters: Dict[Platform, ProviderAdapter]):
        self.adapters = adapters

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ProviderRegistry":
        adapters = {}
        for platform, adapter_cls in ADAPTER_CLASSES.items():
            config = settings.provider(platform)
            if config is None:
                logger.info("provider_not_configured", platform=platform.value)
                continue
            adapters[platform] = adapter_cls(config, transport=transport)
        return cls(adapters)

    def get(self, platform: Union[str, Platform]) -> ProviderAdapter:
        try:
            key = Platform(platform)
        except ValueError:
            raise UnknownPlatform(f"unknown platform: {platform}")
        adapter = self.adapters.get(key)
        if adapter is None:
            raise AdapterUnavailable(f"{key.value} linking is not configured")
        return adapter

    def configured(self) -> List[str]:
        return [p.value for p in self.adapters]
