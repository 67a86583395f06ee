# linkhub/infrastructure/redis_cache.py
import redis.asyncio as aioredis

from linkhub.config import get_settings

redis_client = aioredis.from_url(get_settings().redis_url, decode_responses=True)
