from typing import Optional, Any
import json
import logging
from redis import asyncio as aioredis
from app.core.config import settings

logger = logging.getLogger(__name__)

AVAILABLE_SLOTS_PREFIX = "available_slots"
LANDING_KEY = "public:landing"


def available_slots_key(*parts: Any) -> str:
    return ":".join([AVAILABLE_SLOTS_PREFIX, *[str(p) for p in parts]])


class RedisCache:
    def __init__(self):
        self.redis_url = settings.REDIS_URL
        self.redis: Optional[aioredis.Redis] = None

    async def connect(self):
        if not self.redis:
            try:
                self.redis = aioredis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True
                )
                logger.info("Connected to Redis cache.")
            except Exception as e:
                logger.error(f"Failed to connect to Redis: {e}")

    async def get(self, key: str) -> Optional[str]:
        if not self.redis:
            await self.connect()
        try:
            return await self.redis.get(key)
        except Exception as e:
            logger.error(f"Redis get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600):
        if not self.redis:
            await self.connect()
        try:
            # Callers serialize; see get_json/set_json
            await self.redis.set(key, value, ex=ttl)
        except Exception as e:
            logger.error(f"Redis set error for key {key}: {e}")

    async def get_json(self, key: str) -> Optional[Any]:
        cached = await self.get(key)
        if not cached:
            return None
        try:
            return json.loads(cached)
        except (TypeError, ValueError):
            logger.warning(f"Discarding malformed cache entry {key}")
            return None

    async def set_json(self, key: str, value: Any, ttl: int = 3600):
        await self.set(key, json.dumps(value, default=str), ttl=ttl)

    async def delete_pattern(self, pattern: str):
        if not self.redis:
            await self.connect()
        try:
            keys = [key async for key in self.redis.scan_iter(match=pattern)]
            if keys:
                await self.redis.delete(*keys)
        except Exception as e:
            logger.error(f"Redis delete_pattern error for {pattern}: {e}")

    async def invalidate_slots(self):
        """Drop every cached slot listing; bookings touch more than one key."""
        await self.delete_pattern(f"{AVAILABLE_SLOTS_PREFIX}:*")
        await self.delete_pattern(LANDING_KEY)

    async def close(self):
        if self.redis:
            await self.redis.close()

# Singleton instance
redis_cache = RedisCache()
