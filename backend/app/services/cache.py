"""
Cache invalidation collaborator.

The response cache itself belongs to the resource routers. This service is
only told, by key pattern, that something changed; what gets evicted is
Redis' business. Failures are logged and never reach the caller.
"""

import logging
from typing import Any

logger = logging.getLogger("feastfrenzy.cache")

CACHE_KEY_PREFIX = "cache:"
USERS_CACHE_PATTERN = f"{CACHE_KEY_PREFIX}users*"


class CacheInvalidator:

    def __init__(self, client: Any, enabled: bool = True):
        self.client = client
        self.enabled = enabled

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Delete every cached key matching *pattern*.

        Returns:
            Number of keys deleted (0 when disabled or Redis is unavailable)
        """
        if not self.enabled:
            return 0

        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]
            if not keys:
                return 0
            deleted = await self.client.delete(*keys)
        except Exception as exc:
            logger.warning("Cache invalidation failed for %s: %s", pattern, exc)
            return 0

        logger.debug("Invalidated %s cache keys for %s", deleted, pattern)
        return deleted
