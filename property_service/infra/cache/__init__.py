"""Redis connection management."""

from property_service.infra.cache.redis import RedisCache

__all__ = ["RedisCache"]
