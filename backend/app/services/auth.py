"""Session-token lookup. Tokens are issued elsewhere and stored in Redis
as `auth_<token>` -> user id."""
import logging
from typing import Protocol

import redis.asyncio as redis

from app.config import settings
from app.services.errors import UnauthorizedError

logger = logging.getLogger(__name__)


class CredentialResolver(Protocol):
    async def resolve(self, token: str | None) -> str:
        """Return the user id for `token` or raise UnauthorizedError."""
        ...


class RedisCredentialResolver:
    def __init__(self, redis_client: redis.Redis, key_prefix: str = "auth_"):
        self._redis = redis_client
        self._key_prefix = key_prefix

    async def resolve(self, token: str | None) -> str:
        if not token:
            raise UnauthorizedError()
        user_id = await self._redis.get(f"{self._key_prefix}{token}")
        if not user_id:
            raise UnauthorizedError()
        return user_id.decode() if isinstance(user_id, bytes) else user_id


_redis_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
