import pytest

from app.services.auth import RedisCredentialResolver
from app.services.errors import UnauthorizedError


class FakeRedis:
    def __init__(self, data):
        self.data = data
        self.keys = []

    async def get(self, key):
        self.keys.append(key)
        return self.data.get(key)


@pytest.mark.asyncio
async def test_resolves_auth_key():
    redis = FakeRedis({"auth_abc": "user-1"})

    assert await RedisCredentialResolver(redis).resolve("abc") == "user-1"
    assert redis.keys == ["auth_abc"]


@pytest.mark.asyncio
async def test_decodes_bytes_values():
    assert await RedisCredentialResolver(FakeRedis({"auth_abc": b"user-1"})).resolve("abc") == "user-1"


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "unknown"])
async def test_unknown_or_missing_token(token):
    with pytest.raises(UnauthorizedError):
        await RedisCredentialResolver(FakeRedis({})).resolve(token)
