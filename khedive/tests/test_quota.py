"""
분당 채팅 쿼터 테스트: Redis는 AsyncMock으로 대체
"""
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException

from khedive.service.quota_service import QUOTA_TTL, check_quota, get_remaining_quota


@pytest.fixture
def redis():
    """INCR / EXPIRE / GET만 흉내내는 인메모리 카운터"""
    counters: dict[str, int] = {}
    mock = AsyncMock()

    async def incr(key):
        counters[key] = counters.get(key, 0) + 1
        return counters[key]

    async def get(key):
        value = counters.get(key)
        return str(value) if value is not None else None

    mock.incr.side_effect = incr
    mock.get.side_effect = get
    mock.counters = counters
    return mock


async def test_한도_안에서는_통과(redis):
    assert await check_quota(redis, "user:a", limit=3) == 1
    assert await check_quota(redis, "user:a", limit=3) == 2

    remaining = await get_remaining_quota(redis, "user:a", limit=3)
    assert remaining == {"caller": "user:a", "used": 2, "limit": 3, "remaining": 1}


async def test_한도_초과시_429(redis):
    for _ in range(2):
        await check_quota(redis, "ip:127.0.0.1", limit=2)

    with pytest.raises(HTTPException) as exc_info:
        await check_quota(redis, "ip:127.0.0.1", limit=2)

    assert exc_info.value.status_code == 429
    assert (await get_remaining_quota(redis, "ip:127.0.0.1", limit=2))["remaining"] == 0


async def test_호출자별로_따로_센다(redis):
    await check_quota(redis, "user:a", limit=1)

    assert await check_quota(redis, "user:b", limit=1) == 1
    assert (await get_remaining_quota(redis, "user:c", limit=5))["used"] == 0


async def test_첫_요청에만_TTL_설정(redis):
    await check_quota(redis, "user:ttl", limit=5)
    await check_quota(redis, "user:ttl", limit=5)

    (key,) = redis.counters
    assert key.startswith("quota:chat:user:ttl:")
    redis.expire.assert_awaited_once_with(key, QUOTA_TTL)
