from datetime import datetime, timezone
from fastapi import HTTPException, status
from redis.asyncio import Redis

# 쿼터 키 TTL (초): 2분 (여유분 포함)
QUOTA_TTL = 120

def _make_quota_key(caller: str) -> str:
    now = datetime.now(timezone.utc).strftime("%Y%m%d%H%M")
    return f"quota:chat:{caller}:{now}"


async def check_quota(redis: Redis, caller: str, limit: int) -> int:
    """
    분당 채팅 턴 쿼터 확인 + 카운트 증가

    caller: 로그인 유저면 "user:<id>", 게스트면 "ip:<host>"
    Returns:
        현재 사용 횟수 (증가 후)
    Raises:
        429 Too Many Requests: 쿼터 초과 시
    """
    key = _make_quota_key(caller)

    # INCR: 키가 없으면 1로 생성, 있으면 +1: 원자적 연산
    current = await redis.incr(key)

    # 첫 요청이면 TTL 설정 (2분 후 자동 삭제)
    if current == 1:
        await redis.expire(key, QUOTA_TTL)

    if current > limit:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit of {limit} messages per minute exceeded. Please try again shortly."
        )
    return current


async def get_remaining_quota(redis: Redis, caller: str, limit: int) -> dict:
    """
    남은 쿼터 조회
    Returns:
        {"caller": "user:abc", "used": 7, "limit": 20, "remaining": 13}
    """
    used = await redis.get(_make_quota_key(caller))
    used = int(used) if used else 0

    return {
        "caller": caller,
        "used": used,
        "limit": limit,
        "remaining": max(limit - used, 0),
    }
