from fastapi import APIRouter, Depends, Request
from redis.asyncio import Redis

from khedive.core.config import settings
from khedive.core.dependencies import enforce_chat_quota, get_chat_router, get_redis, quota_caller
from khedive.core.security import get_optional_user
from khedive.models.users import User
from khedive.schemas.chat import ChatRequest, ChatResponse
from khedive.schemas.conversation import MessageResponse
from khedive.service.chat_service import ChatSessionRouter
from khedive.service.quota_service import get_remaining_quota

router = APIRouter()


@router.post("", response_model=ChatResponse, dependencies=[Depends(enforce_chat_quota)])
async def chat_turn(
    request: ChatRequest,
    current_user: User | None = Depends(get_optional_user),
    chat_router: ChatSessionRouter = Depends(get_chat_router),
):
    """
    채팅 한 턴:
    1. (선택) JWT 인증: 토큰이 없으면 게스트
    2. 분당 쿼터 확인
    3. 세션 결정 → 기록 조회 → 생성 API 호출 → 두 메시지 저장
    """
    result = await chat_router.handle_chat_turn(
        request.message,
        session_id=request.session_id,
        owner_id=current_user.id if current_user else None,
        persona=request.persona,
        system_prompt=request.system_prompt,
        file_reference=request.file_reference,
        idempotency_key=request.idempotency_key,
    )
    return ChatResponse(
        assistant_message=MessageResponse.model_validate(result.assistant_message),
        session_id=result.session_id,
    )


@router.get("/quota")
async def chat_quota(
    request: Request,
    current_user: User | None = Depends(get_optional_user),
    redis: Redis = Depends(get_redis),
):
    """이번 분에 남은 채팅 턴 수"""
    return await get_remaining_quota(redis, quota_caller(request, current_user), settings.chat_turns_per_minute)
