from fastapi import APIRouter, Depends, HTTPException, status
from khedive.core.dependencies import get_store
from khedive.core.security import get_current_user
from khedive.models.conversation import Conversation
from khedive.models.users import User
from khedive.schemas.conversation import (
    ConversationDetail,
    ConversationRename,
    ConversationSummary,
    SharedConversation,
)
from khedive.service.conversation_store import ConversationStore

router = APIRouter()


async def _get_owned(store: ConversationStore, conversation_id: str, user: User) -> Conversation:
    """본인 대화만: 없거나 남의 것이면 404"""
    conversation = await store.get_conversation(conversation_id)
    if conversation is None or conversation.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


@router.get("", response_model=list[ConversationSummary])
async def list_conversations(
    current_user: User = Depends(get_current_user),
    store: ConversationStore = Depends(get_store),
):
    """내 대화 목록 조회 (최근 수정순)"""
    return await store.list_conversations(current_user.id)


@router.get("/shared/{share_token}", response_model=SharedConversation)
async def get_shared_conversation(share_token: str, store: ConversationStore = Depends(get_store)):
    """공유 토큰으로 대화 읽기 (인증 없음, 읽기 전용)"""
    conversation = await store.get_by_share_token(share_token)
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


@router.get("/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    store: ConversationStore = Depends(get_store),
):
    """대화 상세 조회 (메시지 전체 포함)"""
    return await _get_owned(store, conversation_id, current_user)


@router.put("/{conversation_id}", response_model=ConversationDetail)
async def rename_conversation(
    conversation_id: str,
    data: ConversationRename,
    current_user: User = Depends(get_current_user),
    store: ConversationStore = Depends(get_store),
):
    """대화 제목 변경"""
    await _get_owned(store, conversation_id, current_user)
    conversation = await store.rename_conversation(conversation_id, data.title)
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    store: ConversationStore = Depends(get_store),
):
    """대화 삭제 (메시지 포함)"""
    await _get_owned(store, conversation_id, current_user)
    if not await store.delete_conversation(conversation_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
