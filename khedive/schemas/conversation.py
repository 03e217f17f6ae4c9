from typing import List, Literal, Optional
from datetime import datetime
from pydantic import ConfigDict, Field
from khedive.schemas.base import CamelModel


class FileInfo(CamelModel):
    """메시지에 첨부된 파일 요약 (바이트 없음)"""
    name: str
    mime_type: str


class MessageResponse(CamelModel):
    """개별 메시지 응답"""
    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    file_info: Optional[FileInfo] = None


class ConversationRename(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)


class ConversationSummary(CamelModel):
    """대화 목록용 (메시지 내용 제외, 가볍게)"""
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


class ConversationDetail(CamelModel):
    """대화 상세 조회 (메시지 전체 포함)"""
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    share_token: str
    messages: List[MessageResponse]


class SharedConversation(CamelModel):
    """공유 링크로 보는 대화: 소유자/공유 토큰 정보 없음"""
    title: str
    created_at: datetime
    messages: List[MessageResponse]
