from typing import Optional
from pydantic import Field
from khedive.schemas.base import CamelModel
from khedive.schemas.conversation import MessageResponse


class FileReference(CamelModel):
    """업로드 후 돌려받는 외부 파일 참조: 다음 턴에 그대로 첨부"""
    uri: str
    mime_type: str
    name: str


class ChatRequest(CamelModel):
    # 빈 메시지는 400으로 돌려주기 위해 스키마 단계에서 막지 않음 (서비스에서 검증)
    message: str = ""
    session_id: Optional[str] = None               # 기존 대화에 이어서 할 때
    persona: Optional[str] = None                  # "khedive" / "doctor" ...
    system_prompt: Optional[str] = None            # 지정 시 persona보다 우선
    file_reference: Optional[FileReference] = None
    # 첫 턴 재시도 시 대화 중복 생성 방지용 클라이언트 키
    idempotency_key: Optional[str] = Field(default=None, max_length=64)


class ChatResponse(CamelModel):
    assistant_message: MessageResponse
    session_id: str


class UploadResponse(CamelModel):
    success: bool
    file_uri: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    error: Optional[str] = None
