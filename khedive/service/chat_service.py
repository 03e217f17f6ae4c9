"""
Chat Session Router: 한 번의 채팅 턴(요청 → 응답)을 조율

흐름:
  1. 메시지 검증 (비어 있으면 ValidationError, 아무 부작용 없음)
  2. 세션 결정: sessionId가 있으면 로드, 없으면 새 대화 생성 (nonexistent → existing, 딱 한 번)
     멱등 키로 찾은 대화에 이미 응답이 있으면 그 응답을 그대로 반환 (재생성 없음)
  3. 기존 메시지 기록을 오래된 순으로 {role, content} 변환
  4. 생성 API 호출: 실패하면 GenerationError, 이번 턴은 아무것도 저장하지 않음
  5. user / assistant 메시지를 한 트랜잭션으로 저장
  6. assistant 메시지 + sessionId 반환
"""
import time
import uuid
from dataclasses import dataclass

from khedive.core.exceptions import ConversationNotFoundError, ValidationError
from khedive.core.logger import get_logger
from khedive.models.base import utcnow
from khedive.models.conversation import Conversation, Message
from khedive.schemas.chat import FileReference
from khedive.service.conversation_store import ConversationStore
from khedive.service.generation_client import GeminiClient
from khedive.service.persona import resolve_system_prompt

logger = get_logger("chat")


@dataclass
class ChatTurnResult:
    assistant_message: Message
    session_id: str


class ChatSessionRouter:

    def __init__(self, store: ConversationStore, generator: GeminiClient, title_max_length: int = 30):
        self._store = store
        self._generator = generator
        self._title_max_length = title_max_length

    async def _resolve_session(
        self, session_id: str | None, owner_id: str | None, message: str, idempotency_key: str | None
    ) -> Conversation:
        if session_id:
            conversation = await self._store.get_conversation(session_id)
            # 남의 대화는 존재 자체를 숨긴다 (게스트 대화는 id를 아는 사람이면 이어갈 수 있음)
            if conversation is None or (conversation.user_id is not None and conversation.user_id != owner_id):
                raise ConversationNotFoundError(session_id)
            return conversation

        # 첫 질문 앞 N글자를 대화 제목으로 사용
        title = message.strip()[: self._title_max_length]
        return await self._store.create_conversation(owner_id, title, idempotency_key=idempotency_key)

    async def handle_chat_turn(
        self,
        message: str,
        session_id: str | None = None,
        owner_id: str | None = None,
        persona: str | None = None,
        system_prompt: str | None = None,
        file_reference: FileReference | None = None,
        idempotency_key: str | None = None,
    ) -> ChatTurnResult:
        if not message or not message.strip():
            raise ValidationError("Message is required")

        start = time.perf_counter()
        conversation = await self._resolve_session(session_id, owner_id, message, idempotency_key)

        # 멱등 키로 재시도한 첫 턴이 이미 끝났으면 다시 생성하지 않고 저장된 응답을 돌려준다
        if session_id is None and conversation.messages and conversation.messages[-1].role == "assistant":
            logger.info(
                "chat turn replayed",
                extra={"extra_data": {"session_id": conversation.id}},
            )
            return ChatTurnResult(assistant_message=conversation.messages[-1], session_id=conversation.id)

        history = [{"role": m.role, "content": m.content} for m in conversation.messages]

        reply = await self._generator.generate(
            message,
            history,
            system_prompt=resolve_system_prompt(persona, system_prompt),
            file_reference=file_reference,
        )

        sent_at = utcnow()
        user_message = Message(
            id=str(uuid.uuid4()),
            role="user",
            content=message,
            created_at=sent_at,
            file_info=(
                {"name": file_reference.name, "mime_type": file_reference.mime_type}
                if file_reference is not None else None
            ),
        )
        assistant_message = Message(
            id=str(uuid.uuid4()),
            role="assistant",
            content=reply,
            created_at=max(utcnow(), sent_at),
        )
        await self._store.append_messages(conversation.id, [user_message, assistant_message])

        logger.info(
            "chat turn completed",
            extra={"extra_data": {
                "session_id": conversation.id,
                "new_session": session_id is None,
                "history_items": len(history),
                "persona": persona,
                "duration_ms": round((time.perf_counter() - start) * 1000, 1),
            }},
        )
        return ChatTurnResult(assistant_message=assistant_message, session_id=conversation.id)
