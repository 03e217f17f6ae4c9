import secrets
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from khedive.models.base import TimestampMixin, UTCDateTime, utcnow
from khedive.core.database import Base


def new_share_token() -> str:
    return secrets.token_urlsafe(16)


class Conversation(TimestampMixin, Base):
    """
    대화 세션: 하나의 채팅방 (sessionId == conversation.id)
    User : Conversation = 1 : N, 게스트 대화는 user_id가 NULL
    """
    __tablename__ = "conversations"
    __table_args__ = (
        # 멱등 키는 유저 단위로만 유일
        UniqueConstraint("user_id", "idempotency_key", name="uq_conversations_user_idempotency_key"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # 어떤 유저의 대화인지 (게스트면 NULL)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    # 대화 제목 (첫 질문을 자동으로 제목화)
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        default="New conversation",
    )

    # 외부 공유용 토큰
    share_token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        default=new_share_token,
    )

    # 클라이언트가 첫 턴에 보낸 멱등 키: 같은 유저가 같은 키로 재시도하면 기존 대화를 돌려줌
    idempotency_key: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )

    # ORM 관계: conversation.messages로 접근 가능
    # passive_deletes: DB의 ON DELETE CASCADE를 신뢰
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: [Message.created_at, Message.position],
    )

    @property
    def message_count(self) -> int:
        return len(self.messages)


class Message(Base):
    """
    개별 메시지: 대화 안의 한 턴의 절반
    Conversation : Message = 1 : N

    메시지는 수정되지 않으므로 created_at(= timestamp)만 가진다.
    """
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # "user" 또는 "assistant" (번갈아 나오는지는 강제하지 않음)
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    # 첨부 파일 정보 {"name": ..., "mime_type": ...}
    file_info: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
    )

    # 대화 내 순번 (1부터): 같은 timestamp일 때 생성 순서를 보장
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    # ORM 역참조
    conversation: Mapped["Conversation"] = relationship(
        back_populates="messages",
    )

    @property
    def timestamp(self) -> datetime:
        return self.created_at
