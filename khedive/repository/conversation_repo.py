"""
대화/메시지 쿼리 모음

commit은 하지 않는다: 트랜잭션 경계는 ConversationStore가 잡는다.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload
from khedive.models.conversation import Conversation, Message


async def add(db: AsyncSession, conversation: Conversation) -> Conversation:
    """대화 세션 INSERT (flush까지만)"""
    db.add(conversation)
    await db.flush()
    return conversation


async def find_by_id(db: AsyncSession, conversation_id: str, for_update: bool = False) -> Conversation | None:
    """대화 단건 조회 (메시지 제외): for_update면 행 잠금"""
    stmt = select(Conversation).where(Conversation.id == conversation_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def find_with_messages(db: AsyncSession, conversation_id: str) -> Conversation | None:
    """대화 상세 조회 (메시지 포함, 오래된 순)"""
    result = await db.execute(
        select(Conversation)
        .options(selectinload(Conversation.messages))
        .where(Conversation.id == conversation_id)
    )
    return result.scalar_one_or_none()


async def find_by_share_token(db: AsyncSession, share_token: str) -> Conversation | None:
    result = await db.execute(
        select(Conversation)
        .options(selectinload(Conversation.messages))
        .where(Conversation.share_token == share_token)
    )
    return result.scalar_one_or_none()


async def find_by_idempotency_key(db: AsyncSession, owner_id: str, idempotency_key: str) -> Conversation | None:
    """멱등 키는 유저 단위: 같은 키라도 남의 대화는 찾지 않는다"""
    result = await db.execute(
        select(Conversation)
        .options(selectinload(Conversation.messages))
        .where(
            Conversation.user_id == owner_id,
            Conversation.idempotency_key == idempotency_key,
        )
    )
    return result.scalar_one_or_none()


async def find_by_user_id(db: AsyncSession, user_id: str | None) -> list[Conversation]:
    """유저의 대화 목록 조회 (최근 수정순, 메시지 포함)"""
    owner_filter = Conversation.user_id.is_(None) if user_id is None else Conversation.user_id == user_id
    result = await db.execute(
        select(Conversation)
        .options(selectinload(Conversation.messages))
        .where(owner_filter)
        .order_by(Conversation.updated_at.desc(), Conversation.created_at.desc())
    )
    return list(result.scalars().all())


async def find_messages(db: AsyncSession, conversation_id: str) -> list[Message]:
    """대화의 메시지 직접 조회 (오래된 순)"""
    result = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at, Message.position)
    )
    return list(result.scalars().all())


async def last_position(db: AsyncSession, conversation_id: str) -> int:
    """대화 내 마지막 메시지 순번 (없으면 0)"""
    result = await db.execute(
        select(func.coalesce(func.max(Message.position), 0))
        .where(Message.conversation_id == conversation_id)
    )
    return result.scalar_one()


async def add_message(db: AsyncSession, message: Message) -> Message:
    """메시지 한 건 INSERT (flush까지만)"""
    db.add(message)
    await db.flush()
    return message


async def delete_with_messages(db: AsyncSession, conversation_id: str) -> bool:
    """메시지 → 대화 순서로 삭제 (FK cascade가 꺼진 SQLite에서도 고아 메시지 없음)"""
    await db.execute(delete(Message).where(Message.conversation_id == conversation_id))
    result = await db.execute(delete(Conversation).where(Conversation.id == conversation_id))
    return result.rowcount > 0
