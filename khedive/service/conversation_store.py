"""
Conversation Store: 대화/메시지 CRUD와 순서 보장

세션 팩토리(커넥션 풀)는 생성자로 주입받는다. 연산마다 독립 세션을 열고,
쓰기 연산은 하나의 트랜잭션으로 묶는다.

보장:
- 메시지 INSERT와 부모 대화의 updated_at 갱신은 같은 트랜잭션 (반쪽 커밋 없음)
- updated_at은 절대 감소하지 않고, 항상 마지막 메시지 timestamp 이상
- 삭제 시 메시지가 먼저/함께 지워짐 (고아 메시지 없음)
- DB 에러는 전부 StorageError로 올림: 재시도는 하지 않는다
"""
from datetime import timezone
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from khedive.core.exceptions import ConversationNotFoundError, StorageError
from khedive.core.logger import get_logger
from khedive.models.base import utcnow
from khedive.models.conversation import Conversation, Message
from khedive.repository import conversation_repo

logger = get_logger("store")


def _storage_error(action: str, exc: SQLAlchemyError) -> StorageError:
    logger.exception(
        f"storage failure while trying to {action}",
        extra={"extra_data": {"action": action, "error_type": type(exc).__name__}},
    )
    return StorageError(f"Storage failure while trying to {action}")


class ConversationStore:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_conversation(
        self, owner_id: str | None, title: str, idempotency_key: str | None = None
    ) -> Conversation:
        """
        새 대화 생성: 같은 유저가 같은 idempotency_key로 만든 대화가 있으면 INSERT 없이 그 대화 반환

        멱등 키는 (user_id, idempotency_key) 단위로 유일하다. 게스트는 주인이 없으므로 키를 저장하지 않는다.

        동시에 같은 키로 들어온 두 요청 중 진 쪽은 UNIQUE 위반 → 이긴 쪽 행을 다시 읽는다.
        """
        if owner_id is None:
            idempotency_key = None

        try:
            async with self._session_factory() as db, db.begin():
                if idempotency_key:
                    existing = await conversation_repo.find_by_idempotency_key(db, owner_id, idempotency_key)
                    if existing is not None:
                        logger.info(
                            "idempotent conversation reuse",
                            extra={"extra_data": {"session_id": existing.id}},
                        )
                        return existing

                conversation = Conversation(
                    user_id=owner_id,
                    title=title,
                    idempotency_key=idempotency_key,
                    messages=[],
                )
                await conversation_repo.add(db, conversation)
        except IntegrityError as exc:
            if idempotency_key:
                existing = await self._find_by_idempotency_key(owner_id, idempotency_key)
                if existing is not None:
                    return existing
            raise _storage_error("create a conversation", exc) from exc
        except SQLAlchemyError as exc:
            raise _storage_error("create a conversation", exc) from exc

        logger.info(
            "conversation created",
            extra={"extra_data": {"session_id": conversation.id, "user_id": owner_id}},
        )
        return conversation

    async def _find_by_idempotency_key(self, owner_id: str, idempotency_key: str) -> Conversation | None:
        try:
            async with self._session_factory() as db:
                return await conversation_repo.find_by_idempotency_key(db, owner_id, idempotency_key)
        except SQLAlchemyError as exc:
            raise _storage_error("look up an idempotency key", exc) from exc

    async def list_conversations(self, owner_id: str | None) -> list[Conversation]:
        """updated_at 내림차순, 각 대화의 메시지는 오래된 순"""
        try:
            async with self._session_factory() as db:
                return await conversation_repo.find_by_user_id(db, owner_id)
        except SQLAlchemyError as exc:
            raise _storage_error("list conversations", exc) from exc

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        try:
            async with self._session_factory() as db:
                return await conversation_repo.find_with_messages(db, conversation_id)
        except SQLAlchemyError as exc:
            raise _storage_error("load a conversation", exc) from exc

    async def get_by_share_token(self, share_token: str) -> Conversation | None:
        try:
            async with self._session_factory() as db:
                return await conversation_repo.find_by_share_token(db, share_token)
        except SQLAlchemyError as exc:
            raise _storage_error("load a shared conversation", exc) from exc

    async def get_messages(self, conversation_id: str) -> list[Message]:
        try:
            async with self._session_factory() as db:
                return await conversation_repo.find_messages(db, conversation_id)
        except SQLAlchemyError as exc:
            raise _storage_error("load messages", exc) from exc

    async def append_message(self, conversation_id: str, message: Message) -> None:
        await self.append_messages(conversation_id, [message])

    async def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        """
        메시지 여러 건을 순서대로 붙이고 부모 대화의 updated_at을 올린다: 전부 또는 전무

        부모 행을 FOR UPDATE로 잠가 position 채번이 겹치지 않게 한다 (지원하는 DB에서).
        """
        try:
            async with self._session_factory() as db, db.begin():
                conversation = await conversation_repo.find_by_id(db, conversation_id, for_update=True)
                if conversation is None:
                    raise ConversationNotFoundError(conversation_id)

                position = await conversation_repo.last_position(db, conversation_id)
                newest = conversation.updated_at
                for message in messages:
                    position += 1
                    message.conversation_id = conversation_id
                    message.position = position
                    if message.created_at is None:
                        message.created_at = utcnow()
                    elif message.created_at.tzinfo is None:
                        message.created_at = message.created_at.replace(tzinfo=timezone.utc)
                    await conversation_repo.add_message(db, message)
                    newest = max(newest, message.created_at)

                conversation.updated_at = max(utcnow(), newest)
        except SQLAlchemyError as exc:
            raise _storage_error("append messages", exc) from exc

    async def rename_conversation(self, conversation_id: str, title: str) -> Conversation | None:
        try:
            async with self._session_factory() as db, db.begin():
                conversation = await conversation_repo.find_by_id(db, conversation_id, for_update=True)
                if conversation is None:
                    return None
                conversation.title = title
                conversation.updated_at = max(utcnow(), conversation.updated_at)
                return await conversation_repo.find_with_messages(db, conversation_id)
        except SQLAlchemyError as exc:
            raise _storage_error("rename a conversation", exc) from exc

    async def delete_conversation(self, conversation_id: str) -> bool:
        """대화 삭제: 실제로 지워진 행이 있으면 True"""
        try:
            async with self._session_factory() as db, db.begin():
                deleted = await conversation_repo.delete_with_messages(db, conversation_id)
        except SQLAlchemyError as exc:
            raise _storage_error("delete a conversation", exc) from exc

        if deleted:
            logger.info("conversation deleted", extra={"extra_data": {"session_id": conversation_id}})
        return deleted
