"""
외부 자원 수명주기 + FastAPI Depends()용 getter

모듈 전역 클라이언트를 두지 않고 lifespan에서 만든 자원을 app.state에 보관한다.
테스트는 app.state를 직접 채우거나 dependency_overrides로 갈아끼운다.
"""
import httpx
import redis.asyncio as airedis
from fastapi import Depends, FastAPI, Request

from khedive.core.config import settings
from khedive.core.database import build_engine, build_session_factory, create_all
from khedive.core.logger import get_logger
from khedive.core.security import get_optional_user
from khedive.models.users import User
from khedive.service import quota_service
from khedive.service.chat_service import ChatSessionRouter
from khedive.service.conversation_store import ConversationStore
from khedive.service.generation_client import ApiKeyPool, GeminiClient
from khedive.service.upload_service import UploadService

logger = get_logger("lifecycle")


# === FastAPI Depends()용 함수 ===

def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} is not initialised; check application startup.")
    return value


def get_store(request: Request) -> ConversationStore:
    return _state(request, "store")


def get_generation_client(request: Request) -> GeminiClient:
    return _state(request, "generation_client")


def get_redis(request: Request) -> airedis.Redis:
    return _state(request, "redis")


def get_chat_router(
    store: ConversationStore = Depends(get_store),
    generator: GeminiClient = Depends(get_generation_client),
) -> ChatSessionRouter:
    return ChatSessionRouter(store, generator, title_max_length=settings.title_max_length)


def get_upload_service(generator: GeminiClient = Depends(get_generation_client)) -> UploadService:
    return UploadService(generator, settings.upload_dir, settings.upload_max_bytes)


def quota_caller(request: Request, user: User | None) -> str:
    if user is not None:
        return f"user:{user.id}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


async def enforce_chat_quota(
    request: Request,
    user: User | None = Depends(get_optional_user),
    redis: airedis.Redis = Depends(get_redis),
) -> None:
    await quota_service.check_quota(redis, quota_caller(request, user), settings.chat_turns_per_minute)


# === 수명주기 관리 (main.py의 lifespan에서 호출) ===

async def init_connections(app: FastAPI) -> None:
    engine = build_engine(
        settings.database_url,
        echo=settings.db_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    if settings.db_create_all:
        await create_all(engine)

    session_factory = build_session_factory(engine)

    http_client = httpx.AsyncClient(
        base_url=settings.gemini_base_url,
        timeout=settings.gemini_timeout,  # LLM 응답은 오래 걸릴 수 있음
    )
    keys = settings.gemini_key_list()
    if not keys:
        logger.error("no GEMINI_API_KEY configured; chat turns will fail")

    redis_client = airedis.from_url(
        settings.redis_url,
        decode_responses=True,  # bytes → str 자동 변환
    )
    # 연결 확인
    await redis_client.ping()

    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.store = ConversationStore(session_factory)
    app.state.http_client = http_client
    app.state.generation_client = GeminiClient(http_client, ApiKeyPool(keys), settings.gemini_model)
    app.state.redis = redis_client

    logger.info(
        "connections ready",
        extra={"extra_data": {"model": settings.gemini_model, "api_keys": len(keys)}},
    )


async def close_connections(app: FastAPI) -> None:
    redis_client = getattr(app.state, "redis", None)
    if redis_client is not None:
        await redis_client.aclose()
    http_client = getattr(app.state, "http_client", None)
    if http_client is not None:
        await http_client.aclose()
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        # DB 연결 풀 정리
        await engine.dispose()

    logger.info("all connections closed")
