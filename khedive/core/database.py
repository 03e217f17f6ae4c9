from collections.abc import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


# 1. Base 클래스: 모든 모델이 상속받는 부모
#    여기서 선언하면 순환 import 방지 가능
class Base(DeclarativeBase):
    pass


# 2. Async 엔진 생성
#    모듈 전역 엔진을 두지 않고 lifespan에서 만들어 app.state에 보관한다.
#    - pool_size: 커넥션 풀에 유지할 연결 수
#    - max_overflow: pool_size 초과 시 추가 허용 연결 수
def build_engine(database_url: str, echo: bool = False, pool_size: int = 5, max_overflow: int = 10) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # SQLite는 풀 크기 옵션을 받지 않음
        return create_async_engine(database_url, echo=echo)
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
    )


# 3. 세션 팩토리
#    - expire_on_commit=False: commit 후에도 객체 속성에 접근 가능
#      (True면 commit 후 속성 접근 시 LazyLoad → async에서 에러 발생)
def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_all(engine: AsyncEngine) -> None:
    """메타데이터 기준 테이블 생성 (이미 있으면 건너뜀)"""
    # 모델 import가 되어 있어야 metadata에 테이블이 등록됨
    from khedive.models import conversation, users  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# 4. DB 세션 DI (Dependency Injection)
#    FastAPI의 Depends()에서 사용: 인증 시 유저 조회용
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
