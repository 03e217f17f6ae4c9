"""
pytest 공통 설정

- DB: 테스트마다 임시 SQLite 파일 + NullPool (매 세션마다 새 커넥션 → 이벤트 루프 간 공유 문제 없음)
- 생성 API: FakeGenerator로 교체 (네트워크 없음)
- 쿼터(Redis): HTTP 테스트에서는 no-op으로 교체, quota_service 자체는 AsyncMock으로 따로 테스트
"""
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from starlette.testclient import TestClient

from khedive.core.config import settings
from khedive.core.database import build_session_factory, create_all
from khedive.core.dependencies import enforce_chat_quota
from khedive.core.exceptions import GenerationError
from khedive.core.security import create_access_token
from khedive.main import include_routes
from khedive.schemas.chat import FileReference
from khedive.service.conversation_store import ConversationStore


class FakeGenerator:
    """GeminiClient 대역: 호출 기록을 남기고 정해진 응답을 돌려준다"""

    def __init__(self):
        self.calls = []
        self.uploads = []
        self.fail_with: str | None = None

    def key_status(self) -> dict:
        return {"total": 1, "available": 1, "failed": 0}

    async def generate(self, message, history, system_prompt=None, file_reference=None) -> str:
        self.calls.append({
            "message": message,
            "history": list(history),
            "system_prompt": system_prompt,
            "file_reference": file_reference,
        })
        if self.fail_with:
            raise GenerationError(self.fail_with)
        return f"reply to: {message}"

    async def upload_file(self, path: Path, mime_type: str, display_name: str) -> FileReference:
        self.uploads.append({
            "path": path,
            "existed": path.exists(),
            "size": path.stat().st_size if path.exists() else None,
        })
        if self.fail_with:
            raise GenerationError(self.fail_with)
        return FileReference(
            uri=f"https://files.example/{uuid.uuid4().hex}",
            mime_type=mime_type,
            name=display_name,
        )


def sqlite_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
async def store(tmp_path):
    """비동기 단위 테스트용 Conversation Store"""
    engine = create_async_engine(sqlite_url(tmp_path / "store.db"), poolclass=NullPool)
    await create_all(engine)
    yield ConversationStore(build_session_factory(engine))
    await engine.dispose()


def build_test_app(engine, generator) -> FastAPI:
    """테스트 전용 앱 (미들웨어 없이, Redis 없이)"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await create_all(engine)
        app.state.session_factory = build_session_factory(engine)
        app.state.store = ConversationStore(app.state.session_factory)
        app.state.generation_client = generator
        yield
        await engine.dispose()

    app = include_routes(FastAPI(lifespan=lifespan))

    async def no_quota():
        return None

    app.dependency_overrides[enforce_chat_quota] = no_quota
    return app


@pytest.fixture
def upload_dir(tmp_path, monkeypatch) -> Path:
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "upload_dir", str(path))
    return path


@pytest.fixture
def client(tmp_path, generator, upload_dir):
    """동기식 테스트 클라이언트: with 블록 안에서 lifespan(테이블 생성)이 돈다"""
    engine = create_async_engine(sqlite_url(tmp_path / "app.db"), poolclass=NullPool)
    with TestClient(build_test_app(engine, generator)) as c:
        yield c


def _signup(client, name: str = "tester") -> dict:
    unique = uuid.uuid4().hex[:6]
    response = client.post("/api/auth/signup", json={
        "name": f"{name}_{unique}",
        "email": f"{name}_{unique}@example.com",
        "password": "Test1234!",
    })
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def auth_headers(client):
    """인증된 헤더: 회원가입 후 JWT 직접 생성"""
    user_id = _signup(client)["user"]["id"]
    token = create_access_token(user_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(client):
    user_id = _signup(client, "other")["user"]["id"]
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def signup(client):
    """회원가입 헬퍼: 응답 JSON(유저 + 토큰)을 돌려준다"""
    return lambda name="tester": _signup(client, name)
