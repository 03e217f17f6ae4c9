from datetime import datetime, timezone
from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from khedive.core.config import settings
from khedive.core.dependencies import init_connections, close_connections
from khedive.core.exceptions import register_exception_handlers
from khedive.core.metrics import RequestMetricsMiddleware, metrics_store
from khedive.router import auth, chat, conversation, upload

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await init_connections(app)
        yield
    finally:
        await close_connections(app)


def include_routes(app: FastAPI) -> FastAPI:
    """라우터/예외 핸들러/공용 엔드포인트 등록: 테스트 앱도 같은 구성을 쓴다"""
    register_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])
    app.include_router(upload.router, prefix="/api/upload", tags=["Upload"])
    app.include_router(conversation.router, prefix="/api/conversations", tags=["Conversations"])

    @app.get("/api/health", tags=["Monitoring"])
    async def health(request: Request):
        generator = getattr(request.app.state, "generation_client", None)
        return {
            "status": "ok",
            "model": settings.gemini_model,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "apiKeys": generator.key_status() if generator else None,
        }

    @app.get("/api/metrics", tags=["Monitoring"])
    async def get_metrics():
        """실시간 메트릭 조회: 총 요청 수, 응답 시간, 상태코드/에러 유형별 분포"""
        return metrics_store.summary()

    return app


app = FastAPI(
    title="Khedive Chat",
    description="Gemini 기반 채팅 백엔드: 대화 저장, 파일 핸드오프, 토큰 인증",
    version="0.1.0",
    lifespan=lifespan
)

# 미들웨어 등록 (모든 요청을 자동 계측)
app.add_middleware(RequestMetricsMiddleware)
include_routes(app)
