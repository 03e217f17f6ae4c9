"""
도메인 예외 + FastAPI 예외 핸들러

모든 실패 응답은 {"error": "..."} 형태의 기계가 읽을 수 있는 payload로 통일한다.

  ValidationError            → 400 (부작용 없음)
  ConversationNotFoundError  → 404
  StorageError               → 500 (자동 재시도 없음)
  GenerationError            → 500 (해당 턴은 저장되지 않음)
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from khedive.core.logger import get_logger
from khedive.core.metrics import metrics_store

logger = get_logger("errors")


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """잘못된 입력"""
    status_code = status.HTTP_400_BAD_REQUEST


class ConversationNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, conversation_id: str):
        super().__init__("Conversation not found")
        self.conversation_id = conversation_id


class StorageError(AppError):
    """DB 연결 실패, 제약조건 위반 등"""


class GenerationError(AppError):
    """외부 생성 API 실패: 메시지는 원본 에러 메시지를 그대로 담는다"""


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    metrics_store.record_error(type(exc).__name__)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra={"extra_data": {"path": request.url.path, "error_type": type(exc).__name__}},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    metrics_store.record_error("RequestValidationError")
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"{field}: {message}" if field else message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
