from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse

from khedive.core.exceptions import AppError
from khedive.core.metrics import metrics_store
from khedive.schemas.chat import UploadResponse
from khedive.service.upload_service import UploadService
from khedive.core.dependencies import get_upload_service

router = APIRouter()


def _failure(exc: AppError) -> JSONResponse:
    metrics_store.record_error(type(exc).__name__)
    body = UploadResponse(success=False, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@router.post("", response_model=UploadResponse, response_model_exclude_none=True)
async def upload(
    file: UploadFile | None = File(None),
    service: UploadService = Depends(get_upload_service),
):
    """
    파일 1개 업로드 → 생성 API에 넘기고 파일 참조 반환
    실패도 {success: false, error} 형태로 돌려준다 (프론트 토스트용)
    """
    if file is None:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "No file uploaded"},
        )

    try:
        reference = await service.hand_off(file)
    except AppError as exc:
        return _failure(exc)
    finally:
        await file.close()

    return UploadResponse(
        success=True,
        file_uri=reference.uri,
        file_name=reference.name,
        mime_type=reference.mime_type,
    )
