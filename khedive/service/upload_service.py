"""
파일 업로드 핸드오프

multipart 파일 1개 → MIME/크기 검증 → 임시 파일 → 생성 API 업로드 → 파일 참조 반환
임시 파일은 성공이든 실패든 바로 지운다.
"""
import mimetypes
import uuid
from pathlib import Path

from fastapi import UploadFile

from khedive.core.exceptions import ValidationError
from khedive.core.logger import get_logger
from khedive.schemas.chat import FileReference
from khedive.service.generation_client import GeminiClient

logger = get_logger("upload")

ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
})

CHUNK_SIZE = 1024 * 1024


def resolve_mime_type(declared: str | None, filename: str) -> str:
    """선언된 Content-Type 우선, 없거나 octet-stream이면 파일 이름으로 추정"""
    declared = (declared or "").split(";")[0].strip().lower()
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def _too_large(max_bytes: int) -> ValidationError:
    return ValidationError(f"File too large. Maximum size is {max_bytes // (1024 * 1024)} MB.")


def validate_upload(mime_type: str, size: int | None, max_bytes: int) -> None:
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError("Invalid file type. Only images and PDFs are allowed.")
    if size is not None and size > max_bytes:
        raise _too_large(max_bytes)
    if size == 0:
        raise ValidationError("Uploaded file is empty")


class UploadService:

    def __init__(self, generator: GeminiClient, upload_dir: str | Path, max_bytes: int):
        self._generator = generator
        self._upload_dir = Path(upload_dir)
        self._max_bytes = max_bytes

    async def _spool(self, upload: UploadFile, target: Path) -> int:
        """청크 단위로 임시 파일에 기록: 한도를 넘는 순간 중단"""
        written = 0
        with target.open("wb") as out:
            while chunk := await upload.read(CHUNK_SIZE):
                written += len(chunk)
                if written > self._max_bytes:
                    raise _too_large(self._max_bytes)
                out.write(chunk)
        return written

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning(f"failed to delete temp upload {path}: {exc}")

    async def hand_off(self, upload: UploadFile) -> FileReference:
        filename = Path(upload.filename or "upload").name
        mime_type = resolve_mime_type(upload.content_type, filename)
        validate_upload(mime_type, upload.size, self._max_bytes)

        self._upload_dir.mkdir(parents=True, exist_ok=True)
        temp_path = self._upload_dir / f"{uuid.uuid4().hex}-{filename}"
        try:
            size = await self._spool(upload, temp_path)
            validate_upload(mime_type, size, self._max_bytes)
            logger.info(
                "handing off upload",
                extra={"extra_data": {"file_name": filename, "mime_type": mime_type, "size": size}},
            )
            reference = await self._generator.upload_file(temp_path, mime_type, filename)
        finally:
            self._discard(temp_path)

        return reference
