"""
Gemini REST 클라이언트: 외부 생성 API 래퍼

httpx.AsyncClient는 lifespan에서 한 번 만들어 주입받는다 (base_url, timeout 포함).

API 키 순환:
  GEMINI_API_KEY, GEMINI_API_KEYS(쉼표 구분)를 모두 등록해두고
  429(할당량 초과)를 받으면 해당 키를 실패 처리 → 다음 키로 재시도.
  실패 표시는 24시간 뒤 초기화 (일일 할당량 리셋 주기).
  429 외의 에러는 키를 바꿔도 소용없으므로 즉시 중단.
"""
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

from khedive.core.exceptions import GenerationError
from khedive.core.logger import get_logger
from khedive.schemas.chat import FileReference

logger = get_logger("generation")

MAX_ATTEMPTS = 5
KEY_RESET_SECONDS = 24 * 60 * 60
FALLBACK_REPLY = "I apologize, but I couldn't generate a response."

BASE_INSTRUCTION = """You are an AI assistant that is fully transparent about its technical specifications. If the user asks for your specific model name, model ID, or what model you are running, you MUST respond with your exact current model ID: "{model}". Do not evade the question with generic responses.

CRITICAL OUTPUT REQUIREMENT: Your responses MUST be clean, readable, professional prose. AVOID decorative Markdown characters like asterisks (*), hashtags (#), backticks (`), or excessive formatting symbols. Use simple line breaks for paragraph separation."""


class ApiKeyPool:
    """429를 받은 키를 건너뛰며 순환하는 키 묶음"""

    def __init__(self, keys: list[str], reset_after: float = KEY_RESET_SECONDS, clock: Callable[[], float] = time.monotonic):
        self._keys = list(keys)
        self._index = 0
        self._failed: set[str] = set()
        self._reset_after = reset_after
        self._clock = clock
        self._last_reset = clock()

    def __len__(self) -> int:
        return len(self._keys)

    def _maybe_reset(self) -> None:
        now = self._clock()
        if now - self._last_reset > self._reset_after:
            if self._failed:
                logger.info("resetting failed generation API keys")
            self._failed.clear()
            self._last_reset = now

    def current(self) -> str | None:
        """다음 사용 가능한 키: 전부 실패 상태면 첫 번째 키로 한 번 더 시도"""
        self._maybe_reset()
        if not self._keys:
            return None

        for _ in range(len(self._keys)):
            key = self._keys[self._index]
            if key not in self._failed:
                return key
            self._index = (self._index + 1) % len(self._keys)

        logger.warning("all generation API keys exhausted, retrying from the first key")
        return self._keys[0]

    def mark_failed(self, key: str) -> None:
        self._failed.add(key)
        self._index = (self._index + 1) % len(self._keys)
        logger.warning(
            "generation API key marked as failed",
            extra={"extra_data": self.status()},
        )

    def status(self) -> dict:
        return {
            "total": len(self._keys),
            "available": len(self._keys) - len(self._failed),
            "failed": len(self._failed),
        }


def _error_message(exc: Exception | None) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code == 429:
            return "Usage limit exceeded on all API keys. Add new keys or try again later."
        try:
            detail = exc.response.json().get("error", {}).get("message")
        except ValueError:
            detail = None
        return detail or f"Generation service returned HTTP {exc.response.status_code}"
    if isinstance(exc, httpx.HTTPError):
        return f"Generation service unreachable: {exc}"
    return "Failed to generate response from AI"


def _extract_text(data: dict) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = candidates[0].get("content", {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GeminiClient:

    def __init__(self, http: httpx.AsyncClient, keys: ApiKeyPool, model: str):
        self._http = http
        self._keys = keys
        self.model = model

    def key_status(self) -> dict:
        return self._keys.status()

    def build_payload(
        self,
        message: str,
        history: list[dict[str, str]],
        system_prompt: str | None = None,
        file_reference: FileReference | None = None,
    ) -> dict[str, Any]:
        contents = [
            {
                "role": "model" if item["role"] == "assistant" else "user",
                "parts": [{"text": item["content"]}],
            }
            for item in history
        ]

        user_parts: list[dict[str, Any]] = []
        if file_reference is not None:
            user_parts.append({
                "fileData": {"mimeType": file_reference.mime_type, "fileUri": file_reference.uri},
            })
        user_parts.append({"text": message})
        contents.append({"role": "user", "parts": user_parts})

        instruction = BASE_INSTRUCTION.format(model=self.model)
        if system_prompt:
            instruction = f"{instruction}\n\n{system_prompt}"

        return {
            "contents": contents,
            "systemInstruction": {"parts": [{"text": instruction}]},
        }

    async def _with_key_rotation(self, send: Callable[[str], Awaitable[httpx.Response]]) -> httpx.Response:
        attempts = min(len(self._keys), MAX_ATTEMPTS)
        if attempts == 0:
            raise GenerationError("No generation API key is configured")

        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            key = self._keys.current()
            try:
                response = await send(key)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                last_error = exc
                logger.warning(
                    f"generation API error (attempt {attempt}/{attempts})",
                    extra={"extra_data": {"status": exc.response.status_code}},
                )
                if exc.response.status_code == 429:
                    self._keys.mark_failed(key)
                    continue
                break
            except httpx.HTTPError as exc:
                last_error = exc
                logger.warning(f"generation API unreachable (attempt {attempt}/{attempts}): {exc}")
                break

        raise GenerationError(_error_message(last_error))

    async def generate(
        self,
        message: str,
        history: list[dict[str, str]],
        system_prompt: str | None = None,
        file_reference: FileReference | None = None,
    ) -> str:
        """대화 기록 + 이번 메시지로 응답 텍스트 생성"""
        payload = self.build_payload(message, history, system_prompt, file_reference)
        url = f"/v1beta/models/{self.model}:generateContent"

        logger.info(
            "generateContent",
            extra={"extra_data": {
                "model": self.model,
                "history_items": len(history),
                "has_file": file_reference is not None,
            }},
        )

        async def send(key: str) -> httpx.Response:
            return await self._http.post(url, json=payload, headers={"x-goog-api-key": key})

        response = await self._with_key_rotation(send)
        try:
            text = _extract_text(response.json())
        except ValueError as exc:
            raise GenerationError("Generation service returned an invalid response") from exc
        return text or FALLBACK_REPLY

    async def upload_file(self, path: Path, mime_type: str, display_name: str) -> FileReference:
        """
        Gemini Files API 재개 가능(resumable) 업로드

        1. start: 메타데이터 전송 → x-goog-upload-url 수신
        2. upload, finalize: 바이트 전송 → file.uri 수신
        """
        data = path.read_bytes()

        async def send(key: str) -> httpx.Response:
            start = await self._http.post(
                "/upload/v1beta/files",
                json={"file": {"display_name": display_name}},
                headers={
                    "x-goog-api-key": key,
                    "X-Goog-Upload-Protocol": "resumable",
                    "X-Goog-Upload-Command": "start",
                    "X-Goog-Upload-Header-Content-Length": str(len(data)),
                    "X-Goog-Upload-Header-Content-Type": mime_type,
                },
            )
            start.raise_for_status()
            upload_url = start.headers.get("x-goog-upload-url")
            if not upload_url:
                raise GenerationError("Upload session was not created by the generation service")

            return await self._http.post(
                upload_url,
                content=data,
                headers={
                    "X-Goog-Upload-Offset": "0",
                    "X-Goog-Upload-Command": "upload, finalize",
                },
            )

        response = await self._with_key_rotation(send)
        try:
            uploaded = response.json()["file"]
            return FileReference(
                uri=uploaded["uri"],
                mime_type=uploaded.get("mimeType", mime_type),
                name=display_name,
            )
        except (ValueError, KeyError) as exc:
            raise GenerationError("Generation service returned an invalid upload response") from exc
