from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

class Settings(BaseSettings):
    # JWT 설정
    jwt_secret: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60
    jwt_refresh_expire_days: int = 7

    # Database
    # 운영: postgresql+asyncpg://..., 로컬/테스트: sqlite+aiosqlite:///...
    database_url: str = "sqlite+aiosqlite:///./khedive.db"
    db_echo: bool = False
    db_pool_size: int = 5
    db_max_overflow: int = 10
    # 서버 시작 시 테이블 자동 생성 (운영에서는 alembic 사용)
    db_create_all: bool = True

    # Redis (분당 쿼터 카운터)
    redis_url: str = "redis://redis:6379"
    chat_turns_per_minute: int = 20

    # Gemini
    gemini_api_key: str = ""
    # 추가 키 (쉼표 구분): 429 발생 시 순환 사용
    gemini_api_keys: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    gemini_model: str = "gemini-2.5-pro"
    gemini_timeout: float = 120.0

    # 파일 업로드
    upload_dir: str = "/tmp/uploads"
    upload_max_bytes: int = 20 * 1024 * 1024

    # 대화 제목 = 첫 메시지 앞 N글자
    title_max_length: int = 30

    log_level: str = "INFO"

    # Pydantic v2 방식: Config 내부 클래스 대신 model_config 사용
    model_config = SettingsConfigDict(
        # config.py -> core -> khedive -> 루트 아래의 .env 찾기
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,     # 환경변수 대소문자 무시
        protected_namespaces=(),
    )

    def gemini_key_list(self) -> list[str]:
        """GEMINI_API_KEY + GEMINI_API_KEYS 를 중복 없이 순서대로 합침"""
        keys = []
        for key in [self.gemini_api_key, *self.gemini_api_keys.split(",")]:
            key = key.strip()
            if key and key not in keys:
                keys.append(key)
        return keys


# 싱글톤 인스턴스: 앱 어디서든 import해서 사용
settings = Settings()
