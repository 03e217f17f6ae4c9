import uuid
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from khedive.models.base import TimestampMixin
from khedive.core.database import Base


class User(TimestampMixin, Base):
    """
    사용자 모델

    - id: UUID v4 사용 (auto-increment 대비 예측 불가)
    - email: 로그인 식별자, 유일
    - hashed_password: 평문 비밀번호를 절대 저장하지 않음
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # 표시 이름
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,          # 로그인 시 빈번하게 조회 → 인덱스 필수
        nullable=False,
    )

    # bcrypt 해시는 보통 60자, 여유있게 255로 설정
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
