from datetime import datetime, timezone
from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    항상 timezone-aware UTC datetime을 주고받는 컬럼 타입

    SQLite는 timezone 정보를 버리고 naive 값을 돌려주기 때문에
    읽을 때 UTC를 다시 붙여준다. (PostgreSQL timestamptz는 그대로 통과)
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class TimestampMixin:
    """
    생성/수정 시간 공통 컬럼

    - default=utcnow: 앱 서버 UTC 기준 (메시지 timestamp와 같은 시계로 비교하기 위함)
    - server_default=func.now(): 앱을 거치지 않은 INSERT 대비
    - updated_at은 대화에 메시지가 붙을 때 저장소가 직접 올린다
    """

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )
