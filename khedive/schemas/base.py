from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """와이어 포맷은 camelCase (sessionId, fileReference ...), 파이썬 안에서는 snake_case"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,  # SQLAlchemy 모델 객체를 Pydantic 모델로 자동 변환
    )
