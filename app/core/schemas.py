# app/core/schemas.py

"""
여러 도메인이 공유하는 Pydantic 기반 스키마입니다.
프론트엔드와의 호환을 위해 JSON 필드명은 camelCase를 사용합니다.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase alias를 사용하는 공통 베이스 모델입니다."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
