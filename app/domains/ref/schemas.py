# app/domains/ref/schemas.py

"""
'ref' 도메인 (장비/SDWT 기준 정보)의 응답 스키마를 정의하는 모듈입니다.
"""

from typing import Optional
from datetime import datetime

from sqlmodel import SQLModel
from pydantic import Field


class EquipmentResponse(SQLModel):
    """장비 기준 정보를 클라이언트에 응답하기 위한 모델입니다."""
    eqpid: str = Field(..., description="장비 ID")
    sdwt: Optional[str] = Field(None, description="소속 SDWT")
    type: Optional[str] = Field(None, description="장비 유형")
    last_update: Optional[datetime] = Field(None, description="마지막 수정 일시")

    class Config:
        from_attributes = True  # ORM 모드 활성화
