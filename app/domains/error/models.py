# app/domains/error/models.py

"""
'error' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

from typing import Optional
from datetime import datetime

from sqlmodel import Field, SQLModel


# =============================================================================
# 1. public.plg_error 테이블 모델
# =============================================================================
class PlgError(SQLModel, table=True):
    """장비가 보고한 에러 기록입니다. time_stamp는 장비 현지 시각입니다."""
    __tablename__ = "plg_error"
    __table_args__ = {'schema': 'public'}

    eqpid: str = Field(primary_key=True, max_length=50, description="장비 ID")
    time_stamp: datetime = Field(primary_key=True, description="에러 발생 시각")
    error_id: str = Field(primary_key=True, max_length=50, description="에러 코드")
    error_label: Optional[str] = Field(default=None, max_length=200, description="에러 이름")
    error_desc: Optional[str] = Field(default=None, description="에러 상세 설명")
    millisecond: Optional[int] = Field(default=None)
    extra_message_1: Optional[str] = Field(default=None)
    extra_message_2: Optional[str] = Field(default=None)
    serv_ts: Optional[datetime] = Field(default=None, description="서버 수집 시각")
