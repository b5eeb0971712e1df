# app/domains/ref/models.py

"""
'ref' 도메인 (장비/SDWT 기준 정보)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

기준 정보의 등록/수정은 관리자 화면(별도 서비스)이 담당하며,
이 API는 Site/SDWT 필터 및 장비 매칭을 위해 조회만 수행합니다.
"""

from typing import Optional
from datetime import datetime

from sqlmodel import Field, SQLModel


# =============================================================================
# 1. public.ref_sdwt 테이블 모델
# =============================================================================
class RefSdwt(SQLModel, table=True):
    """
    SDWT(부서/라인 단위)와 Site의 매핑 정보입니다.
    """
    __tablename__ = "ref_sdwt"
    __table_args__ = {'schema': 'public'}

    id: str = Field(primary_key=True, max_length=50, description="SDWT 레코드 ID")
    sdwt: Optional[str] = Field(default=None, max_length=50, description="SDWT 코드")
    site: Optional[str] = Field(default=None, max_length=50, description="Site 코드")
    is_use: Optional[str] = Field(default="Y", max_length=1, description="사용 여부 ('Y'/'N')")


# =============================================================================
# 2. public.ref_equipment 테이블 모델
# =============================================================================
class RefEquipment(SQLModel, table=True):
    """
    장비 기준 정보입니다. sdwt 컬럼으로 ref_sdwt와 연결됩니다.
    """
    __tablename__ = "ref_equipment"
    __table_args__ = {'schema': 'public'}

    eqpid: str = Field(primary_key=True, max_length=50, description="장비 ID")
    sdwt: Optional[str] = Field(default=None, max_length=50, description="소속 SDWT")
    type: Optional[str] = Field(default=None, max_length=50, description="장비 유형")
    last_update: Optional[datetime] = Field(default=None, description="마지막 수정 일시")
