# app/domains/perf/models.py

"""
'perf' 도메인 (장비 성능/램프/Pre-Align)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
모든 테이블은 ITM Agent가 적재하며, 이 API는 조회만 수행합니다.
"""

from typing import Optional
from datetime import datetime

from sqlmodel import Field, SQLModel


# =============================================================================
# 1. public.eqp_perf 테이블 모델
# =============================================================================
class EqpPerf(SQLModel, table=True):
    """장비 PC의 CPU/메모리 사용률 기록입니다."""
    __tablename__ = "eqp_perf"
    __table_args__ = {'schema': 'public'}

    eqpid: str = Field(primary_key=True, max_length=50, description="장비 ID")
    serv_ts: datetime = Field(primary_key=True, description="서버 수집 시각 (현지 시각)")
    ts: Optional[datetime] = Field(default=None, description="장비 측 측정 시각")
    cpu_usage: Optional[float] = Field(default=None, description="CPU 사용률 (%)")
    mem_usage: Optional[float] = Field(default=None, description="메모리 사용률 (%)")


# =============================================================================
# 2. public.eqp_proc_perf 테이블 모델
# =============================================================================
class EqpProcPerf(SQLModel, table=True):
    """장비 PC의 프로세스별 자원 사용량 기록입니다."""
    __tablename__ = "eqp_proc_perf"
    __table_args__ = {'schema': 'public'}

    eqpid: str = Field(primary_key=True, max_length=50)
    serv_ts: datetime = Field(primary_key=True)
    process_name: str = Field(primary_key=True, max_length=100, description="프로세스 이름")
    ts: Optional[datetime] = Field(default=None)
    cpu_usage: Optional[float] = Field(default=None, description="CPU 사용률 (%)")
    memory_usage_mb: Optional[float] = Field(default=None, description="메모리 사용량 (MB)")


# =============================================================================
# 3. public.eqp_lamp_life 테이블 모델
# =============================================================================
class EqpLampLife(SQLModel, table=True):
    """장비 광원 램프의 사용 시간과 교체 이력입니다."""
    __tablename__ = "eqp_lamp_life"
    __table_args__ = {'schema': 'public'}

    eqpid: str = Field(primary_key=True, max_length=50)
    lamp_id: str = Field(primary_key=True, max_length=50, description="램프 ID")
    age_hour: Optional[float] = Field(default=None, description="누적 사용 시간")
    lifespan_hour: Optional[float] = Field(default=None, description="권장 수명 시간")
    last_changed: Optional[datetime] = Field(default=None, description="마지막 교체 일시")
    serv_ts: Optional[datetime] = Field(default=None)


# =============================================================================
# 4. public.plg_prealign 테이블 모델
# =============================================================================
class PlgPrealign(SQLModel, table=True):
    """웨이퍼 Pre-Align 편차(X/Y mm, Notch) 기록입니다."""
    __tablename__ = "plg_prealign"
    __table_args__ = {'schema': 'public'}

    eqpid: str = Field(primary_key=True, max_length=50)
    serv_ts: datetime = Field(primary_key=True)
    xmm: Optional[float] = Field(default=None)
    ymm: Optional[float] = Field(default=None)
    notch: Optional[float] = Field(default=None)
