# app/domains/perf/schemas.py

"""
'perf' 도메인의 응답 스키마입니다. JSON 필드명은 camelCase입니다.
"""

from typing import Optional
from datetime import datetime

from app.core.schemas import CamelModel


class PerfHistoryItem(CamelModel):
    eqpid: str
    serv_ts: datetime
    cpu_usage: Optional[float] = None
    mem_usage: Optional[float] = None


class ProcessPerfItem(CamelModel):
    """
    프로세스 성능 항목입니다.
    구간 평균(interval) 조회 시 serv_ts는 구간 시작 시각, 값은 구간 평균입니다.
    """
    eqpid: str
    serv_ts: datetime
    process_name: str
    cpu_usage: Optional[float] = None
    memory_usage_mb: Optional[float] = None


class LampLifeItem(CamelModel):
    eqpid: str
    lamp_id: str
    age_hour: Optional[float] = None
    lifespan_hour: Optional[float] = None
    last_changed: Optional[datetime] = None
    serv_ts: Optional[datetime] = None


class PrealignTrendItem(CamelModel):
    """Pre-Align 트렌드 항목입니다. 값이 없으면 0으로 채웁니다."""
    timestamp: datetime
    eqp_id: str
    xmm: float = 0
    ymm: float = 0
    notch: float = 0
