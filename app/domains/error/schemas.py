# app/domains/error/schemas.py

"""
'error' 도메인의 응답 스키마입니다. JSON 필드명은 camelCase입니다.
"""

from typing import List, Optional
import datetime as dt

from pydantic import Field

from app.core.schemas import CamelModel


class EqpErrorCount(CamelModel):
    eqpid: str
    count: int


class ErrorSummary(CamelModel):
    """
    에러 요약입니다. 에러가 없으면 topErrorId는 '-', topErrorLabel은 'Unknown'입니다.
    """
    total_error_count: int = 0
    error_eqp_count: int = 0
    top_error_id: str = "-"
    top_error_count: int = 0
    top_error_label: str = "Unknown"
    error_count_by_eqp: List[EqpErrorCount] = Field(default_factory=list)


class ErrorTrendItem(CamelModel):
    date: dt.date
    count: int


class ErrorLogItem(CamelModel):
    eqpid: str
    time_stamp: dt.datetime
    error_id: str
    error_label: Optional[str] = None
    error_desc: Optional[str] = None
    millisecond: Optional[int] = None
    extra_message_1: Optional[str] = None
    extra_message_2: Optional[str] = None
    serv_ts: Optional[dt.datetime] = None
    site: str = "-"


class ErrorLogPage(CamelModel):
    items: List[ErrorLogItem] = Field(default_factory=list)
    total_items: int = 0
