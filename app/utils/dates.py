# app/utils/dates.py

"""
벽시계(wall-clock) 기준 날짜 계산을 위한 유틸리티 모듈입니다.

DB의 수집 시각 컬럼(serv_ts, datetime, ts)은 시간대 정보가 없는 현지 시각으로 저장됩니다.
따라서 '지금', '오늘', '이번 달'은 설정된 시간대(settings.TIMEZONE)에서 계산한 뒤
tzinfo를 제거한 naive datetime으로 비교합니다. UTC에 고정 오프셋을 더하지 않습니다.
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Tuple
from zoneinfo import ZoneInfo

from app.core.config import settings

DEFAULT_RANGE_DAYS = 7


def local_zone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def now_local() -> datetime:
    """설정된 시간대의 현재 시각을 naive datetime으로 반환합니다."""
    return datetime.now(local_zone()).replace(tzinfo=None)


def to_local_naive(value: datetime) -> datetime:
    """aware datetime은 설정 시간대로 변환 후 tzinfo를 제거하고, naive는 그대로 둡니다."""
    if value.tzinfo is None:
        return value
    return value.astimezone(local_zone()).replace(tzinfo=None)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    쿼리 파라미터로 들어온 날짜/일시 값을 datetime으로 변환합니다.
    해석할 수 없는 값은 예외 대신 None을 반환합니다.

    - datetime / date 객체는 그대로 사용합니다.
    - ISO 8601 문자열('2025-03-01', '2025-03-01T10:00:00', '...Z')을 지원합니다.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)

    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return to_local_naive(parsed)


def parse_db_timestamp(value: Any) -> Optional[datetime]:
    """
    클라이언트가 되돌려 보낸 DB 시각 값(serv_ts, datetime, ts)을 해석합니다.
    DB 값은 현지 시각 그대로 저장되어 있으므로, 'Z' 등 시간대 표기가 붙어 있어도 변환하지 않고 제거합니다.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    text = str(value).strip() if value is not None else ""
    if not text:
        return None
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1]
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


def resolve_date_range(
    start: Any = None, end: Any = None, *, now: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """
    조회 기간을 정규화합니다.

    - 시작일이 없거나 잘못된 값이면 '오늘 - 7일'을 사용합니다.
    - 종료일이 없거나 잘못된 값이면 '오늘'을 사용합니다.
    - 시작은 00:00:00.000, 종료는 23:59:59.999로 맞춥니다.
    """
    current = now or now_local()

    start_at = parse_datetime(start)
    if start_at is None:
        start_at = current - timedelta(days=DEFAULT_RANGE_DAYS)

    end_at = parse_datetime(end)
    if end_at is None:
        end_at = current

    return start_of_day(start_at), end_of_day(end_at)


def parse_int(value: Any) -> Optional[int]:
    """정수로 해석할 수 없는 값은 None으로 처리합니다."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
