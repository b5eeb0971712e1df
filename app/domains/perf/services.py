# app/domains/perf/services.py

"""
'perf' 도메인의 서비스 모듈입니다.

프로세스 성능은 요청된 간격(초) 단위 구간으로 묶어 평균을 냅니다.
구간 경계는 DB에 저장된 현지 시각(naive)을 기준으로 계산합니다.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.domains.wafer.filters import split_csv
from app.utils.dates import parse_int, resolve_date_range
from . import crud as perf_crud

logger = logging.getLogger(__name__)

ITM_AGENT_DEFAULT_INTERVAL = 60
PROCESS_VALUE_FIELDS = ("cpu_usage", "memory_usage_mb")

_EPOCH = datetime(1970, 1, 1)


# =============================================================================
# 1. 구간 평균
# =============================================================================
def bucket_start(value: datetime, interval: int) -> datetime:
    """value가 속한 interval초 구간의 시작 시각을 반환합니다."""
    seconds = int((value - _EPOCH).total_seconds())
    return _EPOCH + timedelta(seconds=seconds - seconds % interval)


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def average_by_interval(
    rows: Iterable[Mapping[str, Any]],
    interval: int,
    *,
    group_fields: Sequence[str] = ("eqpid", "process_name"),
    value_fields: Sequence[str] = PROCESS_VALUE_FIELDS,
) -> List[Dict[str, Any]]:
    """
    행을 (구간 시작, group_fields) 단위로 묶어 value_fields의 평균을 계산합니다.
    None 값은 평균에서 제외하며, 구간의 값이 모두 None이면 결과도 None입니다.
    결과는 구간 시작 시각 오름차순, 같은 구간 안에서는 그룹 키 순으로 정렬합니다.
    """
    buckets: Dict[tuple, Dict[str, List[float]]] = {}
    for row in rows:
        key = (bucket_start(row["serv_ts"], interval),) + tuple(row[name] for name in group_fields)
        sums = buckets.setdefault(key, {name: [] for name in value_fields})
        for name in value_fields:
            if row[name] is not None:
                sums[name].append(float(row[name]))

    items = []
    for key in sorted(buckets, key=lambda k: (k[0],) + tuple(str(part) for part in k[1:])):
        item: Dict[str, Any] = {"serv_ts": key[0]}
        item.update(zip(group_fields, key[1:]))
        item.update({name: _mean(values) for name, values in buckets[key].items()})
        items.append(item)
    return items


# =============================================================================
# 2. 조회 서비스
# =============================================================================
async def get_performance_history(
    db: AsyncSession, *, start_date: Optional[str], end_date: Optional[str], eqpids: Optional[str]
) -> List[Any]:
    eqp_ids = split_csv(eqpids)
    if not eqp_ids:
        return []
    start_at, end_at = resolve_date_range(start_date, end_date)
    return await perf_crud.eqp_perf.get_history(db, eqp_ids=eqp_ids, start_at=start_at, end_at=end_at)


async def get_process_history(
    db: AsyncSession,
    *,
    start_date: Optional[str],
    end_date: Optional[str],
    eqp_id: Optional[str],
    interval: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    한 장비의 프로세스 성능 기록을 조회합니다.
    interval(초)이 양수이면 프로세스별 구간 평균으로 묶어 반환합니다.
    """
    if not eqp_id:
        return []
    start_at, end_at = resolve_date_range(start_date, end_date)
    rows = await perf_crud.process_perf.get_rows(db, start_at=start_at, end_at=end_at, eqp_id=eqp_id)

    seconds = parse_int(interval)
    if seconds is not None and seconds > 0:
        return average_by_interval(rows, seconds)
    return [dict(row) for row in rows]


async def get_itm_agent_trend(
    db: AsyncSession,
    *,
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    eqp_id: Optional[str] = None,
    interval: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """ITM Agent 프로세스의 CPU/메모리 사용 추이를 구간 평균으로 조회합니다. (기본 60초)"""
    seconds = parse_int(interval)
    if seconds is None or seconds <= 0:
        seconds = ITM_AGENT_DEFAULT_INTERVAL

    start_at, end_at = resolve_date_range(start_date, end_date)
    rows = await perf_crud.process_perf.get_rows(
        db,
        start_at=start_at,
        end_at=end_at,
        eqp_id=eqp_id,
        process_name=perf_crud.ITM_AGENT_PROCESS,
        site=site,
        sdwt=sdwt,
    )
    logger.debug("ITM Agent trend: %d raw rows, interval %ds", len(rows), seconds)
    return average_by_interval(rows, seconds)


async def get_lamp_life(db: AsyncSession, *, site: Optional[str] = None, sdwt: Optional[str] = None) -> List[Any]:
    return await perf_crud.lamp_life.get_by_scope(db, site=site, sdwt=sdwt)


async def get_prealign_trend(
    db: AsyncSession,
    *,
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    eqp_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Pre-Align 편차 추이를 조회합니다. 값이 없으면 0으로 채웁니다.
    차트용 데이터이므로 DB 오류 시 빈 목록을 반환합니다.
    """
    start_at, end_at = resolve_date_range(start_date, end_date)
    try:
        rows = await perf_crud.prealign.get_trend(
            db, start_at=start_at, end_at=end_at, eqp_id=eqp_id, site=site, sdwt=sdwt
        )
    except SQLAlchemyError:
        logger.exception("Error fetching prealign trend")
        return []

    return [
        {
            "timestamp": row["serv_ts"],
            "eqp_id": row["eqpid"],
            "xmm": row["xmm"] or 0,
            "ymm": row["ymm"] or 0,
            "notch": row["notch"] or 0,
        }
        for row in rows
    ]
