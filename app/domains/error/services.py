# app/domains/error/services.py

"""
'error' 도메인의 서비스 모듈입니다. 조회 결과를 요약/추이/목록 응답으로 조립합니다.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from app.utils.dates import parse_int, resolve_date_range
from . import crud as error_crud

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20


def _conditions(start_date, end_date, site, sdwt) -> list:
    start_at, end_at = resolve_date_range(start_date, end_date)
    return error_crud.error.scope_conditions(start_at, end_at, site=site, sdwt=sdwt)


def resolve_paging(page: Optional[str], limit: Optional[str]) -> tuple:
    """(skip, limit)을 계산합니다. 1 미만이거나 잘못된 값은 기본값(1페이지, 20건)을 사용합니다."""
    page_number = parse_int(page)
    if page_number is None or page_number < 1:
        page_number = DEFAULT_PAGE
    page_size = parse_int(limit)
    if page_size is None or page_size < 1:
        page_size = DEFAULT_LIMIT
    return (page_number - 1) * page_size, page_size


async def get_summary(
    db: AsyncSession,
    *,
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Dict[str, Any]:
    conditions = _conditions(start_date, end_date, site, sdwt)
    total, eqp_count = await error_crud.error.get_totals(db, conditions)

    summary: Dict[str, Any] = {
        "total_error_count": total,
        "error_eqp_count": eqp_count,
        "top_error_id": "-",
        "top_error_count": 0,
        "top_error_label": "Unknown",
        "error_count_by_eqp": [],
    }
    if total == 0:
        return summary

    top = await error_crud.error.get_top_error(db, conditions)
    if top is not None:
        summary["top_error_id"] = top["error_id"]
        summary["top_error_count"] = top["count"]
        summary["top_error_label"] = top["error_label"] or "Unknown"
    summary["error_count_by_eqp"] = [dict(row) for row in await error_crud.error.get_counts_by_eqp(db, conditions)]
    return summary


async def get_trend(
    db: AsyncSession,
    *,
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    conditions = _conditions(start_date, end_date, site, sdwt)
    return [dict(row) for row in await error_crud.error.get_daily_counts(db, conditions)]


async def get_logs(
    db: AsyncSession,
    *,
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
) -> Dict[str, Any]:
    """에러 목록을 최신순 페이지로 조회합니다. Site를 알 수 없는 장비는 '-'로 표시합니다."""
    skip, page_size = resolve_paging(page, limit)
    conditions = _conditions(start_date, end_date, site, sdwt)
    total, rows = await error_crud.error.get_logs(db, conditions, skip=skip, limit=page_size)

    items = []
    for record, record_site in rows:
        item = record.model_dump()
        item["site"] = record_site or "-"
        items.append(item)
    logger.debug("Error logs: %d of %d (skip %d)", len(items), total, skip)
    return {"items": items, "total_items": total}
