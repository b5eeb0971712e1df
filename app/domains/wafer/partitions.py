# app/domains/wafer/partitions.py

"""
스펙트럼 테이블의 월별 파티션을 결정하는 모듈입니다.

- 이번 달(settings.TIMEZONE 기준) 데이터는 plg_onto_spectrum 테이블에 있습니다.
- 그 이전 데이터는 plg_onto_spectrum_y{YYYY}m{MM} 테이블에 있습니다.
- 파티션이 없을 수 있으므로 조회 전에 information_schema로 존재 여부를 확인합니다.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import column, select, table
from sqlalchemy.sql.expression import FromClause
from sqlmodel.ext.asyncio.session import AsyncSession

from app.utils.dates import now_local, to_local_naive
from .models import PlgOntoSpectrum

logger = logging.getLogger(__name__)

SPECTRUM_SCHEMA = "public"
LIVE_SPECTRUM_TABLE = PlgOntoSpectrum.__tablename__

_information_schema_tables = table(
    "tables",
    column("table_schema"),
    column("table_name"),
    schema="information_schema",
)


def resolve_spectrum_partition(ts: datetime, now: Optional[datetime] = None) -> str:
    """
    주어진 시각의 스펙트럼이 저장된 테이블 이름을 반환합니다.
    'now'는 테스트를 위해 주입할 수 있으며, 생략하면 설정된 시간대의 현재 시각을 사용합니다.
    """
    target = to_local_naive(ts)
    current = to_local_naive(now) if now is not None else now_local()

    if (target.year, target.month) == (current.year, current.month):
        return LIVE_SPECTRUM_TABLE
    return f"{LIVE_SPECTRUM_TABLE}_y{target.year:04d}m{target.month:02d}"


def spectrum_table(name: str) -> FromClause:
    """
    테이블 이름에 해당하는 스펙트럼 테이블 객체를 반환합니다.
    파티션 테이블은 plg_onto_spectrum과 같은 컬럼 구성을 가진 동적 테이블 절로 만듭니다.
    """
    live = PlgOntoSpectrum.__table__
    if name == LIVE_SPECTRUM_TABLE:
        return live
    return table(
        name,
        *[column(col.name, col.type) for col in live.columns],
        schema=SPECTRUM_SCHEMA,
    )


async def partition_exists(db: AsyncSession, name: str) -> bool:
    """카탈로그에서 테이블 존재 여부를 확인합니다."""
    statement = (
        select(_information_schema_tables.c.table_name)
        .where(
            _information_schema_tables.c.table_schema == SPECTRUM_SCHEMA,
            _information_schema_tables.c.table_name == name,
        )
        .limit(1)
    )
    result = await db.execute(statement)
    exists = result.scalar_one_or_none() is not None
    if not exists:
        logger.warning("Spectrum partition %s.%s does not exist", SPECTRUM_SCHEMA, name)
    return exists
