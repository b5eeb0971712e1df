# app/domains/wafer/filters.py

"""
웨이퍼 조회 조건(WHERE 절)을 만드는 모듈입니다.

조건 생성 규칙
- Lot ID가 있으면 기간 조건을 적용하지 않습니다. (Lot이 조회 범위를 결정)
- Lot ID가 없으면 항상 기간 조건을 적용하며, 기간이 없거나 잘못된 값이면 최근 7일을 사용합니다.
- 문자열/숫자 조건은 모두 정확히 일치(=)로 비교합니다.
- 고유 범위(unique scope) 조회는 장비 ID가 필수이며, 없으면 None(조회 안 함)을 반환합니다.

모든 조건은 SQLAlchemy 표현식으로 만들어 바인드 파라미터로 전달됩니다.
"""

from datetime import timedelta
from typing import Any, Iterable, List, Optional

from sqlalchemy import Integer, and_, cast, column, func, table
from sqlalchemy.sql.expression import ColumnElement, FromClause

from app.utils.dates import parse_db_timestamp, parse_int, resolve_date_range
from .models import PlgWfFlat
from .schemas import WaferQueryParams

DISTINCT_LIMIT = 5000
COMPARISON_LIMIT = 5000
OPTICAL_LIMIT = 2000
TIME_TOLERANCE = timedelta(seconds=2)

# distinct-values의 field 파라미터 별칭 -> 실제 컬럼명
DISTINCT_FIELD_ALIASES = {
    "lotids": "lotid",
    "cassettercps": "cassettercp",
    "stagercps": "stagercp",
    "stageRcps": "stagercp",
    "stagegroups": "stagegroup",
    "films": "film",
    "waferids": "waferid",
}

# Flat 테이블 필터 파라미터 -> 컬럼명
_FLAT_FILTER_COLUMNS = (
    ("eqp_id", "eqpid"),
    ("lot_id", "lotid"),
    ("cassette_rcp", "cassettercp"),
    ("stage_rcp", "stagercp"),
    ("stage_group", "stagegroup"),
    ("film", "film"),
)


def _flat() -> FromClause:
    return PlgWfFlat.__table__


def flat_table(column_names: Iterable[str]) -> FromClause:
    """
    실제 컬럼 목록으로 plg_wf_flat 테이블 절을 만듭니다.
    모델에 없는 동적 메트릭 컬럼을 조회할 때 사용하며, 모델 컬럼은 타입을 그대로 유지합니다.
    """
    known = _flat().columns
    names = sorted(set(column_names) | set(known.keys()))
    return table(
        PlgWfFlat.__tablename__,
        *[column(name, known[name].type) if name in known else column(name) for name in names],
        schema="public",
    )


def normalize_wafer_id(value: Any) -> Optional[int]:
    """
    Wafer ID를 정수로 정규화합니다. ("01" -> 1, "3" -> 3, 3 -> 3)
    스펙트럼 테이블은 문자열, Flat 테이블은 정수로 저장하므로 비교 전 항상 정수로 맞춥니다.
    """
    return parse_int(value)


def split_csv(value: Optional[str]) -> List[str]:
    """콤마 구분 문자열을 공백 제거한 목록으로 변환합니다. 빈 항목은 버립니다."""
    if not value:
        return []
    return [item.strip() for item in str(value).split(",") if item.strip()]


def resolve_distinct_field(field: Optional[str]) -> Optional[str]:
    """distinct-values의 field 값을 실제 컬럼명으로 변환합니다. 알 수 없는 컬럼이면 None."""
    if not field:
        return None
    name = DISTINCT_FIELD_ALIASES.get(field, field)
    if name not in _flat().columns:
        return None
    return name


# =============================================================================
# 1. 기간 조건
# =============================================================================
def date_range_conditions(
    date_column: ColumnElement, params: WaferQueryParams
) -> List[ColumnElement]:
    """
    기간 조건을 만듭니다. Lot ID가 있으면 빈 목록을 반환합니다.
    기간 파라미터가 없거나 잘못된 경우 최근 7일(00:00:00.000 ~ 23:59:59.999)을 사용합니다.
    """
    if params.lot_id:
        return []
    start_at, end_at = resolve_date_range(params.start_date, params.end_date)
    return [date_column >= start_at, date_column <= end_at]


# =============================================================================
# 2. Flat 테이블 조건
# =============================================================================
def flat_filter_conditions(
    params: WaferQueryParams,
    *,
    flat: Optional[FromClause] = None,
    skip_column: Optional[str] = None,
) -> List[ColumnElement]:
    """
    Flat 테이블의 일반 필터 조건입니다. (장비/Lot/레시피/Film/Wafer + 기간)
    skip_column에 해당하는 컬럼의 조건은 제외합니다. (distinct 값 조회 시 자기 자신 필터 제외)
    """
    flat = flat if flat is not None else _flat()
    conditions: List[ColumnElement] = []

    for attribute, column_name in _FLAT_FILTER_COLUMNS:
        value = getattr(params, attribute)
        if value and column_name != skip_column:
            conditions.append(flat.c[column_name] == value)

    wafer_id = normalize_wafer_id(params.wafer_id)
    if wafer_id is not None and skip_column != "waferid":
        conditions.append(flat.c.waferid == wafer_id)

    conditions.extend(date_range_conditions(flat.c.serv_ts, params))
    return conditions


def unique_scope_conditions(
    params: WaferQueryParams,
    *,
    flat: Optional[FromClause] = None,
    ignore_wafer: bool = False,
) -> Optional[List[ColumnElement]]:
    """
    하나의 측정 건(또는 Lot)을 특정하는 조건입니다. 통계, 포인트 데이터, Residual 등에서 사용합니다.

    - 장비 ID가 없으면 None을 반환합니다. 호출 측은 조회하지 않고 빈 결과를 반환해야 합니다.
    - dateTime(또는 servTs)이 있으면 datetime ±2초 + Lot/Wafer 조건만 사용합니다.
    - 없으면 Lot/Wafer/레시피/Film 조건을 사용하고, Lot이 없을 때만 serv_ts 기간 조건을 더합니다.
    """
    if not params.eqp_id:
        return None

    flat = flat if flat is not None else _flat()
    conditions: List[ColumnElement] = [flat.c.eqpid == params.eqp_id]
    wafer_id = None if ignore_wafer else normalize_wafer_id(params.wafer_id)

    target_time = parse_db_timestamp(params.date_time) or parse_db_timestamp(params.serv_ts)
    if target_time is not None:
        target_time = target_time.replace(microsecond=0)
        conditions.append(flat.c.datetime >= target_time - TIME_TOLERANCE)
        conditions.append(flat.c.datetime <= target_time + TIME_TOLERANCE)
        if params.lot_id:
            conditions.append(flat.c.lotid == params.lot_id)
        if wafer_id is not None:
            conditions.append(flat.c.waferid == wafer_id)
        return conditions

    if not params.lot_id:
        # 명시된 경계만 적용합니다. (값이 잘못되었으면 기본 기간의 해당 경계)
        start_at, end_at = resolve_date_range(params.start_date, params.end_date)
        if params.start_date:
            conditions.append(flat.c.serv_ts >= start_at)
        if params.end_date:
            conditions.append(flat.c.serv_ts <= end_at)
    else:
        conditions.append(flat.c.lotid == params.lot_id)

    if wafer_id is not None:
        conditions.append(flat.c.waferid == wafer_id)
    for attribute, column_name in _FLAT_FILTER_COLUMNS[2:]:
        value = getattr(params, attribute)
        if value:
            conditions.append(flat.c[column_name] == value)
    return conditions


# =============================================================================
# 3. 스펙트럼-Flat 조인 조건
# =============================================================================
def spectrum_wafer_key(spectrum: FromClause) -> ColumnElement:
    """스펙트럼 테이블의 문자열 Wafer ID를 정수로 변환하는 표현식입니다."""
    return cast(func.trim(spectrum.c.waferid), Integer)


def wafer_join_condition(spectrum: FromClause, flat: Optional[FromClause] = None) -> ColumnElement:
    """
    스펙트럼과 Flat 데이터를 (장비, Lot, Wafer, Point)로 연결하는 조인 조건입니다.
    - 장비 ID, Point: 정확히 일치
    - Lot ID: 앞뒤 공백 제거 후 비교
    - Wafer ID: 스펙트럼의 문자열 값을 정수로 변환 후 비교 ("01" == 1)
    """
    flat = flat if flat is not None else _flat()
    return and_(
        spectrum.c.eqpid == flat.c.eqpid,
        func.trim(spectrum.c.lotid) == func.trim(flat.c.lotid),
        spectrum_wafer_key(spectrum) == flat.c.waferid,
        spectrum.c.point == flat.c.point,
    )


def spectrum_filter_conditions(
    params: WaferQueryParams,
    spectrum: FromClause,
    *,
    flat: Optional[FromClause] = None,
) -> List[ColumnElement]:
    """
    스펙트럼-Flat 조인 쿼리의 필터 조건입니다.
    장비/Lot은 스펙트럼 기준, 레시피/Film은 Flat 기준이며, 기간은 스펙트럼 ts에 적용합니다.
    """
    flat = flat if flat is not None else _flat()
    conditions: List[ColumnElement] = []
    if params.eqp_id:
        conditions.append(spectrum.c.eqpid == params.eqp_id)
    if params.lot_id:
        conditions.append(spectrum.c.lotid == params.lot_id)
    for attribute, column_name in _FLAT_FILTER_COLUMNS[2:]:
        value = getattr(params, attribute)
        if value:
            conditions.append(flat.c[column_name] == value)
    conditions.extend(date_range_conditions(spectrum.c.ts, params))
    return conditions
