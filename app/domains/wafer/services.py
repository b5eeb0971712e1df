# app/domains/wafer/services.py

"""
'wafer' 도메인의 분석 로직을 담당하는 서비스 모듈입니다.

- 통계(Statistics), 스펙트럼 트렌드, Golden 스펙트럼, Residual Map, Uniformity, 장비 비교, 광학 트렌드.
- 대시보드 차트용 데이터이므로 DB 오류 시 예외 대신 빈 결과를 반환합니다. (오류는 로그로 남김)
- 설정 테이블의 메트릭 이름은 실제 컬럼 목록과 교집합한 뒤에만 쿼리에 사용합니다.
"""

import json
import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.utils.dates import parse_db_timestamp, parse_int, resolve_date_range
from . import crud as wafer_crud
from . import filters
from .partitions import partition_exists, resolve_spectrum_partition
from .schemas import WaferQueryParams

logger = logging.getLogger(__name__)

INTENSITY_SCALE = 100  # 반사율(0~1) -> %

BASELINE_STAT_METRICS = ["t1", "gof", "z", "srvisz", "mse", "thickness"]
STAT_EXCLUDED_COLUMNS = {
    "x", "y", "diex", "diey", "dierow", "diecol", "dienum", "diepointtag",
    "point", "lotid", "waferid", "eqpid", "serv_ts", "datetime",
}
TREND_DEFAULT_METRICS = ["t1", "gof", "mse"]
COMPARISON_DEFAULT_METRICS = ["t1", "gof", "mse", "thickness"]

# point-data 표에서 제외하는 식별 컬럼과 헤더 표시 순서
POINT_DATA_EXCLUDED_COLUMNS = {
    "eqpid", "lotid", "waferid", "serv_ts", "cassettercp", "stagercp", "stagegroup", "film", "datetime",
}
POINT_DATA_HEADER_ORDER = [
    "point", "mse", "t1", "gof", "x", "y", "diex", "diey",
    "dierow", "diecol", "dienum", "diepointtag", "z", "srvisz",
]

MODEL_CURVE_LINE_STYLE = {"type": "dashed", "width": 2, "color": "#ef4444"}


# =============================================================================
# 1. 순수 계산 함수
# =============================================================================
def _unique(names: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(names))


def _to_float(value: Any) -> float:
    return float(value) if value is not None else 0.0


def scale_curve(wavelengths: Optional[Sequence[float]], values: Optional[Sequence[float]]) -> List[List[float]]:
    """[파장, 강도 x 100] 쌍 목록을 만듭니다. 두 배열의 길이가 다르면 빈 목록입니다."""
    if not wavelengths or not values or len(wavelengths) != len(values):
        return []
    return [[wl, value * INTENSITY_SCALE] for wl, value in zip(wavelengths, values)]


def build_metric_stats(row: Dict[str, Any], metrics: Sequence[str]) -> Dict[str, Dict[str, float]]:
    """
    집계 결과 행({metric}_max, _min, _mean, _std)으로 메트릭별 통계를 만듭니다.
    max가 NULL인 메트릭(데이터 없음)은 결과에서 제외합니다.
    """
    stats: Dict[str, Dict[str, float]] = {}
    for name in metrics:
        if row.get(f"{name}_max") is None:
            continue

        max_value = _to_float(row.get(f"{name}_max"))
        min_value = _to_float(row.get(f"{name}_min"))
        mean = _to_float(row.get(f"{name}_mean"))
        std = _to_float(row.get(f"{name}_std"))  # 1건이면 STDDEV_SAMP는 NULL
        value_range = max_value - min_value

        stats[name] = {
            "max": max_value,
            "min": min_value,
            "range": value_range,
            "mean": mean,
            "stdDev": std,
            "percentStdDev": (std / mean) * 100 if mean != 0 else 0,
            "percentNonU": (value_range / (2 * mean)) * 100 if mean != 0 else 0,
        }
    return stats


def compute_residuals(rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """값이 있는 포인트의 평균을 구하고, 각 포인트의 (값 - 평균)을 반환합니다."""
    valid = [row for row in rows if row.get("value") is not None]
    if not valid:
        return []

    mean = sum(float(row["value"]) for row in valid) / len(valid)
    return [
        {
            "point": row.get("point"),
            "x": row.get("x"),
            "y": row.get("y"),
            "residual": float(row["value"]) - mean,
        }
        for row in valid
    ]


def summarize_spectrum(wavelengths: Optional[Sequence[float]], values: Optional[Sequence[float]]) -> Dict[str, float]:
    """
    스펙트럼의 광학 지표를 계산합니다.
    totalIntensity(합), peakIntensity(최대), peakWavelength(최대값의 파장), darkNoise(최소).
    값 배열이 비어 있으면 모두 0입니다.
    """
    values = list(values or [])
    wavelengths = list(wavelengths or [])
    if not values:
        return {"totalIntensity": 0, "peakIntensity": 0, "peakWavelength": 0, "darkNoise": 0}

    peak_index = max(range(len(values)), key=values.__getitem__)
    peak_wavelength = wavelengths[peak_index] if peak_index < len(wavelengths) else None
    return {
        "totalIntensity": sum(values),
        "peakIntensity": values[peak_index],
        "peakWavelength": peak_wavelength or 0,
        "darkNoise": min(values),
    }


def group_uniformity_rows(rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """(waferid, point, x, y, dierow, diecol, value) 행을 Wafer별로 묶습니다. 입력 순서를 유지합니다."""
    grouped: Dict[int, List[Dict[str, Any]]] = {}
    for row in rows:
        wafer_id = filters.normalize_wafer_id(row.get("waferid"))
        if wafer_id is None:
            continue
        grouped.setdefault(wafer_id, []).append({
            "point": row.get("point"),
            "value": row.get("value"),
            "x": row.get("x"),
            "y": row.get("y"),
            "dieRow": row.get("dierow"),
            "dieCol": row.get("diecol"),
        })
    return [{"waferId": wafer_id, "dataPoints": points} for wafer_id, points in grouped.items()]


def order_point_headers(names: Iterable[str]) -> List[str]:
    """고정 표시 순서의 컬럼을 먼저, 나머지는 알파벳순으로 정렬합니다."""
    order = {name: index for index, name in enumerate(POINT_DATA_HEADER_ORDER)}
    return sorted(names, key=lambda name: (0, order[name.lower()], "") if name.lower() in order else (1, 0, name.lower()))


def build_trend_series(
    row: Dict[str, Any], *, metrics: Sequence[str], point: int, lot_id: Optional[str]
) -> Dict[str, Any]:
    """조인 결과 1행을 트렌드 시리즈로 변환합니다."""
    meta: Dict[str, Any] = {
        "timestamp": row.get("serv_ts"),
        "scanTs": row.get("ts"),
        "eqpId": row.get("eqpid"),
        "rawWaferId": row.get("waferid"),
        "lotId": row.get("lotid") or lot_id,
    }
    for name in metrics:
        meta[name] = row.get(f"metric_{name}")

    wafer_id = filters.normalize_wafer_id(row.get("waferid"))
    return {
        "name": f"W{row.get('waferid')}",
        "waferId": wafer_id,
        "pointId": point,
        "meta": meta,
        "data": scale_curve(row.get("wavelengths"), row.get("values")),
    }


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


# =============================================================================
# 2. 메트릭 컬럼 결정
# =============================================================================
async def _included_metric_names(db: AsyncSession) -> List[str]:
    """설정 테이블의 메트릭 이름(소문자)을 조회합니다. 실패하면 빈 목록을 반환합니다."""
    try:
        names = await wafer_crud.metric_config.get_included_names(db)
    except SQLAlchemyError as e:
        logger.warning("Failed to fetch metric config, using defaults: %s", e)
        await db.rollback()
        return []
    return [name.lower() for name in names if name]


async def resolve_metric_columns(
    db: AsyncSession, *, defaults: Sequence[str], always: Sequence[str] = ()
) -> List[str]:
    """
    설정 테이블의 메트릭(없으면 defaults)에 always를 더한 뒤, 실제 컬럼과 교집합합니다.
    """
    configured = await _included_metric_names(db)
    candidates = _unique([*(configured or defaults), *always])
    live_columns = await wafer_crud.get_live_columns(db)
    return [name for name in candidates if name in live_columns]


async def resolve_stat_columns(db: AsyncSession) -> List[str]:
    """통계 대상 컬럼: (기본 목록 ∪ 설정) ∩ 실제 컬럼 - 식별/위치 컬럼."""
    configured = await _included_metric_names(db)
    live_columns = await wafer_crud.get_live_columns(db)
    return [
        name for name in _unique([*BASELINE_STAT_METRICS, *configured])
        if name not in STAT_EXCLUDED_COLUMNS and name in live_columns
    ]


# =============================================================================
# 3. 필터 / 목록 조회
# =============================================================================
async def get_distinct_values(db: AsyncSession, params: WaferQueryParams) -> List[str]:
    column_name = filters.resolve_distinct_field(params.field)
    if column_name is None:
        logger.warning("Unknown distinct-values field: %s", params.field)
        return []

    try:
        values = await wafer_crud.flat.get_distinct_values(db, column_name=column_name, params=params)
    except SQLAlchemyError as e:
        logger.warning("Error fetching distinct %s: %s", params.field, e)
        return []
    return [text for text in (_stringify(value) for value in values) if text != ""]


async def get_distinct_points(db: AsyncSession, params: WaferQueryParams) -> List[str]:
    try:
        points = await wafer_crud.spectrum.get_distinct_points(db, params=params)
    except SQLAlchemyError:
        logger.exception("Error fetching distinct points")
        return []
    logger.debug("Found %d points for lot %s", len(points), params.lot_id)
    return [str(point) for point in points]


async def get_flat_data(db: AsyncSession, params: WaferQueryParams) -> Dict[str, Any]:
    page = max(parse_int(params.page) or 0, 0)
    page_size = parse_int(params.page_size)
    if page_size is None or page_size <= 0:
        page_size = 20

    try:
        total, rows = await wafer_crud.flat.get_flat_page(db, params=params, skip=page * page_size, limit=page_size)
    except SQLAlchemyError:
        logger.exception("Error fetching flat data")
        return {"totalItems": 0, "items": []}

    items = [
        {
            "eqpId": row["eqpid"],
            "lotId": row["lotid"],
            "waferId": row["waferid"],
            "servTs": row["serv_ts"],
            "dateTime": row["datetime"],
            "cassetteRcp": row["cassettercp"],
            "stageRcp": row["stagercp"],
            "stageGroup": row["stagegroup"],
            "film": row["film"],
        }
        for row in rows
    ]
    return {"totalItems": total, "items": items}


async def get_point_data(db: AsyncSession, params: WaferQueryParams) -> Dict[str, Any]:
    """고유 범위의 모든 포인트 행을 표 형태(headers, data)로 반환합니다."""
    empty = {"headers": [], "data": []}
    if filters.unique_scope_conditions(params) is None:
        return empty

    try:
        live_columns = await wafer_crud.get_live_columns(db)
        if not live_columns:
            return empty
        flat = filters.flat_table(live_columns)
        rows = await wafer_crud.flat.get_scope_rows(
            db,
            flat=flat,
            conditions=filters.unique_scope_conditions(params, flat=flat),
            columns=sorted(live_columns),
        )
    except SQLAlchemyError:
        logger.exception("Error in point data")
        return empty

    if not rows:
        return empty

    visible = {
        key for row in rows for key, value in row.items()
        if key not in POINT_DATA_EXCLUDED_COLUMNS and value is not None
    }
    headers = order_point_headers(visible)
    return {"headers": headers, "data": [[row.get(header) for header in headers] for row in rows]}


# =============================================================================
# 4. 통계 / 분석
# =============================================================================
async def get_statistics(db: AsyncSession, params: WaferQueryParams) -> Dict[str, Dict[str, float]]:
    if filters.unique_scope_conditions(params) is None:
        return {}

    try:
        metrics = await resolve_stat_columns(db)
        if not metrics:
            return {}
        flat = filters.flat_table(metrics)
        row = await wafer_crud.flat.aggregate_metrics(
            db, flat=flat, conditions=filters.unique_scope_conditions(params, flat=flat), metrics=metrics
        )
    except SQLAlchemyError:
        logger.exception("Error in statistics")
        return {}
    return build_metric_stats(row, metrics)


async def _metric_rows(
    db: AsyncSession, params: WaferQueryParams, *, columns: Sequence[str], order_by: Sequence[str], ignore_wafer: bool
) -> Optional[List[Dict[str, Any]]]:
    """
    params.metric(기본 t1) 값을 'value' 키로 포함한 고유 범위 행을 조회합니다.
    메트릭이 실제 컬럼에 없으면 None을 반환합니다.
    """
    metric = (params.metric or "t1").strip().lower()
    live_columns = await wafer_crud.get_live_columns(db)
    if metric not in live_columns:
        logger.warning("Metric column %s does not exist", metric)
        return None

    flat = filters.flat_table(live_columns)
    rows = await wafer_crud.flat.get_scope_rows(
        db,
        flat=flat,
        conditions=filters.unique_scope_conditions(params, flat=flat, ignore_wafer=ignore_wafer),
        columns=_unique([*columns, metric]),
        order_by=order_by,
    )
    for row in rows:
        row["value"] = row.get(metric)
    return rows


async def get_residual_map(db: AsyncSession, params: WaferQueryParams) -> List[Dict[str, Any]]:
    if filters.unique_scope_conditions(params) is None:
        return []

    try:
        rows = await _metric_rows(db, params, columns=["point", "x", "y"], order_by=["point"], ignore_wafer=False)
    except SQLAlchemyError:
        logger.exception("Error in residual map")
        return []
    return compute_residuals(rows or [])


async def get_lot_uniformity_trend(db: AsyncSession, params: WaferQueryParams) -> List[Dict[str, Any]]:
    if filters.unique_scope_conditions(params, ignore_wafer=True) is None:
        return []

    try:
        rows = await _metric_rows(
            db, params,
            columns=["waferid", "point", "x", "y", "dierow", "diecol"],
            order_by=["waferid", "point"],
            ignore_wafer=True,
        )
    except SQLAlchemyError:
        logger.exception("Error in lot uniformity trend")
        return []
    return group_uniformity_rows(rows or [])


async def get_available_metrics(db: AsyncSession, params: WaferQueryParams) -> List[str]:
    """설정 메트릭 중 실제 컬럼에 있고, 현재 범위에 값이 하나 이상 있는 메트릭 목록입니다."""
    try:
        configured = await _included_metric_names(db)
        if not configured:
            return []
        live_columns = await wafer_crud.get_live_columns(db)
        candidates = [name for name in _unique(configured) if name in live_columns]
        if not candidates:
            return []

        flat = filters.flat_table(candidates)
        conditions = filters.unique_scope_conditions(params, flat=flat, ignore_wafer=True)
        if conditions is None:
            return candidates

        counts = await wafer_crud.flat.count_non_null(db, flat=flat, conditions=conditions, metrics=candidates)
    except SQLAlchemyError:
        logger.exception("Failed to fetch available metrics")
        return []
    return [name for name in candidates if counts.get(name, 0) > 0]


async def get_matching_equipments(db: AsyncSession, params: WaferQueryParams) -> List[str]:
    if not params.start_date or not params.end_date or not params.cassette_rcp:
        return []

    start_at, end_at = resolve_date_range(params.start_date, params.end_date)
    try:
        return await wafer_crud.flat.get_matching_equipments(db, params=params, start_at=start_at, end_at=end_at)
    except SQLAlchemyError:
        logger.exception("Error fetching matching equipments")
        return []


async def get_comparison_data(db: AsyncSession, params: WaferQueryParams) -> List[Dict[str, Any]]:
    eqp_ids = filters.split_csv(params.target_eqps)
    if not eqp_ids or not params.start_date or not params.end_date or not params.cassette_rcp:
        return []

    try:
        metrics = await resolve_metric_columns(db, defaults=COMPARISON_DEFAULT_METRICS)
        flat = filters.flat_table(metrics)
        return await wafer_crud.flat.get_comparison_rows(
            db, flat=flat, params=params, eqp_ids=eqp_ids, metrics=metrics
        )
    except SQLAlchemyError:
        logger.exception("Error fetching comparison data")
        return []


async def get_optical_trend(db: AsyncSession, params: WaferQueryParams) -> List[Dict[str, Any]]:
    if not params.eqp_id or not params.start_date or not params.end_date:
        return []

    start_at, end_at = resolve_date_range(params.start_date, params.end_date)
    try:
        rows = await wafer_crud.spectrum.get_optical_rows(db, params=params, start_at=start_at, end_at=end_at)
    except SQLAlchemyError:
        logger.exception("Error in optical trend")
        return []

    return [
        {
            "ts": row.get("ts"),
            "lotId": row.get("lotid"),
            "waferId": row.get("waferid"),
            "point": row.get("point"),
            **summarize_spectrum(row.get("wavelengths"), row.get("values")),
        }
        for row in rows
    ]


# =============================================================================
# 5. 스펙트럼
# =============================================================================
async def get_spectrum_trend(db: AsyncSession, params: WaferQueryParams) -> List[Dict[str, Any]]:
    """요청한 Wafer 목록 각각의 최신 EXP 스펙트럼과 메트릭을 트렌드 시리즈로 반환합니다."""
    point = parse_int(params.point_id)
    wafer_ids = _unique(
        wafer_id for wafer_id in (filters.normalize_wafer_id(w) for w in filters.split_csv(params.wafer_ids))
        if wafer_id is not None
    )
    if not params.lot_id or point is None or not wafer_ids:
        return []

    try:
        metrics = await resolve_metric_columns(db, defaults=TREND_DEFAULT_METRICS, always=["gof"])
        flat = filters.flat_table(metrics)
        rows = await wafer_crud.spectrum.get_latest_curves_by_wafer(
            db, flat=flat, params=params, point=point, wafer_ids=wafer_ids, metrics=metrics
        )
    except SQLAlchemyError:
        logger.exception("Error fetching spectrum trend")
        return []

    return [build_trend_series(row, metrics=metrics, point=point, lot_id=params.lot_id) for row in rows]


async def _find_curves(
    db: AsyncSession, params: WaferQueryParams, *, point_value: Optional[str], tolerance: timedelta, class_: Optional[str]
) -> Optional[List[Dict[str, Any]]]:
    """
    스캔 시각이 속한 테이블(파티션)에서 곡선을 조회합니다.
    필수 값이 없거나 파티션이 없으면 None을 반환합니다.
    """
    ts = parse_db_timestamp(params.ts)
    wafer_id = filters.normalize_wafer_id(params.wafer_id)
    point = parse_int(point_value)
    if not params.eqp_id or not params.lot_id or ts is None or wafer_id is None or point is None:
        return None

    table_name = resolve_spectrum_partition(ts)
    if not await partition_exists(db, table_name):
        return None

    return await wafer_crud.spectrum.get_curves(
        db,
        table_name=table_name,
        eqp_id=params.eqp_id,
        lot_id=params.lot_id,
        wafer_id=wafer_id,
        point=point,
        ts_from=ts - tolerance,
        ts_to=ts + tolerance,
        class_=class_,
        near=ts,
    )


async def get_spectrum_gen(db: AsyncSession, params: WaferQueryParams) -> Optional[Dict[str, Any]]:
    """스캔 시각(±2초)의 GEN(모델 Fit) 곡선을 반환합니다. 없으면 None."""
    try:
        curves = await _find_curves(
            db, params, point_value=params.point_id, tolerance=filters.TIME_TOLERANCE, class_=wafer_crud.GEN_CLASS
        )
    except SQLAlchemyError:
        logger.exception("Error fetching GEN spectrum")
        return None
    if not curves:
        return None

    curve = curves[0]
    return {
        "name": f"Model (W{filters.normalize_wafer_id(params.wafer_id)})",
        "type": "line",
        "lineStyle": dict(MODEL_CURVE_LINE_STYLE),
        "data": scale_curve(curve.get("wavelengths"), curve.get("values")),
        "symbol": "none",
    }


async def get_spectrum(db: AsyncSession, params: WaferQueryParams) -> List[Dict[str, Any]]:
    """정확한 스캔 시각의 EXP/GEN 곡선을 Class별로 1건씩 반환합니다."""
    try:
        curves = await _find_curves(db, params, point_value=params.point_number, tolerance=timedelta(0), class_=None)
    except SQLAlchemyError:
        logger.exception("Error fetching spectrum data")
        return []

    unique: Dict[str, Dict[str, Any]] = {}
    for curve in curves or []:
        unique.setdefault(curve["class"], {
            "class": curve["class"],
            "wavelengths": curve.get("wavelengths") or [],
            "values": curve.get("values") or [],
        })
    return list(unique.values())


async def get_golden_spectrum(db: AsyncSession, params: WaferQueryParams) -> Optional[Dict[str, Any]]:
    """
    GOF가 가장 높은 Wafer를 먼저 찾고(1단계), 그 Wafer의 최신 EXP 곡선을 조회합니다(2단계).
    """
    point = parse_int(params.point_id)
    if not params.eqp_id or not params.lot_id or point is None:
        return None

    try:
        wafer_id = await wafer_crud.flat.get_best_gof_wafer(
            db,
            eqp_id=params.eqp_id,
            lot_id=params.lot_id,
            point=point,
            cassette_rcp=params.cassette_rcp,
            stage_group=params.stage_group,
        )
        if wafer_id is None:
            return None
        curve = await wafer_crud.spectrum.get_latest_exp_curve(
            db, eqp_id=params.eqp_id, lot_id=params.lot_id, wafer_id=wafer_id, point=point
        )
    except SQLAlchemyError:
        logger.exception("Error in golden spectrum")
        return None

    if not curve:
        return None
    return {"wavelengths": curve.get("wavelengths") or [], "values": curve.get("values") or []}
