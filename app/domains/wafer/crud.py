# app/domains/wafer/crud.py

"""
'wafer' 도메인의 조회 쿼리를 실행하는 모듈입니다.

조건식은 filters.py에서 만들고, 여기서는 SELECT 문을 구성하여 실행한 결과를 그대로 반환합니다.
예외 처리와 결과 가공은 services.py에서 수행합니다.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy import column, distinct, extract, func, select, table
from sqlalchemy.sql.expression import ColumnElement, FromClause
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.crud_base import CRUDBase
from app.domains.ref import models as ref_models
from app.utils.dates import resolve_date_range
from . import models as wafer_models
from . import filters
from .partitions import LIVE_SPECTRUM_TABLE, spectrum_table
from .schemas import WaferQueryParams

EXP_CLASS = "EXP"
GEN_CLASS = "GEN"

_information_schema_columns = table(
    "columns",
    column("table_schema"),
    column("table_name"),
    column("column_name"),
    schema="information_schema",
)


async def get_live_columns(db: AsyncSession, table_name: str = "plg_wf_flat") -> Set[str]:
    """information_schema에서 테이블의 실제 컬럼명(소문자) 집합을 조회합니다."""
    statement = select(_information_schema_columns.c.column_name).where(
        _information_schema_columns.c.table_schema == "public",
        _information_schema_columns.c.table_name == table_name,
    )
    result = await db.execute(statement)
    return {name.lower() for name in result.scalars().all()}


# =============================================================================
# 1. 메트릭 설정 (cfg_lot_uniformity_metrics)
# =============================================================================
class CRUDMetricConfig(CRUDBase[wafer_models.CfgLotUniformityMetric]):
    def __init__(self):
        super().__init__(model=wafer_models.CfgLotUniformityMetric)

    async def get_included_names(self, db: AsyncSession) -> List[str]:
        """제외되지 않은(is_excluded = 'N') 메트릭 이름을 이름순으로 조회합니다."""
        statement = (
            select(self.model.metric_name)
            .where(self.model.is_excluded == "N")
            .order_by(self.model.metric_name)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())


metric_config = CRUDMetricConfig()


# =============================================================================
# 2. Flat 데이터 (plg_wf_flat)
# =============================================================================
class CRUDWaferFlat(CRUDBase[wafer_models.PlgWfFlat]):
    def __init__(self):
        super().__init__(model=wafer_models.PlgWfFlat)

    async def get_distinct_values(
        self, db: AsyncSession, *, column_name: str, params: WaferQueryParams
    ) -> List[Any]:
        """
        컬럼의 고유 값을 내림차순으로 최대 5000개 조회합니다.
        해당 컬럼 자신의 필터는 제외하고 나머지 필터는 모두 적용합니다.
        """
        target = self.model.__table__.c[column_name]
        statement = (
            select(distinct(target))
            .where(target.is_not(None), *filters.flat_filter_conditions(params, skip_column=column_name))
            .order_by(target.desc())
            .limit(filters.DISTINCT_LIMIT)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def get_flat_page(
        self, db: AsyncSession, *, params: WaferQueryParams, skip: int, limit: int
    ) -> tuple[int, Sequence[Any]]:
        """
        웨이퍼 단위(장비, serv_ts, Lot, Wafer, 레시피, Film)로 묶은 목록을 최신순으로 조회합니다.
        Lot ID는 대소문자 구분 없는 부분 일치로 검색합니다.
        """
        flat = self.model.__table__
        conditions = filters.flat_filter_conditions(params, skip_column="lotid")
        if params.lot_id:
            conditions.append(flat.c.lotid.icontains(params.lot_id, autoescape=True))

        group_columns = [
            flat.c.eqpid, flat.c.serv_ts, flat.c.lotid, flat.c.waferid,
            flat.c.cassettercp, flat.c.stagercp, flat.c.stagegroup, flat.c.film,
        ]
        grouped = select(*group_columns, func.max(flat.c.datetime).label("datetime")).where(*conditions).group_by(*group_columns)

        total_result = await db.execute(select(func.count()).select_from(grouped.subquery()))
        total = total_result.scalar_one()

        page_result = await db.execute(
            grouped.order_by(flat.c.serv_ts.desc(), flat.c.waferid.asc()).offset(skip).limit(limit)
        )
        return total, page_result.mappings().all()

    async def get_scope_rows(
        self,
        db: AsyncSession,
        *,
        flat: FromClause,
        conditions: List[ColumnElement],
        columns: Sequence[str],
        order_by: Sequence[str] = ("point",),
    ) -> List[Dict[str, Any]]:
        """고유 범위 조건에 맞는 행의 지정 컬럼들을 조회합니다."""
        statement = (
            select(*[flat.c[name] for name in columns])
            .where(*conditions)
            .order_by(*[flat.c[name] for name in order_by])
        )
        result = await db.execute(statement)
        return [dict(row) for row in result.mappings().all()]

    async def aggregate_metrics(
        self,
        db: AsyncSession,
        *,
        flat: FromClause,
        conditions: List[ColumnElement],
        metrics: Sequence[str],
    ) -> Dict[str, Any]:
        """메트릭별 MAX/MIN/AVG/STDDEV_SAMP를 한 번의 집계 쿼리로 계산합니다."""
        aggregates = []
        for name in metrics:
            target = flat.c[name]
            aggregates.extend([
                func.max(target).label(f"{name}_max"),
                func.min(target).label(f"{name}_min"),
                func.avg(target).label(f"{name}_mean"),
                func.stddev_samp(target).label(f"{name}_std"),
            ])
        result = await db.execute(select(*aggregates).where(*conditions))
        row = result.mappings().first()
        return dict(row) if row else {}

    async def count_non_null(
        self,
        db: AsyncSession,
        *,
        flat: FromClause,
        conditions: List[ColumnElement],
        metrics: Sequence[str],
    ) -> Dict[str, int]:
        """메트릭별 NULL이 아닌 값의 개수를 조회합니다."""
        statement = select(*[func.count(flat.c[name]).label(name) for name in metrics]).where(*conditions)
        result = await db.execute(statement)
        row = result.mappings().first()
        return {name: int(row[name] or 0) for name in metrics} if row else {}

    async def get_best_gof_wafer(
        self, db: AsyncSession, *, eqp_id: str, lot_id: str, point: int,
        cassette_rcp: Optional[str] = None, stage_group: Optional[str] = None,
    ) -> Optional[int]:
        """GOF가 가장 높은 Wafer 번호를 조회합니다. (Golden Wafer)"""
        statement = select(self.model.waferid).where(
            self.model.eqpid == eqp_id,
            self.model.lotid == lot_id,
            self.model.point == point,
            self.model.gof.is_not(None),
        )
        if cassette_rcp:
            statement = statement.where(self.model.cassettercp == cassette_rcp)
        if stage_group:
            statement = statement.where(self.model.stagegroup == stage_group)
        result = await db.execute(statement.order_by(self.model.gof.desc()).limit(1))
        return result.scalars().first()

    async def get_matching_equipments(
        self,
        db: AsyncSession,
        *,
        params: WaferQueryParams,
        start_at: datetime,
        end_at: datetime,
    ) -> List[str]:
        """기간 내 같은 Cassette Recipe로 측정한 장비 ID 목록을 조회합니다. (Site/SDWT 필터 포함)"""
        statement = (
            select(distinct(self.model.eqpid))
            .join(ref_models.RefEquipment, ref_models.RefEquipment.eqpid == self.model.eqpid)
            .join(ref_models.RefSdwt, ref_models.RefSdwt.sdwt == ref_models.RefEquipment.sdwt)
            .where(
                self.model.serv_ts >= start_at,
                self.model.serv_ts <= end_at,
                self.model.cassettercp == params.cassette_rcp,
            )
        )
        if params.site:
            statement = statement.where(ref_models.RefSdwt.site == params.site)
        if params.sdwt:
            statement = statement.where(ref_models.RefSdwt.sdwt == params.sdwt)
        if params.stage_group:
            statement = statement.where(self.model.stagegroup == params.stage_group)
        if params.film:
            statement = statement.where(self.model.film == params.film)
        result = await db.execute(statement.order_by(self.model.eqpid))
        return list(result.scalars().all())

    async def get_comparison_rows(
        self,
        db: AsyncSession,
        *,
        flat: FromClause,
        params: WaferQueryParams,
        eqp_ids: List[str],
        metrics: Sequence[str],
    ) -> List[Dict[str, Any]]:
        """여러 장비의 포인트별 메트릭 값을 최신순으로 최대 5000행 조회합니다."""
        start_at, end_at = resolve_date_range(params.start_date, params.end_date)
        statement = select(
            flat.c.eqpid, flat.c.lotid, flat.c.waferid, flat.c.point,
            *[flat.c[name] for name in metrics],
        ).where(
            flat.c.serv_ts >= start_at,
            flat.c.serv_ts <= end_at,
            flat.c.cassettercp == params.cassette_rcp,
            flat.c.eqpid.in_(eqp_ids),
        )
        if params.stage_group:
            statement = statement.where(flat.c.stagegroup == params.stage_group)
        if params.film:
            statement = statement.where(flat.c.film == params.film)
        statement = statement.order_by(flat.c.serv_ts.desc()).limit(filters.COMPARISON_LIMIT)
        result = await db.execute(statement)
        return [dict(row) for row in result.mappings().all()]


flat = CRUDWaferFlat()


# =============================================================================
# 3. 스펙트럼 (plg_onto_spectrum 및 월별 파티션)
# =============================================================================
class CRUDSpectrum(CRUDBase[wafer_models.PlgOntoSpectrum]):
    def __init__(self):
        super().__init__(model=wafer_models.PlgOntoSpectrum)

    async def get_distinct_points(self, db: AsyncSession, *, params: WaferQueryParams) -> List[int]:
        """Flat 데이터와 매칭되는 스펙트럼의 Point 번호를 오름차순으로 조회합니다."""
        spectrum = spectrum_table(LIVE_SPECTRUM_TABLE)
        flat_table = wafer_models.PlgWfFlat.__table__
        statement = (
            select(distinct(spectrum.c.point))
            .select_from(spectrum.join(flat_table, filters.wafer_join_condition(spectrum, flat_table)))
            .where(*filters.spectrum_filter_conditions(params, spectrum, flat=flat_table))
            .order_by(spectrum.c.point.asc())
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def get_latest_curves_by_wafer(
        self,
        db: AsyncSession,
        *,
        flat: FromClause,
        params: WaferQueryParams,
        point: int,
        wafer_ids: List[int],
        metrics: Sequence[str],
    ) -> List[Dict[str, Any]]:
        """
        Wafer별로 가장 최근(serv_ts 기준) EXP 스펙트럼 1건과 메트릭 값을 조회합니다.
        메트릭 값은 'metric_{이름}' 라벨로 반환합니다.
        """
        spectrum = spectrum_table(LIVE_SPECTRUM_TABLE)
        wafer_key = filters.spectrum_wafer_key(spectrum)
        statement = (
            select(
                spectrum.c.waferid, spectrum.c.wavelengths, spectrum.c["values"], spectrum.c.ts, spectrum.c.eqpid,
                flat.c.serv_ts, flat.c.lotid,
                *[flat.c[name].label(f"metric_{name}") for name in metrics],
            )
            .select_from(spectrum.join(flat, filters.wafer_join_condition(spectrum, flat)))
            .where(
                spectrum.c.point == point,
                spectrum.c["class"] == EXP_CLASS,
                wafer_key.in_(wafer_ids),
                *filters.spectrum_filter_conditions(params, spectrum, flat=flat),
            )
            .distinct(wafer_key)
            .order_by(wafer_key.asc(), flat.c.serv_ts.desc())
        )
        result = await db.execute(statement)
        return [dict(row) for row in result.mappings().all()]

    async def get_curves(
        self,
        db: AsyncSession,
        *,
        table_name: str,
        eqp_id: str,
        lot_id: str,
        wafer_id: int,
        point: int,
        ts_from: datetime,
        ts_to: datetime,
        class_: Optional[str] = None,
        near: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        지정한 테이블(파티션)에서 시각 구간에 해당하는 곡선을 Class 순으로 조회합니다.
        near가 주어지면 같은 Class 안에서 그 시각에 가까운 곡선이 먼저 옵니다.
        """
        spectrum = spectrum_table(table_name)
        statement = select(spectrum.c["class"], spectrum.c.wavelengths, spectrum.c["values"], spectrum.c.ts).where(
            spectrum.c.eqpid == eqp_id,
            spectrum.c.lotid == lot_id,
            filters.spectrum_wafer_key(spectrum) == wafer_id,
            spectrum.c.point == point,
            spectrum.c.ts >= ts_from,
            spectrum.c.ts <= ts_to,
        )
        if class_:
            statement = statement.where(spectrum.c["class"] == class_)
        order_by = [spectrum.c["class"].asc()]
        if near is not None:
            order_by.append(func.abs(extract("epoch", spectrum.c.ts - near)).asc())
        statement = statement.order_by(*order_by, spectrum.c.ts.desc())
        if limit is not None:
            statement = statement.limit(limit)
        result = await db.execute(statement)
        return [dict(row) for row in result.mappings().all()]

    async def get_latest_exp_curve(
        self, db: AsyncSession, *, eqp_id: str, lot_id: str, wafer_id: int, point: int
    ) -> Optional[Dict[str, Any]]:
        """해당 Wafer/Point의 가장 최근 EXP 곡선을 조회합니다."""
        spectrum = spectrum_table(LIVE_SPECTRUM_TABLE)
        statement = (
            select(spectrum.c.wavelengths, spectrum.c["values"])
            .where(
                spectrum.c.eqpid == eqp_id,
                spectrum.c.lotid == lot_id,
                filters.spectrum_wafer_key(spectrum) == wafer_id,
                spectrum.c.point == point,
                spectrum.c["class"] == EXP_CLASS,
            )
            .order_by(spectrum.c.ts.desc())
            .limit(1)
        )
        result = await db.execute(statement)
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_optical_rows(
        self, db: AsyncSession, *, params: WaferQueryParams, start_at: datetime, end_at: datetime
    ) -> List[Dict[str, Any]]:
        """장비의 기간 내 스펙트럼을 시간 오름차순으로 최대 2000건 조회합니다."""
        spectrum = spectrum_table(LIVE_SPECTRUM_TABLE)
        flat_table = wafer_models.PlgWfFlat.__table__
        statement = (
            select(
                spectrum.c.ts, spectrum.c.lotid, spectrum.c.waferid, spectrum.c.point,
                spectrum.c.wavelengths, spectrum.c["values"],
            )
            .select_from(spectrum.join(flat_table, filters.wafer_join_condition(spectrum, flat_table)))
            .where(
                spectrum.c.eqpid == params.eqp_id,
                spectrum.c.ts >= start_at,
                spectrum.c.ts <= end_at,
            )
        )
        if params.cassette_rcp:
            statement = statement.where(flat_table.c.cassettercp == params.cassette_rcp)
        if params.stage_group:
            statement = statement.where(flat_table.c.stagegroup == params.stage_group)
        if params.film:
            statement = statement.where(flat_table.c.film == params.film)
        statement = statement.order_by(spectrum.c.ts.asc()).limit(filters.OPTICAL_LIMIT)
        result = await db.execute(statement)
        return [dict(row) for row in result.mappings().all()]


spectrum = CRUDSpectrum()


# =============================================================================
# 4. Wafer Map (plg_wf_map)
# =============================================================================
class CRUDWaferMap(CRUDBase[wafer_models.PlgWfMap]):
    def __init__(self):
        super().__init__(model=wafer_models.PlgWfMap)

    async def get_by_time(self, db: AsyncSession, *, eqp_id: str, at: datetime) -> List[wafer_models.PlgWfMap]:
        """장비/측정 일시가 정확히 일치하는 Wafer Map 목록을 조회합니다."""
        return await self.get_filtered(
            db,
            filters={"eqpid": eqp_id, "datetime": at},
            order_by_field="datetime",
            order_desc=True,
            limit=None,
        )


wafer_map = CRUDWaferMap()
