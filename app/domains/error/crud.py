# app/domains/error/crud.py

"""
'error' 도메인의 조회 로직을 담당하는 모듈입니다.

모든 조회는 time_stamp 기간 조건을 공유하며,
Site/SDWT가 주어지면 사용 중('Y')인 SDWT 소속 장비로 한정합니다.
"""

from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.crud_base import CRUDBase
from app.domains.ref import crud as ref_crud
from app.domains.ref import models as ref_models
from . import models as error_models


class CRUDError(CRUDBase[error_models.PlgError]):
    def __init__(self):
        super().__init__(model=error_models.PlgError)

    def scope_conditions(
        self,
        start_at: datetime,
        end_at: datetime,
        *,
        site: Optional[str] = None,
        sdwt: Optional[str] = None,
    ) -> list:
        conditions = [self.model.time_stamp >= start_at, self.model.time_stamp <= end_at]
        if site or sdwt:
            conditions.append(self.model.eqpid.in_(ref_crud.scoped_equipment_ids(site, sdwt)))
        return conditions

    async def get_totals(self, db: AsyncSession, conditions: list) -> Tuple[int, int]:
        """(전체 에러 수, 에러가 발생한 장비 수)를 조회합니다."""
        statement = select(func.count(), func.count(func.distinct(self.model.eqpid))).where(*conditions)
        result = await db.execute(statement)
        total, eqp_count = result.one()
        return total or 0, eqp_count or 0

    async def get_top_error(self, db: AsyncSession, conditions: list) -> Optional[Mapping[str, Any]]:
        """가장 많이 발생한 에러 코드와 건수, 이름을 조회합니다. 없으면 None."""
        count = func.count().label("count")
        statement = (
            select(self.model.error_id, count, func.max(self.model.error_label).label("error_label"))
            .where(*conditions)
            .group_by(self.model.error_id)
            .order_by(count.desc(), self.model.error_id)
            .limit(1)
        )
        result = await db.execute(statement)
        return result.mappings().first()

    async def get_counts_by_eqp(self, db: AsyncSession, conditions: list) -> List[Mapping[str, Any]]:
        count = func.count().label("count")
        statement = (
            select(self.model.eqpid, count)
            .where(*conditions)
            .group_by(self.model.eqpid)
            .order_by(count.desc(), self.model.eqpid)
        )
        result = await db.execute(statement)
        return result.mappings().all()

    async def get_daily_counts(self, db: AsyncSession, conditions: list) -> List[Mapping[str, Any]]:
        """일자별 에러 건수를 날짜 오름차순으로 조회합니다."""
        day = func.date(self.model.time_stamp).label("date")
        statement = (
            select(day, func.count().label("count"))
            .where(*conditions)
            .group_by(day)
            .order_by(day)
        )
        result = await db.execute(statement)
        return result.mappings().all()

    async def get_logs(
        self, db: AsyncSession, conditions: list, *, skip: int = 0, limit: int = 20
    ) -> Tuple[int, List[Tuple[error_models.PlgError, Optional[str]]]]:
        """에러 목록을 최신순으로 조회합니다. 각 행은 (에러, 장비의 Site)입니다."""
        count_result = await db.execute(select(func.count()).select_from(self.model).where(*conditions))
        total = count_result.scalar_one()

        statement = (
            select(self.model, ref_models.RefSdwt.site)
            .outerjoin(ref_models.RefEquipment, ref_models.RefEquipment.eqpid == self.model.eqpid)
            .outerjoin(ref_models.RefSdwt, ref_models.RefSdwt.sdwt == ref_models.RefEquipment.sdwt)
            .where(*conditions)
            .order_by(self.model.time_stamp.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(statement)
        return total, list(result.all())


error = CRUDError()
