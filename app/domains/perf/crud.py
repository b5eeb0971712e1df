# app/domains/perf/crud.py

"""
'perf' 도메인 (장비 성능/램프/Pre-Align)의 조회 로직을 담당하는 모듈입니다.
"""

from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.crud_base import CRUDBase
from app.domains.ref import crud as ref_crud
from app.domains.ref import models as ref_models
from . import models as perf_models

ITM_AGENT_PROCESS = "ITM_Agent"


# =============================================================================
# 1. eqp_perf
# =============================================================================
class CRUDEqpPerf(CRUDBase[perf_models.EqpPerf]):
    def __init__(self):
        super().__init__(model=perf_models.EqpPerf)

    async def get_history(
        self, db: AsyncSession, *, eqp_ids: Sequence[str], start_at: datetime, end_at: datetime
    ) -> List[perf_models.EqpPerf]:
        """장비 목록의 성능 기록을 기간 내 시간 오름차순으로 조회합니다."""
        return await self.get_filtered(
            db,
            filters={"eqpid": list(eqp_ids)},
            date_range_field="serv_ts",
            start_at=start_at,
            end_at=end_at,
            order_by_field="serv_ts",
            order_desc=False,
            limit=None,
        )


eqp_perf = CRUDEqpPerf()


# =============================================================================
# 2. eqp_proc_perf
# =============================================================================
class CRUDProcessPerf(CRUDBase[perf_models.EqpProcPerf]):
    def __init__(self):
        super().__init__(model=perf_models.EqpProcPerf)

    async def get_rows(
        self,
        db: AsyncSession,
        *,
        start_at: datetime,
        end_at: datetime,
        eqp_id: Optional[str] = None,
        process_name: Optional[str] = None,
        site: Optional[str] = None,
        sdwt: Optional[str] = None,
    ) -> List[Mapping[str, Any]]:
        """
        프로세스 성능 기록을 시간 오름차순으로 조회합니다.
        장비 ID가 없고 Site/SDWT가 주어지면 해당 범위의 장비로 한정합니다.
        """
        model = self.model
        statement = select(
            model.eqpid, model.serv_ts, model.process_name, model.cpu_usage, model.memory_usage_mb
        ).where(model.serv_ts >= start_at, model.serv_ts <= end_at)

        if process_name:
            statement = statement.where(model.process_name == process_name)
        if eqp_id:
            statement = statement.where(model.eqpid == eqp_id)
        elif site or sdwt:
            statement = statement.where(model.eqpid.in_(ref_crud.scoped_equipment_ids(site, sdwt)))

        statement = statement.order_by(model.serv_ts, model.eqpid, model.process_name)
        result = await db.execute(statement)
        return result.mappings().all()


process_perf = CRUDProcessPerf()


# =============================================================================
# 3. eqp_lamp_life
# =============================================================================
class CRUDLampLife(CRUDBase[perf_models.EqpLampLife]):
    def __init__(self):
        super().__init__(model=perf_models.EqpLampLife)

    async def get_by_scope(
        self, db: AsyncSession, *, site: Optional[str] = None, sdwt: Optional[str] = None
    ) -> List[perf_models.EqpLampLife]:
        """장비의 SDWT/Site 조건에 맞는 램프 수명 목록을 장비 ID 순으로 조회합니다."""
        statement = select(self.model)
        if site or sdwt:
            statement = statement.join(
                ref_models.RefEquipment, ref_models.RefEquipment.eqpid == self.model.eqpid
            )
            if sdwt:
                statement = statement.where(ref_models.RefEquipment.sdwt == sdwt)
            if site:
                statement = statement.join(
                    ref_models.RefSdwt, ref_models.RefSdwt.sdwt == ref_models.RefEquipment.sdwt
                ).where(ref_models.RefSdwt.site == site)
        statement = statement.order_by(self.model.eqpid, self.model.lamp_id)
        result = await db.execute(statement)
        return result.scalars().all()


lamp_life = CRUDLampLife()


# =============================================================================
# 4. plg_prealign
# =============================================================================
class CRUDPrealign(CRUDBase[perf_models.PlgPrealign]):
    def __init__(self):
        super().__init__(model=perf_models.PlgPrealign)

    async def get_trend(
        self,
        db: AsyncSession,
        *,
        start_at: datetime,
        end_at: datetime,
        eqp_id: Optional[str] = None,
        site: Optional[str] = None,
        sdwt: Optional[str] = None,
    ) -> List[Mapping[str, Any]]:
        """Pre-Align 기록을 시간 오름차순으로 조회합니다. 기준 정보에 등록된 장비만 대상입니다."""
        model = self.model
        statement = (
            select(model.serv_ts, model.eqpid, model.xmm, model.ymm, model.notch)
            .join(ref_models.RefEquipment, ref_models.RefEquipment.eqpid == model.eqpid)
            .outerjoin(ref_models.RefSdwt, ref_models.RefSdwt.sdwt == ref_models.RefEquipment.sdwt)
            .where(model.serv_ts >= start_at, model.serv_ts <= end_at)
        )
        if site:
            statement = statement.where(ref_models.RefSdwt.site == site)
        if sdwt:
            statement = statement.where(ref_models.RefEquipment.sdwt == sdwt)
        if eqp_id:
            statement = statement.where(model.eqpid == eqp_id)

        statement = statement.order_by(model.serv_ts)
        result = await db.execute(statement)
        return result.mappings().all()


prealign = CRUDPrealign()
