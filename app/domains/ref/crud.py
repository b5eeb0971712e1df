# app/domains/ref/crud.py

"""
'ref' 도메인 (장비/SDWT 기준 정보)의 조회 로직을 담당하는 모듈입니다.
"""

from typing import List, Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.crud_base import CRUDBase
from . import models as ref_models


def equipment_scope_conditions(site: Optional[str] = None, sdwt: Optional[str] = None) -> list:
    """
    장비를 Site/SDWT로 한정하는 조건 목록을 만듭니다.
    RefEquipment와 RefSdwt가 조인된 쿼리에서 사용합니다. 사용 중인('Y') SDWT만 대상입니다.
    """
    conditions = [ref_models.RefSdwt.is_use == "Y"]
    if sdwt:
        conditions.append(ref_models.RefEquipment.sdwt == sdwt)
    if site:
        conditions.append(ref_models.RefSdwt.site == site)
    return conditions


def scoped_equipment_ids(site: Optional[str] = None, sdwt: Optional[str] = None):
    """Site/SDWT 범위의 장비 ID 서브쿼리를 반환합니다."""
    return (
        select(ref_models.RefEquipment.eqpid)
        .join(ref_models.RefSdwt, ref_models.RefSdwt.sdwt == ref_models.RefEquipment.sdwt)
        .where(*equipment_scope_conditions(site, sdwt))
    )


# =============================================================================
# 1. SDWT / Site 조회
# =============================================================================
class CRUDSdwt(CRUDBase[ref_models.RefSdwt]):
    def __init__(self):
        super().__init__(model=ref_models.RefSdwt)

    async def get_sites(self, db: AsyncSession) -> List[str]:
        """사용 중인 SDWT가 속한 Site 목록을 중복 없이 오름차순으로 조회합니다."""
        statement = (
            select(self.model.site)
            .where(self.model.site.is_not(None), self.model.is_use == "Y")
            .distinct()
            .order_by(self.model.site)
        )
        result = await db.execute(statement)
        return [site for site in result.scalars().all() if site is not None]

    async def get_sdwts(self, db: AsyncSession, *, site: Optional[str] = None) -> List[str]:
        """사용 중인 SDWT 목록을 조회합니다. Site가 주어지면 해당 Site 소속만 조회합니다."""
        statement = select(self.model.sdwt).where(self.model.sdwt.is_not(None), self.model.is_use == "Y")
        if site:
            statement = statement.where(self.model.site == site)
        statement = statement.distinct().order_by(self.model.sdwt)
        result = await db.execute(statement)
        return [sdwt for sdwt in result.scalars().all() if sdwt is not None]


sdwt = CRUDSdwt()


# =============================================================================
# 2. 장비 조회
# =============================================================================
class CRUDEquipment(CRUDBase[ref_models.RefEquipment]):
    def __init__(self):
        super().__init__(model=ref_models.RefEquipment)

    async def get_eqp_ids(
        self, db: AsyncSession, *, site: Optional[str] = None, sdwt: Optional[str] = None
    ) -> List[str]:
        """Site/SDWT 조건에 맞는 장비 ID 목록을 오름차순으로 조회합니다."""
        statement = select(self.model.eqpid)
        if site:
            statement = statement.join(ref_models.RefSdwt, ref_models.RefSdwt.sdwt == self.model.sdwt)
            statement = statement.where(*equipment_scope_conditions(site, sdwt))
        elif sdwt:
            statement = statement.where(self.model.sdwt == sdwt)
        statement = statement.order_by(self.model.eqpid)
        result = await db.execute(statement)
        return list(result.scalars().all())


equipment = CRUDEquipment()
