# app/domains/ref/routers.py

"""
'ref' 도메인의 API 엔드포인트를 정의하는 모듈입니다.

화면 상단 필터(Site, SDWT, 장비)를 채우기 위한 조회 엔드포인트를 제공합니다.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core import dependencies as deps
from app.domains.ref import crud as ref_crud
from app.domains.ref import schemas as ref_schemas


router = APIRouter(
    responses={404: {"description": "Not found"}},
)


@router.get("/filters/sites", response_model=List[str], summary="Site 목록 조회")
async def read_sites(db: AsyncSession = Depends(deps.get_db_session)):
    """사용 중인 SDWT가 속한 Site 목록을 조회합니다."""
    return await ref_crud.sdwt.get_sites(db)


@router.get("/filters/sdwts", response_model=List[str], summary="SDWT 목록 조회")
async def read_sdwts(site: Optional[str] = None, db: AsyncSession = Depends(deps.get_db_session)):
    """
    사용 중인 SDWT 목록을 조회합니다.
    - `site`: 특정 Site로 필터링 (선택 사항)
    """
    return await ref_crud.sdwt.get_sdwts(db, site=site)


@router.get("/equipment/ids", response_model=List[str], summary="장비 ID 목록 조회")
async def read_eqp_ids(
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """Site/SDWT 조건에 맞는 장비 ID 목록을 조회합니다."""
    return await ref_crud.equipment.get_eqp_ids(db, site=site, sdwt=sdwt)


@router.get("/equipment/{eqp_id}", response_model=ref_schemas.EquipmentResponse, summary="단일 장비 조회")
async def read_equipment(eqp_id: str, db: AsyncSession = Depends(deps.get_db_session)):
    """특정 장비의 기준 정보를 조회합니다."""
    db_equipment = await ref_crud.equipment.get(db, id=eqp_id)
    if db_equipment is None:
        raise HTTPException(status_code=404, detail="Equipment not found.")
    return db_equipment
