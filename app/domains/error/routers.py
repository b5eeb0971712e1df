# app/domains/error/routers.py

"""
'error' 도메인의 API 엔드포인트를 정의하는 모듈입니다.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core import dependencies as deps
from app.domains.error import schemas as error_schemas
from app.domains.error import services as error_services


router = APIRouter(
    responses={404: {"description": "Not found"}},
)


@router.get("/summary", response_model=error_schemas.ErrorSummary, summary="에러 요약 조회")
async def read_error_summary(
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """기간 내 전체 에러 수, 발생 장비 수, 최다 발생 에러를 조회합니다."""
    return await error_services.get_summary(db, site=site, sdwt=sdwt, start_date=start_date, end_date=end_date)


@router.get("/trend", response_model=List[error_schemas.ErrorTrendItem], summary="일별 에러 추이 조회")
async def read_error_trend(
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await error_services.get_trend(db, site=site, sdwt=sdwt, start_date=start_date, end_date=end_date)


@router.get("/logs", response_model=error_schemas.ErrorLogPage, summary="에러 목록 조회")
async def read_error_logs(
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    page: Optional[str] = Query(None, description="1부터 시작하는 페이지 번호 (기본 1)"),
    limit: Optional[str] = Query(None, description="페이지 크기 (기본 20)"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await error_services.get_logs(
        db, site=site, sdwt=sdwt, start_date=start_date, end_date=end_date, page=page, limit=limit
    )
