# app/domains/perf/routers.py

"""
'perf' 도메인의 API 엔드포인트를 정의하는 모듈입니다.

장비 성능(performance), 램프 수명(lamplife), Pre-Align 트렌드(prealign) 조회를 제공합니다.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core import dependencies as deps
from app.domains.perf import schemas as perf_schemas
from app.domains.perf import services as perf_services


router = APIRouter(
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. 장비 성능
# =============================================================================
@router.get("/performance/history", response_model=List[perf_schemas.PerfHistoryItem], summary="장비 성능 이력 조회")
async def read_performance_history(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    eqpids: Optional[str] = Query(None, description="콤마 구분 장비 목록"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await perf_services.get_performance_history(db, start_date=start_date, end_date=end_date, eqpids=eqpids)


@router.get(
    "/performance/process-history",
    response_model=List[perf_schemas.ProcessPerfItem],
    summary="프로세스별 성능 이력 조회",
)
async def read_process_history(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    eqp_id: Optional[str] = Query(None, alias="eqpId"),
    interval: Optional[str] = Query(None, description="구간 평균 간격(초)"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    한 장비의 프로세스별 CPU/메모리 기록을 조회합니다.
    - `interval`: 양수이면 해당 초 단위 구간 평균으로 반환
    """
    return await perf_services.get_process_history(
        db, start_date=start_date, end_date=end_date, eqp_id=eqp_id, interval=interval
    )


@router.get(
    "/performance/itm-agent-trend",
    response_model=List[perf_schemas.ProcessPerfItem],
    summary="ITM Agent 자원 사용 추이 조회",
)
async def read_itm_agent_trend(
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    eqpid: Optional[str] = None,
    interval: Optional[str] = Query(None, description="구간 평균 간격(초), 기본 60"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await perf_services.get_itm_agent_trend(
        db, site=site, sdwt=sdwt, start_date=start_date, end_date=end_date, eqp_id=eqpid, interval=interval
    )


# =============================================================================
# 2. 램프 수명 / Pre-Align
# =============================================================================
@router.get("/lamplife", response_model=List[perf_schemas.LampLifeItem], summary="램프 수명 조회")
async def read_lamp_life(
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await perf_services.get_lamp_life(db, site=site, sdwt=sdwt)


@router.get("/prealign/trend", response_model=List[perf_schemas.PrealignTrendItem], summary="Pre-Align 트렌드 조회")
async def read_prealign_trend(
    site: Optional[str] = None,
    sdwt: Optional[str] = None,
    eqp_id: Optional[str] = Query(None, alias="eqpId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await perf_services.get_prealign_trend(
        db, site=site, sdwt=sdwt, eqp_id=eqp_id, start_date=start_date, end_date=end_date
    )
