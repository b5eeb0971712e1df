# app/domains/wafer/routers.py

"""
'wafer' 도메인의 API 엔드포인트를 정의하는 모듈입니다.

이 라우터는 웨이퍼 계측 데이터(Flat), 스펙트럼, 통계, Wafer Map 이미지 조회를 위한
HTTP 엔드포인트를 제공합니다. 모든 쿼리 파라미터는 camelCase 문자열로 받습니다.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core import dependencies as deps
from app.domains.wafer import schemas as wafer_schemas
from app.domains.wafer import services as wafer_services
from app.domains.wafer import wafer_map


router = APIRouter(
    responses={404: {"description": "Not found"}},
)


def wafer_query_params(
    eqp_id: Optional[str] = Query(None, alias="eqpId"),
    lot_id: Optional[str] = Query(None, alias="lotId"),
    wafer_id: Optional[str] = Query(None, alias="waferId"),
    wafer_ids: Optional[str] = Query(None, alias="waferIds", description="콤마 구분 Wafer 목록"),
    point_id: Optional[str] = Query(None, alias="pointId"),
    point_number: Optional[str] = Query(None, alias="pointNumber"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    cassette_rcp: Optional[str] = Query(None, alias="cassetteRcp"),
    stage_rcp: Optional[str] = Query(None, alias="stageRcp"),
    stage_group: Optional[str] = Query(None, alias="stageGroup"),
    film: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    serv_ts: Optional[str] = Query(None, alias="servTs"),
    ts: Optional[str] = Query(None),
    date_time: Optional[str] = Query(None, alias="dateTime"),
    metric: Optional[str] = Query(None),
    site: Optional[str] = Query(None),
    sdwt: Optional[str] = Query(None),
    target_eqps: Optional[str] = Query(None, alias="targetEqps", description="콤마 구분 장비 목록"),
    field: Optional[str] = Query(None),
) -> wafer_schemas.WaferQueryParams:
    """쿼리 문자열을 WaferQueryParams로 모읍니다."""
    return wafer_schemas.WaferQueryParams(
        eqp_id=eqp_id, lot_id=lot_id, wafer_id=wafer_id, wafer_ids=wafer_ids,
        point_id=point_id, point_number=point_number, start_date=start_date, end_date=end_date,
        cassette_rcp=cassette_rcp, stage_rcp=stage_rcp, stage_group=stage_group, film=film,
        page=page, page_size=page_size, serv_ts=serv_ts, ts=ts, date_time=date_time,
        metric=metric, site=site, sdwt=sdwt, target_eqps=target_eqps, field=field,
    )


# =============================================================================
# 1. 필터 / 목록
# =============================================================================
@router.get("/distinct-values", response_model=List[str], summary="필터 항목 고유 값 조회")
async def read_distinct_values(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Flat 데이터 컬럼의 고유 값을 최대 5000개 조회합니다.
    - `field`: 컬럼명 또는 별칭 (lotids, cassettercps, stagercps, stagegroups, films, waferids)
    """
    return await wafer_services.get_distinct_values(db, params)


@router.get("/distinct-points", response_model=List[str], summary="측정 포인트 목록 조회")
async def read_distinct_points(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_distinct_points(db, params)


@router.get("/flat-data", response_model=wafer_schemas.FlatDataPage, summary="웨이퍼 목록 조회 (페이지)")
async def read_flat_data(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    웨이퍼 단위 목록을 최신순으로 조회합니다.
    - `page`: 0부터 시작하는 페이지 번호 (기본 0)
    - `pageSize`: 페이지 크기 (기본 20)
    """
    return await wafer_services.get_flat_data(db, params)


@router.get("/point-data", response_model=wafer_schemas.PointDataTable, summary="포인트별 전체 데이터 조회")
async def read_point_data(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_point_data(db, params)


# =============================================================================
# 2. 스펙트럼
# =============================================================================
@router.get("/spectrum-trend", response_model=List[wafer_schemas.TrendSeries], summary="Wafer별 스펙트럼 트렌드 조회")
async def read_spectrum_trend(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Lot/Point의 Wafer 목록(`waferIds`) 각각에 대해 최신 EXP 스펙트럼을 조회합니다.
    강도 값은 % 단위(x100)로 반환합니다.
    """
    return await wafer_services.get_spectrum_trend(db, params)


@router.get("/spectrum-gen", response_model=Optional[wafer_schemas.ModelCurveSeries], summary="모델 Fit(GEN) 곡선 조회")
async def read_spectrum_gen(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_spectrum_gen(db, params)


@router.get("/spectrum", response_model=List[wafer_schemas.SpectrumCurve], summary="스캔 시각의 스펙트럼 조회")
async def read_spectrum(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_spectrum(db, params)


@router.get("/golden-spectrum", response_model=Optional[wafer_schemas.GoldenSpectrum], summary="Golden Wafer 스펙트럼 조회")
async def read_golden_spectrum(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_golden_spectrum(db, params)


@router.get("/optical-trend", response_model=List[wafer_schemas.OpticalTrendItem], summary="광학 지표 트렌드 조회")
async def read_optical_trend(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_optical_trend(db, params)


# =============================================================================
# 3. 통계 / 분석
# =============================================================================
@router.get("/statistics", response_model=Dict[str, wafer_schemas.MetricStats], summary="메트릭 통계 조회")
async def read_statistics(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_statistics(db, params)


@router.get("/residual-map", response_model=List[wafer_schemas.ResidualPoint], summary="Residual Map 조회")
async def read_residual_map(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """`metric`(기본 t1)의 포인트별 평균 대비 편차를 조회합니다."""
    return await wafer_services.get_residual_map(db, params)


@router.get("/available-metrics", response_model=List[str], summary="조회 가능한 메트릭 목록")
async def read_available_metrics(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_available_metrics(db, params)


@router.get("/lot-uniformity-trend", response_model=List[wafer_schemas.UniformitySeries], summary="Lot Uniformity 트렌드 조회")
async def read_lot_uniformity_trend(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_lot_uniformity_trend(db, params)


@router.get("/matching-equipments", response_model=List[str], summary="비교 대상 장비 목록 조회")
async def read_matching_equipments(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_services.get_matching_equipments(db, params)


@router.get("/comparison-data", response_model=List[Dict[str, Any]], summary="장비 간 비교 데이터 조회")
async def read_comparison_data(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """`targetEqps`의 장비들에 대해 최신순 최대 5000행을 조회합니다."""
    return await wafer_services.get_comparison_data(db, params)


# =============================================================================
# 4. Wafer Map (PDF -> PNG)
# =============================================================================
@router.get("/check-pdf", response_model=wafer_schemas.PdfCheckResponse, summary="Wafer Map PDF 존재 확인")
async def read_check_pdf(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await wafer_map.check_pdf(db, params)


@router.get("/pdf-image", response_model=wafer_schemas.PdfImageResponse, summary="Wafer Map 이미지 조회")
async def read_pdf_image(
    params: wafer_schemas.WaferQueryParams = Depends(wafer_query_params),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Wafer Map PDF의 포인트 페이지를 PNG(base64)로 반환합니다.
    - `eqpId`, `dateTime`, `pointNumber` 필수
    """
    try:
        image = await wafer_map.get_pdf_image(db, params)
    except wafer_map.WaferMapRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except wafer_map.WaferMapNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except wafer_map.WaferMapProcessingError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process wafer map PDF.",
        )
    return {"image": image}
