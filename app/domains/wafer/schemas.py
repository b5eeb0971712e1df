# app/domains/wafer/schemas.py

"""
'wafer' 도메인의 요청 파라미터 및 응답 스키마를 정의하는 모듈입니다.

프론트엔드와의 호환을 위해 JSON 필드명은 camelCase를 사용합니다.
(파이썬 속성명은 snake_case, alias_generator로 camelCase 변환)
"""

from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.core.schemas import CamelModel


# =============================================================================
# 1. 요청 파라미터
# =============================================================================
class WaferQueryParams(CamelModel):
    """
    웨이퍼 조회 엔드포인트가 공통으로 받는 쿼리 파라미터입니다.
    모든 값은 문자열로 받고, 숫자/날짜 변환은 조회 로직에서 수행합니다.
    (잘못된 값은 예외 대신 '조건 없음' 또는 기본 기간으로 처리)
    """
    eqp_id: Optional[str] = None
    lot_id: Optional[str] = None
    wafer_id: Optional[str] = None
    wafer_ids: Optional[str] = None       # 콤마 구분 목록
    point_id: Optional[str] = None
    point_number: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    cassette_rcp: Optional[str] = None
    stage_rcp: Optional[str] = None
    stage_group: Optional[str] = None
    film: Optional[str] = None
    page: Optional[str] = None
    page_size: Optional[str] = None
    serv_ts: Optional[str] = None
    ts: Optional[str] = None
    date_time: Optional[str] = None
    metric: Optional[str] = None
    site: Optional[str] = None
    sdwt: Optional[str] = None
    target_eqps: Optional[str] = None     # 콤마 구분 장비 목록
    field: Optional[str] = None           # distinct-values 대상 컬럼


# =============================================================================
# 2. 스펙트럼 응답
# =============================================================================
class TrendSeries(CamelModel):
    """Wafer별 스펙트럼 트렌드 시리즈. data는 [파장, 강도(%)] 쌍의 목록입니다."""
    name: str
    wafer_id: Optional[int] = None
    point_id: Optional[int] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    data: List[List[float]] = Field(default_factory=list)


class ModelCurveSeries(CamelModel):
    """GEN(모델 Fit) 곡선. 차트 라이브러리에 바로 넘길 수 있는 형태입니다."""
    name: str
    type: str = "line"
    line_style: Dict[str, Any] = Field(default_factory=dict)
    data: List[List[float]] = Field(default_factory=list)
    symbol: str = "none"


class SpectrumCurve(BaseModel):
    """특정 스캔 시각의 EXP/GEN 곡선 원본입니다."""
    class_: str = Field(..., alias="class")
    wavelengths: List[float] = Field(default_factory=list)
    values: List[float] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class GoldenSpectrum(CamelModel):
    wavelengths: List[float] = Field(default_factory=list)
    values: List[float] = Field(default_factory=list)


# =============================================================================
# 3. Flat 데이터 응답
# =============================================================================
class FlatDataItem(CamelModel):
    eqp_id: Optional[str] = None
    lot_id: Optional[str] = None
    wafer_id: Optional[int] = None
    serv_ts: Optional[datetime] = None
    date_time: Optional[datetime] = None
    cassette_rcp: Optional[str] = None
    stage_rcp: Optional[str] = None
    stage_group: Optional[str] = None
    film: Optional[str] = None


class FlatDataPage(CamelModel):
    total_items: int = 0
    items: List[FlatDataItem] = Field(default_factory=list)


class PointDataTable(CamelModel):
    """포인트별 전체 컬럼 표. headers 순서대로 data의 각 행이 구성됩니다."""
    headers: List[str] = Field(default_factory=list)
    data: List[List[Any]] = Field(default_factory=list)


# =============================================================================
# 4. 통계 / 분석 응답
# =============================================================================
class MetricStats(CamelModel):
    max: float
    min: float
    range: float
    mean: float
    std_dev: float
    percent_std_dev: float
    percent_non_u: float


class ResidualPoint(CamelModel):
    point: Optional[int] = None
    x: Optional[float] = None
    y: Optional[float] = None
    residual: float


class UniformityPoint(CamelModel):
    point: Optional[int] = None
    value: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    die_row: Optional[int] = None
    die_col: Optional[int] = None


class UniformitySeries(CamelModel):
    wafer_id: int
    data_points: List[UniformityPoint] = Field(default_factory=list)


class OpticalTrendItem(CamelModel):
    ts: Optional[datetime] = None
    lot_id: Optional[str] = None
    wafer_id: Optional[str] = None
    point: Optional[int] = None
    total_intensity: float = 0
    peak_intensity: float = 0
    peak_wavelength: float = 0
    dark_noise: float = 0


# =============================================================================
# 5. Wafer Map(PDF) 응답
# =============================================================================
class PdfCheckResponse(CamelModel):
    exists: bool
    url: Optional[str] = None


class PdfImageResponse(CamelModel):
    image: str = Field(..., description="PNG 이미지 (base64)")
