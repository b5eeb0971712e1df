# app/domains/wafer/models.py

"""
'wafer' 도메인 (웨이퍼 계측 데이터)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

모든 테이블은 외부 수집 프로세스가 적재하며, 이 API는 조회만 수행합니다.
- plg_wf_flat: 포인트별 계측 결과(Flat) 데이터
- plg_onto_spectrum: 포인트별 스펙트럼(EXP/GEN) 데이터. 지난 달 이전 데이터는 월별 파티션에 저장됩니다.
- plg_wf_map: 웨이퍼 맵 PDF 파일 경로
- cfg_lot_uniformity_metrics: 통계/트렌드에 노출할 메트릭 허용 목록
"""

import datetime as dt
from typing import List, Optional

from sqlalchemy import ARRAY, Column, Float, String
from sqlmodel import Field, SQLModel


# =============================================================================
# 1. public.plg_wf_flat 테이블 모델
# =============================================================================
class PlgWfFlat(SQLModel, table=True):
    """
    포인트 단위 계측 결과 테이블입니다.
    (eqpid, datetime, lotid, waferid, point) 조합이 유일하며, 메트릭 컬럼은 NULL일 수 있습니다.
    메트릭 컬럼은 운영 중 추가될 수 있으므로, 동적 컬럼은 information_schema로 확인 후 사용합니다.
    """
    __tablename__ = "plg_wf_flat"
    __table_args__ = {'schema': 'public'}

    eqpid: str = Field(primary_key=True, max_length=50, description="장비 ID")
    datetime: dt.datetime = Field(primary_key=True, description="장비 보고 측정 일시")
    lotid: str = Field(primary_key=True, max_length=100, description="Lot ID")
    waferid: int = Field(primary_key=True, description="Wafer 번호 (정수)")
    point: int = Field(primary_key=True, description="측정 포인트 번호")

    serv_ts: Optional[dt.datetime] = Field(default=None, description="서버 수집 일시")
    cassettercp: Optional[str] = Field(default=None, max_length=100, description="Cassette Recipe")
    stagercp: Optional[str] = Field(default=None, max_length=100, description="Stage Recipe")
    stagegroup: Optional[str] = Field(default=None, max_length=100, description="Stage Group")
    film: Optional[str] = Field(default=None, max_length=100, description="Film")

    # 위치 정보
    x: Optional[float] = Field(default=None)
    y: Optional[float] = Field(default=None)
    diex: Optional[float] = Field(default=None)
    diey: Optional[float] = Field(default=None)
    dierow: Optional[int] = Field(default=None)
    diecol: Optional[int] = Field(default=None)
    dienum: Optional[int] = Field(default=None)
    diepointtag: Optional[str] = Field(default=None, max_length=50)

    # 기본 메트릭
    t1: Optional[float] = Field(default=None, description="두께 Fit 값")
    gof: Optional[float] = Field(default=None, description="Goodness of Fit")
    z: Optional[float] = Field(default=None)
    srvisz: Optional[float] = Field(default=None)
    mse: Optional[float] = Field(default=None, description="Mean Square Error")
    thickness: Optional[float] = Field(default=None)


# =============================================================================
# 2. public.plg_onto_spectrum 테이블 모델
# =============================================================================
class PlgOntoSpectrum(SQLModel, table=True):
    """
    포인트별 스펙트럼 테이블입니다. 이번 달 데이터만 이 테이블에 있고,
    이전 데이터는 plg_onto_spectrum_yYYYYmMM 파티션 테이블에 있습니다. (partitions.py 참고)

    waferid는 문자열로 저장되므로 plg_wf_flat과 조인할 때 정수로 변환해야 합니다.
    """
    __tablename__ = "plg_onto_spectrum"
    __table_args__ = {'schema': 'public'}

    eqpid: str = Field(primary_key=True, max_length=50, description="장비 ID")
    ts: dt.datetime = Field(primary_key=True, description="스캔 일시")
    lotid: str = Field(primary_key=True, max_length=100, description="Lot ID")
    waferid: str = Field(primary_key=True, max_length=20, description="Wafer 번호 (문자열)")
    point: int = Field(primary_key=True, description="측정 포인트 번호")
    # 'class'는 파이썬 예약어이므로 속성명을 class_로 매핑합니다.
    class_: str = Field(sa_column=Column("class", String(10), primary_key=True), description="EXP(측정) / GEN(모델)")

    wavelengths: List[float] = Field(default_factory=list, sa_column=Column(ARRAY(Float)))
    values: List[float] = Field(default_factory=list, sa_column=Column(ARRAY(Float)))


# =============================================================================
# 3. public.plg_wf_map 테이블 모델
# =============================================================================
class PlgWfMap(SQLModel, table=True):
    """
    웨이퍼 맵 PDF 파일의 위치 정보입니다.
    같은 장비/일시에 여러 파일이 있을 수 있으며, 파일명의 Lot/Wafer 문자열로 구분합니다.
    """
    __tablename__ = "plg_wf_map"
    __table_args__ = {'schema': 'public'}

    eqpid: str = Field(primary_key=True, max_length=50, description="장비 ID")
    datetime: dt.datetime = Field(primary_key=True, description="측정 일시")
    file_uri: str = Field(primary_key=True, description="PDF 파일 URI")
    original_filename: Optional[str] = Field(default=None, description="원본 파일명")


# =============================================================================
# 4. public.cfg_lot_uniformity_metrics 테이블 모델
# =============================================================================
class CfgLotUniformityMetric(SQLModel, table=True):
    """
    통계/트렌드 화면에 노출할 메트릭 설정입니다. is_excluded = 'N'인 항목만 사용합니다.
    설정값이 실제 컬럼에 없을 수 있으므로 반드시 실제 컬럼 목록과 교집합하여 사용합니다.
    """
    __tablename__ = "cfg_lot_uniformity_metrics"
    __table_args__ = {'schema': 'public'}

    metric_name: str = Field(primary_key=True, max_length=100, description="메트릭 컬럼명")
    is_excluded: str = Field(default="N", max_length=1, description="제외 여부 ('Y'/'N')")
