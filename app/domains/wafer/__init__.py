# app/domains/wafer/__init__.py

"""
'wafer' 도메인 패키지입니다.

웨이퍼 계측 데이터(plg_wf_flat), 월별로 분할된 스펙트럼 테이블(plg_onto_spectrum),
Wafer Map PDF 기록(plg_wf_map)을 조회하고 분석 결과를 제공합니다.

주요 서브모듈:
- `models.py`: 계측/스펙트럼/Wafer Map 테이블에 매핑되는 SQLModel 정의.
- `partitions.py`: 스펙트럼 월별 파티션 테이블 선택.
- `filters.py`: 조회 조건(WHERE 절) 생성.
- `crud.py`: 테이블 조회 로직.
- `services.py`: 통계, Residual, 스펙트럼 가공 등 응답 조립.
- `wafer_map.py`: PDF 다운로드 및 PNG 변환.
- `routers.py`: API 엔드포인트.
"""
