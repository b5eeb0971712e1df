# app/domains/ref/__init__.py

"""
'ref' 도메인 패키지입니다. 장비(ref_equipment)와 SDWT/Site(ref_sdwt) 기준 정보를 조회합니다.

주요 서브모듈:
- `models.py`: 기준 정보 테이블에 매핑되는 SQLModel 정의.
- `crud.py`: 조회 로직 및 Site/SDWT 범위 조건.
- `routers.py`: 필터용 API 엔드포인트.
"""
