# app/domains/error/__init__.py

"""
'error' 도메인 패키지입니다. 장비 에러 로그(plg_error)의 요약, 일별 추이, 목록을 조회합니다.
"""
