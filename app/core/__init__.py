# app/core/__init__.py

"""
설정(config), 데이터베이스(database), 공통 조회 기반 클래스(crud_base),
의존성(dependencies)을 모아 둔 핵심 서브패키지입니다.
"""
