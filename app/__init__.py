# app/__init__.py

"""
ITM Data API 애플리케이션의 메인 패키지입니다.

FastAPI 애플리케이션의 진입점 (main.py)과
공통 설정, 데이터베이스 연결을 담는 core 서브패키지,
그리고 각 데이터 도메인(wafer, perf, error, ref)을 대표하는 domains 서브패키지로 구성됩니다.
"""

APP_NAME = "ITM Data API"
APP_VERSION = "0.1.0"
API_PREFIX = "/api"  # API 라우트의 공통 접두사 (프론트엔드가 /api/wafer 등으로 호출)

__version__ = APP_VERSION
__title__ = APP_NAME
__description__ = "ITM equipment-monitoring data API backend."
__all__ = []
