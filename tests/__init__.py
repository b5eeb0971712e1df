# tests/__init__.py

"""
ITM Data API의 테스트 스위트 패키지입니다.

- `conftest.py`: 테스트 클라이언트, 가짜 DB 세션(FakeSession), SQL 컴파일 도우미 픽스처.
- `domains/`: 도메인(wafer, ref, perf, error)별 테스트 모듈.

테스트는 실제 DB 없이 실행됩니다. 쿼리는 PostgreSQL 방언으로 컴파일하여 검사하고,
서비스 계층은 CRUD 싱글톤을 monkeypatch로 교체하여 검증합니다.
"""
