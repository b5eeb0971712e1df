# tests/domains/__init__.py

"""
도메인별 테스트 모듈 패키지입니다. 파일명은 `test_<도메인>_n.py` 규칙을 따릅니다.
"""
