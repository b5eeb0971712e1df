# app/core/config.py

import os
import tempfile
from typing import Any, List, Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# 프로젝트의 루트 디렉토리 경로를 계산합니다.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class Settings(BaseSettings):
    """
    애플리케이션의 모든 설정을 정의하는 Pydantic BaseSettings 모델입니다.
    환경 변수 및 .env 파일에서 값을 자동으로 로드합니다.
    """

    # --- Pydantic Settings 설정 ---
    model_config = SettingsConfigDict(
        env_file=os.path.join(BASE_DIR, '.env'),  # 프로젝트 루트의 .env 파일을 명시적으로 지정
        env_file_encoding='utf-8',           # .env 파일 인코딩
        extra='ignore',                      # .env 파일에 정의되었지만 모델에 없는 변수는 무시
        case_sensitive=True                  # 환경 변수 이름 대소문자 구분
    )

    # --- 애플리케이션 기본 설정 ---
    APP_NAME: str = "ITM Data API"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Equipment monitoring (ITM) data API: wafer metrology, spectra and wafer maps"
    # 애플리케이션 환경 (예: "development", "production", "testing")
    APP_ENV: str = Field("development", description="Application environment (e.g., development, production, testing)")
    # 디버그 모드 활성화 여부
    DEBUG_MODE: bool = Field(False, description="Enable debug mode for detailed logging and SQL echo")
    LOG_LEVEL: str = Field("INFO", description="Root logger level")
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")

    # --- 데이터베이스 설정 ---
    DATABASE_URL: SecretStr = Field(..., description="PostgreSQL database connection URL (postgresql+asyncpg://...)")

    # --- 시간대 설정 ---
    # 기본 조회 기간, '이번 달' 판정 등 벽시계 기준 계산에 사용하는 시간대입니다.
    TIMEZONE: str = Field("Asia/Seoul", description="IANA timezone used for wall-clock dates")

    # --- Wafer Map(PDF -> PNG) 설정 ---
    POPPLER_BIN_PATH: Optional[str] = Field(None, description="Directory holding the pdftocairo executable")
    WAFER_MAP_CACHE_DIR: str = Field(default_factory=tempfile.gettempdir, description="Directory for rendered PNG cache and temp files")
    WAFER_MAP_DOWNLOAD_TIMEOUT: float = Field(10.0, description="PDF download timeout in seconds")
    WAFER_MAP_CONVERT_TIMEOUT: float = Field(60.0, description="pdftocairo timeout in seconds")
    WAFER_MAP_RETRY_DELAY: float = Field(0.5, description="Delay before the page-1 fallback conversion, in seconds")
    # 파일명에 Lot/Wafer가 일치하는 후보가 없을 때의 정책
    WAFER_MAP_UNMATCHED_POLICY: Literal["not_found", "newest"] = Field(
        "not_found", description="Policy when no wafer-map candidate matches lot/wafer in its filename"
    )

    # Post-initialization validation (Pydantic v2 BaseSettings)
    def model_post_init(self, __context: Any) -> None:  # noqa: ANN001
        # 캐시 디렉토리가 상대 경로이면 프로젝트 루트 기준으로 변환합니다.
        if not os.path.isabs(self.WAFER_MAP_CACHE_DIR):
            self.WAFER_MAP_CACHE_DIR = os.path.join(BASE_DIR, self.WAFER_MAP_CACHE_DIR)


settings = Settings()
