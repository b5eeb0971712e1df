# app/domains/wafer/wafer_map.py

"""
Wafer Map PDF를 PNG 이미지로 변환하여 제공하는 모듈입니다.

처리 순서
1. plg_wf_map에서 장비/측정 일시가 일치하는 PDF URI를 찾습니다. (Lot/Wafer는 파일명으로 구분)
2. 캐시(WAFER_MAP_CACHE_DIR/wafer_{장비}_{yyyymmdd}_pt{포인트}.png)가 있으면 바로 반환합니다.
3. PDF를 HTTP(S)로 내려받습니다.
4. pdftocairo로 요청 페이지(포인트 번호)를 PNG로 변환합니다.
   실패하면 잠시 대기 후 1페이지로 한 번 더 변환합니다.
5. 결과를 캐시 경로로 옮기고(os.replace) base64 문자열로 반환합니다. 임시 파일은 항상 삭제합니다.
"""

import asyncio
import base64
import contextlib
import logging
import os
import re
import shutil
import subprocess
import sys
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Sequence
from urllib.parse import urlsplit

import aiofiles
import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.utils.dates import parse_db_timestamp, parse_int
from . import crud as wafer_crud
from .models import PlgWfMap
from .schemas import WaferQueryParams

logger = logging.getLogger(__name__)

FALLBACK_PAGE = 1
ALLOWED_SCHEMES = ("http", "https")


# =============================================================================
# 1. 예외
# =============================================================================
class WaferMapError(Exception):
    """Wafer Map 처리 중 발생하는 모든 예외의 기본 클래스입니다."""


class WaferMapNotFoundError(WaferMapError):
    """조건에 맞는 Wafer Map PDF가 없습니다. (404)"""


class WaferMapRequestError(WaferMapError):
    """필수 파라미터가 없거나 잘못되었습니다. (400)"""


class WaferMapProcessingError(WaferMapError):
    """DB 조회, 다운로드 또는 변환에 실패했습니다. (500)"""


class ConversionError(WaferMapError):
    """pdftocairo 1회 실행이 실패했습니다. 1페이지 재시도의 대상입니다."""


# (PDF 경로, 페이지, 출력 prefix) -> 생성된 PNG 경로
Converter = Callable[[Path, int, Path], Awaitable[Path]]


# =============================================================================
# 2. PDF URI 결정
# =============================================================================
def filename_matches(uri: str, lot_id: str, wafer_id: Optional[str] = None) -> bool:
    """
    파일명에 Lot ID('.' 또는 '_' 구분 모두 허용)와 Wafer ID(주어진 경우)가 포함되어 있는지 확인합니다.
    """
    filename = os.path.basename(urlsplit(uri).path) or os.path.basename(uri)
    target_lot = lot_id.strip()
    has_lot = target_lot in filename or target_lot.replace(".", "_") in filename
    has_wafer = str(wafer_id).strip() in filename if wafer_id else True
    return has_lot and has_wafer


def select_wafer_map(
    candidates: Sequence[PlgWfMap],
    *,
    lot_id: Optional[str] = None,
    wafer_id: Optional[str] = None,
    policy: str = "not_found",
) -> Optional[str]:
    """
    후보(최신순) 중 사용할 PDF URI를 고릅니다.
    Lot ID가 없으면 가장 최신 후보를 사용합니다.
    파일명이 일치하는 후보가 없으면 policy에 따라 None('not_found') 또는 최신 후보('newest')를 반환합니다.
    """
    uris = [candidate.file_uri for candidate in candidates if candidate.file_uri]
    if not uris:
        return None
    if not lot_id:
        return uris[0]

    matched = [uri for uri in uris if filename_matches(uri, lot_id, wafer_id)]
    if matched:
        logger.info("Wafer map matched: %s", matched[0])
        return matched[0]

    logger.warning("No wafer map candidate matched lot %s / wafer %s (policy=%s)", lot_id, wafer_id, policy)
    return uris[0] if policy == "newest" else None


async def find_wafer_map_url(db: AsyncSession, params: WaferQueryParams) -> Optional[str]:
    """
    장비와 측정 일시(정확히 일치)로 Wafer Map PDF URI를 찾습니다.
    필수 값이 없거나 일치하는 파일이 없으면 None이며, DB 오류는 그대로 전달합니다.
    """
    target_time = parse_db_timestamp(params.date_time or params.serv_ts)
    if not params.eqp_id or target_time is None:
        return None

    candidates = await wafer_crud.wafer_map.get_by_time(db, eqp_id=params.eqp_id, at=target_time)
    return select_wafer_map(
        candidates,
        lot_id=params.lot_id,
        wafer_id=params.wafer_id,
        policy=settings.WAFER_MAP_UNMATCHED_POLICY,
    )


async def check_pdf(db: AsyncSession, params: WaferQueryParams) -> Dict[str, Optional[object]]:
    """Wafer Map PDF 존재 여부를 확인합니다. DB 조회에 실패하면 없는 것으로 응답합니다."""
    try:
        url = await find_wafer_map_url(db, params)
    except SQLAlchemyError as e:
        logger.warning("Failed to check wafer map for %s: %s", params.eqp_id, e)
        return {"exists": False, "url": None}
    return {"exists": url is not None, "url": url}


# =============================================================================
# 3. 캐시
# =============================================================================
def cache_file_path(eqp_id: str, captured_at: datetime, point: int) -> Path:
    """캐시 파일 경로입니다. 장비 ID는 파일명에 안전한 문자로 바꿉니다."""
    safe_eqp_id = re.sub(r"[^A-Za-z0-9._-]", "_", eqp_id)
    filename = f"wafer_{safe_eqp_id}_{captured_at:%Y%m%d}_pt{point}.png"
    return Path(settings.WAFER_MAP_CACHE_DIR) / filename


async def read_cached_image(path: Path) -> Optional[bytes]:
    """캐시 이미지를 읽습니다. 0바이트 파일은 손상된 것으로 보고 삭제합니다."""
    if not path.is_file():
        return None
    if path.stat().st_size == 0:
        logger.warning("Removing empty cache file %s", path)
        path.unlink(missing_ok=True)
        return None
    async with aiofiles.open(path, "rb") as f:
        return await f.read()


# =============================================================================
# 4. 다운로드
# =============================================================================
async def download_pdf(
    url: str, destination: Path, *, timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None
) -> None:
    """
    PDF를 내려받아 destination에 저장합니다.
    환경 변수의 프록시 설정은 사용하지 않습니다. HTML 응답이나 빈 파일은 실패로 처리합니다.
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout, trust_env=False, follow_redirects=True, transport=transport
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                content_type = response.headers.get("content-type", "").lower()
                if "text/html" in content_type:
                    raise WaferMapProcessingError(f"Unexpected content type: {content_type}")
                async with aiofiles.open(destination, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        await f.write(chunk)
    except httpx.HTTPError as e:
        raise WaferMapProcessingError(f"Download failed: {e}") from e

    if not destination.is_file() or destination.stat().st_size == 0:
        raise WaferMapProcessingError("Downloaded PDF is empty or missing.")


# =============================================================================
# 5. 변환 (pdftocairo)
# =============================================================================
def pdftocairo_executable() -> str:
    """POPPLER_BIN_PATH가 있으면 그 안의 실행 파일을, 없으면 PATH에서 찾습니다."""
    name = "pdftocairo.exe" if sys.platform == "win32" else "pdftocairo"
    if settings.POPPLER_BIN_PATH:
        return str(Path(settings.POPPLER_BIN_PATH) / name)
    return shutil.which("pdftocairo") or name


async def _terminate(process: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        process.kill()
    await process.wait()


async def run_pdftocairo(
    pdf_path: Path, page: int, output_prefix: Path, *, timeout: Optional[float] = None
) -> Path:
    """
    PDF의 한 페이지를 PNG로 변환합니다.
    콘솔 창 없이 실행하며, 출력은 모두 메모리로 받습니다. 제한 시간을 넘기면 프로세스를 종료합니다.
    """
    timeout = timeout if timeout is not None else settings.WAFER_MAP_CONVERT_TIMEOUT
    output_path = output_prefix.with_name(f"{output_prefix.name}.png")
    output_path.unlink(missing_ok=True)

    args = [
        pdftocairo_executable(),
        "-png",
        "-f", str(page),
        "-l", str(page),
        "-singlefile",
        str(pdf_path),
        str(output_prefix),
    ]
    options = {}
    if sys.platform == "win32":
        options["creationflags"] = subprocess.CREATE_NO_WINDOW

    logger.debug("Executing %s (page %d)", args[0], page)
    started = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE, **options
        )
    except OSError as e:
        raise ConversionError(f"Failed to start pdftocairo: {e}") from e

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        await _terminate(process)
        raise ConversionError(f"Timed out after {timeout:g}s")
    except asyncio.CancelledError:
        await _terminate(process)
        raise

    logger.debug("Conversion took %.0fms", (time.monotonic() - started) * 1000)
    if process.returncode != 0:
        message = stderr.decode(errors="replace").strip()
        raise ConversionError(f"pdftocairo exited with {process.returncode}: {message}")
    if not output_path.is_file() or output_path.stat().st_size == 0:
        raise ConversionError("pdftocairo finished but PNG file was not created or empty.")
    return output_path


async def convert_with_fallback(
    converter: Converter, pdf_path: Path, page: int, output_prefix: Path, *, retry_delay: float
) -> Path:
    """
    요청 페이지 -> (대기) -> 1페이지 순서로 최대 두 번 변환을 시도합니다.
    두 번 모두 실패하면 WaferMapProcessingError를 발생시킵니다.
    """
    last_error: Optional[ConversionError] = None
    for attempt, target_page in enumerate((page, FALLBACK_PAGE)):
        if attempt > 0:
            logger.warning("Retrying with page %d after %.1fs delay", target_page, retry_delay)
            await asyncio.sleep(retry_delay)
        try:
            output_path = await converter(pdf_path, target_page, output_prefix)
        except ConversionError as e:
            logger.warning("Page %d conversion failed: %s", target_page, e)
            last_error = e
            continue
        if attempt > 0:
            logger.info("Fallback to page %d successful", target_page)
        return output_path

    raise WaferMapProcessingError("Failed to convert wafer map PDF.") from last_error


# =============================================================================
# 6. 전체 처리
# =============================================================================
async def get_pdf_image(
    db: AsyncSession, params: WaferQueryParams, *, converter: Optional[Converter] = None
) -> str:
    """
    Wafer Map PDF의 해당 포인트 페이지를 PNG(base64)로 반환합니다.
    - 필수 값(eqpId, dateTime, pointNumber)이 없으면 WaferMapRequestError
    - PDF URI가 없으면 WaferMapNotFoundError
    - DB 조회, 다운로드, 변환 실패 시 WaferMapProcessingError
    """
    captured_at = parse_db_timestamp(params.date_time)
    if not params.eqp_id or captured_at is None or params.point_number is None:
        raise WaferMapRequestError("EQP ID, DateTime, and PointNumber are required for PDF image.")

    page = max(parse_int(params.point_number) or FALLBACK_PAGE, FALLBACK_PAGE)

    try:
        url = await find_wafer_map_url(
            db,
            WaferQueryParams(eqp_id=params.eqp_id, lot_id=params.lot_id, wafer_id=params.wafer_id, date_time=params.date_time),
        )
    except SQLAlchemyError as e:
        logger.exception("Wafer map lookup failed for %s", params.eqp_id)
        raise WaferMapProcessingError("Failed to look up wafer map PDF.") from e
    if not url:
        logger.warning("No wafer map found for %s @ %s", params.eqp_id, params.date_time)
        raise WaferMapNotFoundError("PDF file URI not found in database.")

    if urlsplit(str(url)).scheme.lower() not in ALLOWED_SCHEMES:
        logger.warning("Skipped non-HTTP wafer map URL: %s", url)
        raise WaferMapProcessingError("Only HTTP/HTTPS URLs are supported.")

    cache_path = cache_file_path(params.eqp_id, captured_at, page)
    cached = await read_cached_image(cache_path)
    if cached is not None:
        logger.debug("Wafer map cache hit: %s", cache_path)
        return base64.b64encode(cached).decode("ascii")

    work_dir = cache_path.parent
    work_dir.mkdir(parents=True, exist_ok=True)
    temp_id = uuid.uuid4().hex
    pdf_path = work_dir / f"temp_wafer_{temp_id}.pdf"
    output_prefix = work_dir / f"temp_img_{temp_id}"
    output_path = output_prefix.with_name(f"{output_prefix.name}.png")

    try:
        logger.info("Downloading wafer map: %s", url)
        await download_pdf(str(url), pdf_path, timeout=settings.WAFER_MAP_DOWNLOAD_TIMEOUT)
        output_path = await convert_with_fallback(
            converter or run_pdftocairo,
            pdf_path,
            page,
            output_prefix,
            retry_delay=settings.WAFER_MAP_RETRY_DELAY,
        )
        async with aiofiles.open(output_path, "rb") as f:
            image = await f.read()
        # 같은 디렉터리의 변환 결과를 옮겨 캐시를 교체합니다. 읽는 쪽은 부분 파일을 보지 않습니다.
        os.replace(output_path, cache_path)
    except WaferMapProcessingError:
        logger.exception("Wafer map processing failed. URL: %s", url)
        raise
    except OSError as e:
        logger.exception("Wafer map file handling failed. URL: %s", url)
        raise WaferMapProcessingError("Failed to process PDF.") from e
    finally:
        for path in (pdf_path, output_path):
            with contextlib.suppress(OSError):
                path.unlink(missing_ok=True)

    return base64.b64encode(image).decode("ascii")
