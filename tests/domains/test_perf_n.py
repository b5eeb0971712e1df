# tests/domains/test_perf_n.py

"""
'perf' 도메인 (장비 성능/램프 수명/Pre-Align) 조회에 대한 테스트입니다.

- 프로세스 성능 구간 평균
- ITM Agent 트렌드 (기본 60초 구간, Site/SDWT 범위)
- Pre-Align 트렌드 (NULL -> 0, DB 오류 시 빈 목록)
"""

from datetime import datetime

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from app.domains.perf import crud as perf_crud
from app.domains.perf import models as perf_models
from app.domains.perf import services as perf_services
from tests.conftest import FakeResult, FakeSession


def _row(ts: datetime, process: str, cpu, mem, eqpid: str = "EQP01") -> dict:
    return {"eqpid": eqpid, "serv_ts": ts, "process_name": process, "cpu_usage": cpu, "memory_usage_mb": mem}


# =============================================================================
# 1. 구간 평균
# =============================================================================
def test_bucket_start_floors_to_interval():
    assert perf_services.bucket_start(datetime(2025, 3, 1, 10, 0, 59), 60) == datetime(2025, 3, 1, 10, 0, 0)
    assert perf_services.bucket_start(datetime(2025, 3, 1, 10, 7, 30), 300) == datetime(2025, 3, 1, 10, 5, 0)


def test_average_by_interval_groups_per_process():
    rows = [
        _row(datetime(2025, 3, 1, 10, 0, 5), "ITM_Agent", 10, 100),
        _row(datetime(2025, 3, 1, 10, 0, 35), "ITM_Agent", 20, None),
        _row(datetime(2025, 3, 1, 10, 0, 40), "Other", 50, 500),
        _row(datetime(2025, 3, 1, 10, 1, 10), "ITM_Agent", 30, 300),
    ]
    items = perf_services.average_by_interval(rows, 60)

    assert [(i["serv_ts"].minute, i["process_name"]) for i in items] == [(0, "ITM_Agent"), (0, "Other"), (1, "ITM_Agent")]
    assert items[0]["cpu_usage"] == 15
    assert items[0]["memory_usage_mb"] == 100
    assert items[2]["cpu_usage"] == 30


def test_average_by_interval_all_null_values():
    items = perf_services.average_by_interval([_row(datetime(2025, 3, 1, 10, 0), "P", None, None)], 60)
    assert items[0]["cpu_usage"] is None
    assert items[0]["memory_usage_mb"] is None


# =============================================================================
# 2. 서비스
# =============================================================================
@pytest.mark.asyncio
async def test_process_history_without_interval_returns_raw_rows(monkeypatch):
    rows = [_row(datetime(2025, 3, 1, 10, 0, 5), "P", 1, 2), _row(datetime(2025, 3, 1, 10, 0, 6), "P", 3, 4)]

    async def fake_rows(db, **kwargs):
        assert kwargs["eqp_id"] == "EQP01"
        return rows

    monkeypatch.setattr(perf_crud.process_perf, "get_rows", fake_rows)
    result = await perf_services.get_process_history(FakeSession(), start_date=None, end_date=None, eqp_id="EQP01")

    assert result == rows


@pytest.mark.asyncio
async def test_process_history_requires_equipment():
    session = FakeSession()
    assert await perf_services.get_process_history(session, start_date=None, end_date=None, eqp_id=None) == []
    assert session.statements == []


@pytest.mark.asyncio
async def test_itm_agent_trend_defaults_to_sixty_seconds(monkeypatch):
    captured = {}

    async def fake_rows(db, **kwargs):
        captured.update(kwargs)
        return [
            _row(datetime(2025, 3, 1, 10, 0, 1), "ITM_Agent", 10, 100),
            _row(datetime(2025, 3, 1, 10, 0, 59), "ITM_Agent", 30, 300),
        ]

    monkeypatch.setattr(perf_crud.process_perf, "get_rows", fake_rows)
    items = await perf_services.get_itm_agent_trend(FakeSession(), site="SITE_A", interval="abc")

    assert captured["process_name"] == "ITM_Agent"
    assert captured["site"] == "SITE_A"
    assert len(items) == 1
    assert items[0]["cpu_usage"] == 20


@pytest.mark.asyncio
async def test_process_rows_scope_by_site(compile_sql):
    session = FakeSession([FakeResult([])])
    await perf_crud.process_perf.get_rows(
        session,
        start_at=datetime(2025, 3, 1),
        end_at=datetime(2025, 3, 2),
        process_name="ITM_Agent",
        site="SITE_A",
    )
    compiled = compile_sql(session.statements[0])

    assert "eqp_proc_perf.eqpid IN (SELECT" in str(compiled)
    assert "ITM_Agent" in compiled.params.values()
    assert "SITE_A" in compiled.params.values()


@pytest.mark.asyncio
async def test_performance_history_requires_equipment_list():
    assert await perf_services.get_performance_history(FakeSession(), start_date=None, end_date=None, eqpids=" , ") == []


@pytest.mark.asyncio
async def test_prealign_trend_fills_nulls_with_zero(monkeypatch):
    async def fake_trend(db, **kwargs):
        return [{"serv_ts": datetime(2025, 3, 1, 10, 0), "eqpid": "EQP01", "xmm": None, "ymm": 0.12, "notch": None}]

    monkeypatch.setattr(perf_crud.prealign, "get_trend", fake_trend)
    items = await perf_services.get_prealign_trend(FakeSession(), eqp_id="EQP01")

    assert items == [{"timestamp": datetime(2025, 3, 1, 10, 0), "eqp_id": "EQP01", "xmm": 0, "ymm": 0.12, "notch": 0}]


@pytest.mark.asyncio
async def test_prealign_trend_returns_empty_on_database_error(monkeypatch):
    async def failing_trend(db, **kwargs):
        raise OperationalError("SELECT", {}, Exception("timeout"))

    monkeypatch.setattr(perf_crud.prealign, "get_trend", failing_trend)
    assert await perf_services.get_prealign_trend(FakeSession()) == []


# =============================================================================
# 3. 엔드포인트
# =============================================================================
@pytest.mark.asyncio
async def test_prealign_endpoint_uses_camel_case(client: AsyncClient, monkeypatch):
    async def fake_trend(db, **kwargs):
        return [{"serv_ts": datetime(2025, 3, 1, 10, 0), "eqpid": "EQP01", "xmm": 0.1, "ymm": None, "notch": 1.5}]

    monkeypatch.setattr(perf_crud.prealign, "get_trend", fake_trend)
    response = await client.get("/api/prealign/trend", params={"eqpId": "EQP01"})

    assert response.status_code == 200
    assert response.json() == [{"timestamp": "2025-03-01T10:00:00", "eqpId": "EQP01", "xmm": 0.1, "ymm": 0, "notch": 1.5}]


@pytest.mark.asyncio
async def test_lamplife_endpoint(client: AsyncClient, fake_session, compile_sql):
    lamp = perf_models.EqpLampLife(eqpid="EQP01", lamp_id="L1", age_hour=1200.0, lifespan_hour=2000.0)
    fake_session.results.append(FakeResult([lamp]))
    response = await client.get("/api/lamplife", params={"site": "SITE_A", "sdwt": "SDWT1"})

    assert response.status_code == 200
    assert response.json()[0]["lampId"] == "L1"
    assert response.json()[0]["ageHour"] == 1200.0
    compiled = compile_sql(fake_session.statements[0])
    assert "SITE_A" in compiled.params.values()
    assert "SDWT1" in compiled.params.values()


@pytest.mark.asyncio
async def test_process_history_endpoint_buckets_when_interval_given(client: AsyncClient, monkeypatch):
    async def fake_rows(db, **kwargs):
        return [
            _row(datetime(2025, 3, 1, 10, 0, 1), "P", 10, 100),
            _row(datetime(2025, 3, 1, 10, 0, 2), "P", 20, 200),
        ]

    monkeypatch.setattr(perf_crud.process_perf, "get_rows", fake_rows)
    response = await client.get("/api/performance/process-history", params={"eqpId": "EQP01", "interval": "60"})

    assert response.status_code == 200
    assert response.json() == [{
        "eqpid": "EQP01", "servTs": "2025-03-01T10:00:00", "processName": "P",
        "cpuUsage": 15.0, "memoryUsageMb": 150.0,
    }]
