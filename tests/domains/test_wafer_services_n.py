# tests/domains/test_wafer_services_n.py

"""
'wafer' 도메인 서비스(services.py)와 조회 쿼리(crud.py)에 대한 단위 테스트입니다.

DB 없이 동작하도록 CRUD 싱글톤의 메서드를 monkeypatch로 교체하거나,
FakeSession에 기록된 SQL 문을 컴파일하여 검사합니다.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.domains.wafer import crud as wafer_crud
from app.domains.wafer import services as wafer_services
from app.domains.wafer.schemas import WaferQueryParams
from tests.conftest import FakeResult, FakeSession


def _db_error():
    return OperationalError("SELECT", {}, Exception("connection lost"))


# =============================================================================
# 1. 통계 계산
# =============================================================================
def test_metric_stats_for_three_values():
    """값 [10, 12, 14]: max 14, min 10, range 4, mean 12, std 2, %std ≈ 16.67, %NonU ≈ 16.67"""
    row = {"t1_max": 14, "t1_min": 10, "t1_mean": 12, "t1_std": 2}
    stats = wafer_services.build_metric_stats(row, ["t1"])["t1"]

    assert stats["max"] == 14
    assert stats["min"] == 10
    assert stats["range"] == 4
    assert stats["mean"] == 12
    assert stats["stdDev"] == 2
    assert stats["percentStdDev"] == pytest.approx(16.6667, rel=1e-4)
    assert stats["percentNonU"] == pytest.approx(16.6667, rel=1e-4)


def test_metric_stats_invariants_and_zero_mean():
    row = {
        "gof_max": 0.99, "gof_min": 0.91, "gof_mean": 0.95, "gof_std": 0.02,
        "z_max": 0, "z_min": 0, "z_mean": 0, "z_std": None,
        "mse_max": None, "mse_min": None, "mse_mean": None, "mse_std": None,
    }
    stats = wafer_services.build_metric_stats(row, ["gof", "z", "mse"])

    assert stats["gof"]["range"] == pytest.approx(stats["gof"]["max"] - stats["gof"]["min"])
    assert stats["gof"]["percentStdDev"] == pytest.approx(stats["gof"]["stdDev"] / stats["gof"]["mean"] * 100)
    assert stats["z"]["percentStdDev"] == 0
    assert stats["z"]["percentNonU"] == 0
    assert stats["z"]["stdDev"] == 0
    assert "mse" not in stats


def test_compute_residuals_against_mean():
    rows = [
        {"point": 1, "x": 0.0, "y": 0.0, "value": 10},
        {"point": 2, "x": 1.0, "y": 0.0, "value": 14},
        {"point": 3, "x": 0.0, "y": 1.0, "value": None},
    ]
    residuals = wafer_services.compute_residuals(rows)

    assert [r["point"] for r in residuals] == [1, 2]
    assert [r["residual"] for r in residuals] == [-2.0, 2.0]
    assert wafer_services.compute_residuals([{"point": 1, "value": None}]) == []


def test_summarize_empty_spectrum_is_all_zero():
    assert wafer_services.summarize_spectrum([], []) == {
        "totalIntensity": 0, "peakIntensity": 0, "peakWavelength": 0, "darkNoise": 0,
    }


def test_summarize_spectrum_peak():
    summary = wafer_services.summarize_spectrum([400.0, 500.0, 600.0], [0.2, 0.9, 0.1])

    assert summary["peakIntensity"] == 0.9
    assert summary["peakWavelength"] == 500.0
    assert summary["darkNoise"] == 0.1
    assert summary["totalIntensity"] == pytest.approx(1.2)


def test_scale_curve_multiplies_by_hundred_and_rejects_mismatch():
    assert wafer_services.scale_curve([400.0, 410.0], [0.5, 0.25]) == [[400.0, 50.0], [410.0, 25.0]]
    assert wafer_services.scale_curve([400.0], [0.5, 0.25]) == []


def test_group_uniformity_rows_by_wafer():
    rows = [
        {"waferid": 1, "point": 1, "value": 10, "x": 0, "y": 0, "dierow": 1, "diecol": 1},
        {"waferid": 2, "point": 1, "value": 11, "x": 0, "y": 0, "dierow": 1, "diecol": 1},
        {"waferid": 1, "point": 2, "value": 12, "x": 1, "y": 0, "dierow": 1, "diecol": 2},
    ]
    series = wafer_services.group_uniformity_rows(rows)

    assert [s["waferId"] for s in series] == [1, 2]
    assert [p["point"] for p in series[0]["dataPoints"]] == [1, 2]
    assert series[0]["dataPoints"][1]["dieCol"] == 2


def test_order_point_headers_fixed_then_alphabetical():
    headers = wafer_services.order_point_headers(["zeta", "t1", "point", "alpha", "mse"])
    assert headers == ["point", "mse", "t1", "alpha", "zeta"]


# =============================================================================
# 2. 메트릭 컬럼 결정
# =============================================================================
@pytest.mark.asyncio
async def test_metric_config_failure_rolls_back_and_uses_defaults(monkeypatch):
    session = FakeSession()

    async def failing_names(db):
        raise _db_error()

    async def live_columns(db, table_name="plg_wf_flat"):
        return {"t1", "gof", "mse", "eqpid"}

    monkeypatch.setattr(wafer_crud.metric_config, "get_included_names", failing_names)
    monkeypatch.setattr(wafer_crud, "get_live_columns", live_columns)

    columns = await wafer_services.resolve_metric_columns(session, defaults=["t1", "gof", "missing"], always=["mse"])

    assert columns == ["t1", "gof", "mse"]
    assert session.rolled_back is True


@pytest.mark.asyncio
async def test_stat_columns_exclude_position_columns(monkeypatch):
    async def names(db):
        return ["X", "Thickness", "custom"]

    async def live_columns(db, table_name="plg_wf_flat"):
        return {"t1", "gof", "x", "thickness", "custom"}

    monkeypatch.setattr(wafer_crud.metric_config, "get_included_names", names)
    monkeypatch.setattr(wafer_crud, "get_live_columns", live_columns)

    assert await wafer_services.resolve_stat_columns(FakeSession()) == ["t1", "gof", "thickness", "custom"]


@pytest.mark.asyncio
async def test_statistics_without_equipment_returns_empty(monkeypatch):
    async def unexpected(*args, **kwargs):
        raise AssertionError("should not query")

    monkeypatch.setattr(wafer_services, "resolve_stat_columns", unexpected)
    assert await wafer_services.get_statistics(FakeSession(), WaferQueryParams(lot_id="LOT1")) == {}


@pytest.mark.asyncio
async def test_statistics_returns_empty_on_database_error(monkeypatch):
    async def metrics(db):
        return ["t1"]

    async def failing_aggregate(db, **kwargs):
        raise _db_error()

    monkeypatch.setattr(wafer_services, "resolve_stat_columns", metrics)
    monkeypatch.setattr(wafer_crud.flat, "aggregate_metrics", failing_aggregate)

    assert await wafer_services.get_statistics(FakeSession(), WaferQueryParams(eqp_id="EQP01", lot_id="LOT1")) == {}


@pytest.mark.asyncio
async def test_available_metrics_without_equipment_returns_candidates(monkeypatch):
    async def names(db):
        return ["t1", "gof", "unknown"]

    async def live_columns(db, table_name="plg_wf_flat"):
        return {"t1", "gof"}

    monkeypatch.setattr(wafer_crud.metric_config, "get_included_names", names)
    monkeypatch.setattr(wafer_crud, "get_live_columns", live_columns)

    assert await wafer_services.get_available_metrics(FakeSession(), WaferQueryParams()) == ["t1", "gof"]


# =============================================================================
# 3. 목록 조회
# =============================================================================
@pytest.mark.asyncio
async def test_flat_data_paging_defaults(monkeypatch):
    captured = {}

    async def fake_page(db, *, params, skip, limit):
        captured.update(skip=skip, limit=limit)
        return 1, [{
            "eqpid": "EQP01", "lotid": "LOT1", "waferid": 3, "serv_ts": datetime(2025, 3, 1, 10, 0),
            "datetime": datetime(2025, 3, 1, 9, 59), "cassettercp": "C", "stagercp": "S",
            "stagegroup": "G", "film": "F",
        }]

    monkeypatch.setattr(wafer_crud.flat, "get_flat_page", fake_page)
    page = await wafer_services.get_flat_data(FakeSession(), WaferQueryParams(page="2"))

    assert captured == {"skip": 40, "limit": 20}
    assert page["totalItems"] == 1
    assert page["items"][0]["waferId"] == 3
    assert page["items"][0]["eqpId"] == "EQP01"


@pytest.mark.asyncio
async def test_distinct_values_unknown_field_returns_empty():
    session = FakeSession()
    assert await wafer_services.get_distinct_values(session, WaferQueryParams(field="secret")) == []
    assert session.statements == []


@pytest.mark.asyncio
async def test_distinct_points_with_equipment_only_filters_by_scan_time(compile_sql):
    session = FakeSession([FakeResult([1, 2, 5])])
    points = await wafer_services.get_distinct_points(session, WaferQueryParams(eqp_id="EQP01"))
    sql = str(compile_sql(session.statements[0]))

    assert points == ["1", "2", "5"]
    assert "plg_onto_spectrum.ts >=" in sql
    assert "plg_onto_spectrum.ts <=" in sql


@pytest.mark.asyncio
async def test_distinct_points_with_lot_has_no_time_filter(compile_sql):
    session = FakeSession([FakeResult([1])])
    await wafer_services.get_distinct_points(session, WaferQueryParams(eqp_id="EQP01", lot_id="LOT1"))
    compiled = compile_sql(session.statements[0])

    assert "plg_onto_spectrum.ts >=" not in str(compiled)
    assert "LOT1" in compiled.params.values()


@pytest.mark.asyncio
async def test_optical_trend_requires_range():
    session = FakeSession()
    assert await wafer_services.get_optical_trend(session, WaferQueryParams(eqp_id="EQP01")) == []
    assert session.statements == []


@pytest.mark.asyncio
async def test_optical_trend_summarizes_each_row(monkeypatch):
    async def rows(db, **kwargs):
        return [{"ts": datetime(2025, 3, 1), "lotid": "LOT1", "waferid": "3", "point": 1, "wavelengths": None, "values": None}]

    monkeypatch.setattr(wafer_crud.spectrum, "get_optical_rows", rows)
    params = WaferQueryParams(eqp_id="EQP01", start_date="2025-03-01", end_date="2025-03-02")
    items = await wafer_services.get_optical_trend(FakeSession(), params)

    assert items[0]["totalIntensity"] == 0
    assert items[0]["peakWavelength"] == 0
    assert items[0]["lotId"] == "LOT1"


# =============================================================================
# 4. 스펙트럼
# =============================================================================
@pytest.mark.asyncio
async def test_spectrum_gen_compares_wafer_as_integer(monkeypatch):
    captured = {}

    async def exists(db, name):
        captured["table"] = name
        return True

    async def curves(db, **kwargs):
        captured.update(kwargs)
        return [{"class": "GEN", "wavelengths": [400.0, 410.0], "values": [0.5, 0.25], "ts": kwargs["ts_from"]}]

    monkeypatch.setattr(wafer_services, "partition_exists", exists)
    monkeypatch.setattr(wafer_crud.spectrum, "get_curves", curves)

    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", wafer_id="3", point_id="5", ts="2020-01-15T10:00:00.000Z")
    series = await wafer_services.get_spectrum_gen(FakeSession(), params)

    assert captured["table"] == "plg_onto_spectrum_y2020m01"
    assert captured["wafer_id"] == 3
    assert captured["point"] == 5
    assert captured["class_"] == "GEN"
    assert captured["ts_to"] - captured["ts_from"] == timedelta(seconds=4)
    assert series["name"] == "Model (W3)"
    assert series["data"] == [[400.0, 50.0], [410.0, 25.0]]
    assert series["symbol"] == "none"


@pytest.mark.asyncio
async def test_spectrum_missing_partition_returns_empty(monkeypatch):
    async def missing(db, name):
        return False

    async def unexpected(*args, **kwargs):
        raise AssertionError("should not query a missing partition")

    monkeypatch.setattr(wafer_services, "partition_exists", missing)
    monkeypatch.setattr(wafer_crud.spectrum, "get_curves", unexpected)

    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", wafer_id="3", point_number="5", ts="2020-01-15T10:00:00")
    assert await wafer_services.get_spectrum(FakeSession(), params) == []


@pytest.mark.asyncio
async def test_spectrum_returns_one_curve_per_class(monkeypatch):
    async def exists(db, name):
        return True

    async def curves(db, **kwargs):
        assert kwargs["ts_from"] == kwargs["ts_to"]
        return [
            {"class": "EXP", "wavelengths": [1.0], "values": [0.5]},
            {"class": "EXP", "wavelengths": [2.0], "values": [0.6]},
            {"class": "GEN", "wavelengths": [1.0], "values": [0.4]},
        ]

    monkeypatch.setattr(wafer_services, "partition_exists", exists)
    monkeypatch.setattr(wafer_crud.spectrum, "get_curves", curves)

    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", wafer_id="03", point_number="2", ts="2020-01-15T10:00:00")
    result = await wafer_services.get_spectrum(FakeSession(), params)

    assert [curve["class"] for curve in result] == ["EXP", "GEN"]
    assert result[0]["wavelengths"] == [1.0]


@pytest.mark.asyncio
async def test_golden_spectrum_uses_best_gof_wafer(monkeypatch):
    captured = {}

    async def best(db, **kwargs):
        return 7

    async def latest(db, **kwargs):
        captured.update(kwargs)
        return {"wavelengths": [400.0], "values": [0.3]}

    monkeypatch.setattr(wafer_crud.flat, "get_best_gof_wafer", best)
    monkeypatch.setattr(wafer_crud.spectrum, "get_latest_exp_curve", latest)

    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", point_id="4")
    golden = await wafer_services.get_golden_spectrum(FakeSession(), params)

    assert golden == {"wavelengths": [400.0], "values": [0.3]}
    assert captured["wafer_id"] == 7
    assert captured["point"] == 4


@pytest.mark.asyncio
async def test_spectrum_trend_requires_lot_point_and_wafers():
    session = FakeSession()
    params = WaferQueryParams(lot_id="LOT1", point_id="1", wafer_ids="x, ,")
    assert await wafer_services.get_spectrum_trend(session, params) == []
    assert session.statements == []


def test_build_trend_series_meta():
    row = {
        "waferid": "03", "wavelengths": [400.0], "values": [0.5], "ts": datetime(2025, 3, 1),
        "eqpid": "EQP01", "serv_ts": datetime(2025, 3, 1, 0, 1), "lotid": None, "metric_t1": 101.5,
    }
    series = wafer_services.build_trend_series(row, metrics=["t1"], point=2, lot_id="LOT1")

    assert series["waferId"] == 3
    assert series["name"] == "W03"
    assert series["meta"]["lotId"] == "LOT1"
    assert series["meta"]["t1"] == 101.5
    assert series["data"] == [[400.0, 50.0]]


@pytest.mark.asyncio
async def test_spectrum_gen_orders_by_distance_to_scan_time(compile_sql):
    session = FakeSession([FakeResult(["plg_onto_spectrum_y2020m01"]), FakeResult([])])
    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", wafer_id="3", point_id="5", ts="2020-01-15T10:00:00")

    assert await wafer_services.get_spectrum_gen(session, params) is None

    compiled = compile_sql(session.statements[1])
    order_by = str(compiled).split("ORDER BY", 1)[1]
    assert "abs(EXTRACT(epoch FROM" in order_by
    assert order_by.index("abs(EXTRACT") < order_by.index("ts DESC")
    assert datetime(2020, 1, 15, 10, 0) in compiled.params.values()


# =============================================================================
# 5. 장비 비교
# =============================================================================
@pytest.mark.asyncio
async def test_comparison_data_requires_targets_and_recipe():
    session = FakeSession()
    params = WaferQueryParams(start_date="2025-03-01", end_date="2025-03-07", cassette_rcp="CR1")

    assert await wafer_services.get_comparison_data(session, params) == []
    assert await wafer_services.get_comparison_data(
        session, WaferQueryParams(target_eqps="EQP01", start_date="2025-03-01", end_date="2025-03-07")
    ) == []
    assert session.statements == []


@pytest.mark.asyncio
async def test_comparison_data_newest_first_with_row_cap(compile_sql):
    row = {"eqpid": "EQP02", "lotid": "LOT1", "waferid": 1, "point": 1, "t1": 10.0, "gof": 0.9}
    session = FakeSession([
        FakeResult(["t1", "gof"]),
        FakeResult(["eqpid", "lotid", "waferid", "point", "t1", "gof", "mse"]),
        FakeResult([row]),
    ])
    params = WaferQueryParams(
        target_eqps="EQP01, EQP02", start_date="2025-03-01", end_date="2025-03-07", cassette_rcp="CR1", film="OX",
    )

    rows = await wafer_services.get_comparison_data(session, params)
    compiled = compile_sql(session.statements[2])
    sql = str(compiled)

    assert rows == [row]
    assert "ORDER BY public.plg_wf_flat.serv_ts DESC" in sql
    assert "LIMIT" in sql
    assert 5000 in compiled.params.values()
    assert ["EQP01", "EQP02"] in compiled.params.values()
    assert "CR1" in compiled.params.values()
    assert "OX" in compiled.params.values()
    assert "public.plg_wf_flat.t1" in sql
    assert "public.plg_wf_flat.mse" not in sql


@pytest.mark.asyncio
async def test_comparison_data_returns_empty_on_database_error(monkeypatch):
    async def failing_rows(db, **kwargs):
        raise _db_error()

    async def live_columns(db, table_name="plg_wf_flat"):
        return {"t1", "gof"}

    monkeypatch.setattr(wafer_crud, "get_live_columns", live_columns)
    monkeypatch.setattr(wafer_crud.flat, "get_comparison_rows", failing_rows)
    params = WaferQueryParams(target_eqps="EQP01", start_date="2025-03-01", end_date="2025-03-07", cassette_rcp="CR1")

    assert await wafer_services.get_comparison_data(FakeSession(), params) == []


@pytest.mark.asyncio
async def test_matching_equipments_requires_range_and_recipe():
    session = FakeSession()
    assert await wafer_services.get_matching_equipments(session, WaferQueryParams(cassette_rcp="CR1")) == []
    assert session.statements == []


@pytest.mark.asyncio
async def test_matching_equipments_filters_by_recipe_and_site(compile_sql):
    session = FakeSession([FakeResult(["EQP01", "EQP02"])])
    params = WaferQueryParams(
        start_date="2025-03-01", end_date="2025-03-07", cassette_rcp="CR1", site="FAB1", stage_group="SG",
    )

    eqp_ids = await wafer_services.get_matching_equipments(session, params)
    compiled = compile_sql(session.statements[0])
    sql = str(compiled)

    assert eqp_ids == ["EQP01", "EQP02"]
    assert "DISTINCT public.plg_wf_flat.eqpid" in sql
    assert "JOIN public.ref_sdwt" in sql
    assert "ORDER BY public.plg_wf_flat.eqpid" in sql
    assert {"CR1", "FAB1", "SG"} <= set(compiled.params.values())
    assert datetime(2025, 3, 1, 0, 0) in compiled.params.values()


# =============================================================================
# 6. Residual Map / Lot Uniformity
# =============================================================================
@pytest.mark.asyncio
async def test_residual_map_unknown_metric_returns_empty(monkeypatch):
    async def live_columns(db, table_name="plg_wf_flat"):
        return {"eqpid", "lotid", "waferid", "point", "x", "y", "t1"}

    async def unexpected(*args, **kwargs):
        raise AssertionError("unknown metric must not be queried")

    monkeypatch.setattr(wafer_crud, "get_live_columns", live_columns)
    monkeypatch.setattr(wafer_crud.flat, "get_scope_rows", unexpected)
    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", wafer_id="7", metric="thk")

    assert await wafer_services.get_residual_map(FakeSession(), params) == []
    assert await wafer_services.get_lot_uniformity_trend(FakeSession(), params) == []


@pytest.mark.asyncio
async def test_residual_map_keeps_wafer_condition(monkeypatch, compile_sql):
    async def live_columns(db, table_name="plg_wf_flat"):
        return {"eqpid", "lotid", "waferid", "point", "x", "y", "t1"}

    monkeypatch.setattr(wafer_crud, "get_live_columns", live_columns)
    rows = [{"point": 1, "x": 0.0, "y": 0.0, "t1": 10.0}, {"point": 2, "x": 1.0, "y": 1.0, "t1": 14.0}]
    session = FakeSession([FakeResult(rows)])
    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", wafer_id="7", metric="T1")

    residuals = await wafer_services.get_residual_map(session, params)
    compiled = compile_sql(session.statements[0])

    assert [item["residual"] for item in residuals] == [-2.0, 2.0]
    assert "public.plg_wf_flat.waferid = " in str(compiled)
    assert 7 in compiled.params.values()


@pytest.mark.asyncio
async def test_lot_uniformity_ignores_wafer_condition(monkeypatch, compile_sql):
    async def live_columns(db, table_name="plg_wf_flat"):
        return {"eqpid", "lotid", "waferid", "point", "x", "y", "dierow", "diecol", "t1"}

    monkeypatch.setattr(wafer_crud, "get_live_columns", live_columns)
    session = FakeSession([FakeResult([])])
    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", wafer_id="7", metric="t1")

    assert await wafer_services.get_lot_uniformity_trend(session, params) == []

    compiled = compile_sql(session.statements[0])
    sql = str(compiled)
    assert "public.plg_wf_flat.waferid = " not in sql
    assert "ORDER BY public.plg_wf_flat.waferid, public.plg_wf_flat.point" in sql
    assert 7 not in compiled.params.values()
    assert "LOT1" in compiled.params.values()
