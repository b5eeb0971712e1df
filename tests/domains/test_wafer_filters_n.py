# tests/domains/test_wafer_filters_n.py

"""
웨이퍼 조회 조건(filters.py)과 날짜 유틸리티(utils/dates.py)에 대한 단위 테스트입니다.

- Lot ID가 있으면 기간 조건이 없어야 합니다.
- Lot ID가 없으면 기간 조건(기본 최근 7일)이 항상 있어야 합니다.
- 고유 범위 조건은 장비 ID가 없으면 None입니다.
- Wafer ID는 "03", "3", 3 모두 같은 정수로 비교합니다.
"""

from datetime import datetime

from sqlalchemy import and_

from app.domains.wafer import filters
from app.domains.wafer.schemas import WaferQueryParams
from app.domains.wafer.partitions import spectrum_table
from app.utils.dates import parse_datetime, parse_db_timestamp, parse_int, resolve_date_range


# --- 날짜 유틸리티 ---
def test_resolve_date_range_defaults_to_last_seven_days():
    now = datetime(2025, 3, 10, 15, 30)
    start_at, end_at = resolve_date_range(None, None, now=now)

    assert start_at == datetime(2025, 3, 3, 0, 0, 0)
    assert end_at == datetime(2025, 3, 10, 23, 59, 59, 999000)


def test_resolve_date_range_malformed_values_fall_back_to_default():
    now = datetime(2025, 3, 10, 15, 30)
    assert resolve_date_range("not-a-date", "2025-13-45", now=now) == resolve_date_range(None, None, now=now)


def test_resolve_date_range_expands_to_whole_days():
    start_at, end_at = resolve_date_range("2025-02-01", "2025-02-03T08:15:00")

    assert start_at == datetime(2025, 2, 1, 0, 0, 0)
    assert end_at == datetime(2025, 2, 3, 23, 59, 59, 999000)


def test_parse_db_timestamp_keeps_wall_clock_time():
    """DB 값을 되돌려 받은 경우 'Z'가 붙어 있어도 시간대 변환 없이 그대로 사용합니다."""
    assert parse_db_timestamp("2025-03-01T10:00:00.000Z") == datetime(2025, 3, 1, 10, 0, 0)
    assert parse_db_timestamp("2025-03-01 10:00:00") == datetime(2025, 3, 1, 10, 0, 0)
    assert parse_db_timestamp("") is None
    assert parse_db_timestamp("garbage") is None


def test_parse_datetime_returns_none_for_invalid_values():
    assert parse_datetime(None) is None
    assert parse_datetime("  ") is None
    assert parse_datetime("yesterday") is None


def test_parse_int_accepts_numeric_strings_only():
    assert parse_int("3") == 3
    assert parse_int(" 07 ") == 7
    assert parse_int("3.0") == 3
    assert parse_int("3.5") is None
    assert parse_int("abc") is None
    assert parse_int(True) is None


# --- Wafer ID / 필드 ---
def test_normalize_wafer_id_coerces_strings_and_ints_alike():
    assert filters.normalize_wafer_id("3") == filters.normalize_wafer_id(3) == 3
    assert filters.normalize_wafer_id("03") == 3
    assert filters.normalize_wafer_id("W3") is None
    assert filters.normalize_wafer_id(None) is None


def test_split_csv_drops_blank_items():
    assert filters.split_csv(" EQP01, ,EQP02 ,") == ["EQP01", "EQP02"]
    assert filters.split_csv(None) == []


def test_resolve_distinct_field_aliases_and_unknown_columns():
    assert filters.resolve_distinct_field("lotids") == "lotid"
    assert filters.resolve_distinct_field("stageRcps") == "stagercp"
    assert filters.resolve_distinct_field("film") == "film"
    assert filters.resolve_distinct_field("password; drop table") is None
    assert filters.resolve_distinct_field(None) is None


# --- 기간 조건 ---
def test_date_range_conditions_skipped_when_lot_given(compile_sql):
    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT.001", start_date="2025-01-01", end_date="2025-01-31")
    conditions = filters.flat_filter_conditions(params)
    sql = str(compile_sql(and_(*conditions)))

    assert "serv_ts" not in sql
    assert "lotid" in sql


def test_date_range_conditions_always_applied_without_lot(compile_sql):
    params = WaferQueryParams(eqp_id="EQP01")
    conditions = filters.flat_filter_conditions(params)
    compiled = compile_sql(and_(*conditions))
    sql = str(compiled)

    assert "plg_wf_flat.serv_ts >=" in sql
    assert "plg_wf_flat.serv_ts <=" in sql
    start_at, end_at = [value for value in compiled.params.values() if isinstance(value, datetime)]
    assert (end_at.date() - start_at.date()).days == 7
    assert start_at.time() == datetime.min.time()


def test_flat_filter_conditions_skips_own_column(compile_sql):
    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", cassette_rcp="RCP_A", wafer_id="05")
    compiled = compile_sql(and_(*filters.flat_filter_conditions(params, skip_column="cassettercp")))

    assert "cassettercp" not in str(compiled)
    assert 5 in compiled.params.values()


# --- 고유 범위 조건 ---
def test_unique_scope_requires_equipment():
    assert filters.unique_scope_conditions(WaferQueryParams(lot_id="LOT1")) is None


def test_unique_scope_uses_two_second_window_around_datetime(compile_sql):
    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", wafer_id="3", date_time="2025-03-01T10:00:00.456Z")
    compiled = compile_sql(and_(*filters.unique_scope_conditions(params)))
    values = list(compiled.params.values())

    assert datetime(2025, 3, 1, 9, 59, 58) in values
    assert datetime(2025, 3, 1, 10, 0, 2) in values
    assert 3 in values
    assert "serv_ts" not in str(compiled)


def test_unique_scope_without_lot_applies_only_given_bounds(compile_sql):
    params = WaferQueryParams(eqp_id="EQP01", start_date="2025-01-05")
    sql = str(compile_sql(and_(*filters.unique_scope_conditions(params))))

    assert "serv_ts >=" in sql
    assert "serv_ts <=" not in sql


def test_unique_scope_can_ignore_wafer(compile_sql):
    params = WaferQueryParams(eqp_id="EQP01", lot_id="LOT1", wafer_id="7")
    compiled = compile_sql(and_(*filters.unique_scope_conditions(params, ignore_wafer=True)))

    assert "waferid" not in str(compiled)


# --- 스펙트럼 조인 ---
def test_wafer_join_condition_casts_spectrum_wafer_to_integer(compile_sql):
    spectrum = spectrum_table("plg_onto_spectrum")
    sql = str(compile_sql(filters.wafer_join_condition(spectrum)))

    assert "CAST(trim(public.plg_onto_spectrum.waferid) AS INTEGER) = public.plg_wf_flat.waferid" in sql
    assert "trim(public.plg_onto_spectrum.lotid) = trim(public.plg_wf_flat.lotid)" in sql


def test_flat_table_includes_dynamic_metric_columns():
    flat = filters.flat_table({"t1", "custom_metric"})

    assert "custom_metric" in flat.c
    assert "eqpid" in flat.c
