# app/domains/perf/__init__.py

"""
'perf' 도메인 패키지입니다.

장비 PC 성능(eqp_perf), 프로세스별 성능(eqp_proc_perf), 램프 수명(eqp_lamp_life),
Pre-Align 편차(plg_prealign) 데이터를 조회합니다.
"""
