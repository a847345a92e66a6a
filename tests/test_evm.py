"""
tests/test_evm.py

Worked examples: known snapshots evaluated end to end.
"""

import math

import pytest

from etl.evm_calculator import TCPI_UNBOUNDED, evaluate
from etl.evm_types import EVMMetrics


def test_baseline_snapshot(baseline_metrics: EVMMetrics) -> None:
    r = evaluate(baseline_metrics)

    assert r.sv == -15000.0
    assert r.cv == -10000.0
    assert r.spi == pytest.approx(0.85)
    assert r.cpi == pytest.approx(85000 / 95000)
    assert r.eac == pytest.approx(250000 * 95000 / 85000)  # ≈ 279,411.76
    assert r.vac == pytest.approx(250000 - 250000 * 95000 / 85000)
    assert r.tcpi == pytest.approx(165000 / 155000)
    assert r.estimated_completion_days == pytest.approx(211.7647, abs=1e-4)
    assert r.schedule_variance_days == pytest.approx(31.7647, abs=1e-4)


def test_financial_overrun_snapshot(financial_metrics: EVMMetrics) -> None:
    r = evaluate(financial_metrics)

    assert r.spi == 1.0
    assert r.sv == 0.0
    assert r.cpi == pytest.approx(0.833333, abs=1e-6)
    assert r.eac == pytest.approx(300000.0)
    assert r.etc == pytest.approx(120000.0)
    assert r.vac == pytest.approx(-50000.0)
    assert r.estimated_completion_days == pytest.approx(180.0)
    assert r.schedule_variance_days == pytest.approx(0.0)


def test_budget_exhausted_with_work_remaining() -> None:
    m = EVMMetrics(pv=240000, ev=200000, ac=250000, bac=250000, total_duration_days=180, elapsed_days=170)
    r = evaluate(m)
    assert r.tcpi == 9.99 == TCPI_UNBOUNDED


def test_results_are_finite_for_case_studies() -> None:
    cases = [
        EVMMetrics(90000, 72000, 80000, 250000, 180, 90),
        EVMMetrics(150000, 130000, 160000, 300000, 200, 100),
        EVMMetrics(150000, 117000, 142000, 300000, 200, 110),
    ]
    for m in cases:
        for value in evaluate(m).to_dict().values():
            assert math.isfinite(value)
