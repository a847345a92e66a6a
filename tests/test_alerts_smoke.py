"""
tests/test_alerts_smoke.py

Status bands, TCPI highlighting and alert generation for single snapshots,
plus the CLI path that writes alerts_outbox.json.
"""

import json
import runpy
import sys
from pathlib import Path

import pytest

from etl.evm_calculator import evaluate
from etl.evm_types import EVMMetrics, ManagementConstraints
from etl.scenarios import get_scenario
from services.alerts import build_alerts, feasibility_band, index_status, tcpi_highlighted


@pytest.mark.parametrize(
    "value, expected",
    [(1.2, "good"), (1.0, "good"), (0.99, "warning"), (0.86, "warning"), (0.85, "bad"), (0.2, "bad")],
)
def test_index_status_bands(value: float, expected: str) -> None:
    assert index_status(value) == expected


def test_index_status_honors_config() -> None:
    cfg = {"thresholds": {"index_warning": 0.5}}
    assert index_status(0.6, cfg) == "warning"


def test_tcpi_highlight_threshold() -> None:
    assert tcpi_highlighted(1.11)
    assert not tcpi_highlighted(1.1)
    assert tcpi_highlighted(9.99)
    assert not tcpi_highlighted(1.5, {"thresholds": {"tcpi_highlight": 2.0}})


@pytest.mark.parametrize("score, band", [(71, "green"), (70, "amber"), (41, "amber"), (40, "red"), (0, "red")])
def test_feasibility_bands(score: float, band: str) -> None:
    assert feasibility_band(score) == band


def test_on_target_snapshot_has_no_alerts(on_target_metrics: EVMMetrics) -> None:
    constraints = ManagementConstraints(deadline_fixed=True, max_budget_increase_percent=0)
    alerts = build_alerts(on_target_metrics, evaluate(on_target_metrics), constraints=constraints)
    assert alerts == []


def test_baseline_snapshot_alerts(baseline_metrics: EVMMetrics, default_constraints: ManagementConstraints) -> None:
    results = evaluate(baseline_metrics)
    alerts = build_alerts(baseline_metrics, results, constraints=default_constraints)

    # SPI 0.85 sits on the warning line -> bad; CPI 0.89 is only a warning
    assert len(alerts) == 2
    breach, budget = alerts
    assert breach["trigger"] == "SPI<=0.85|VAC<0"
    assert breach["kpis"]["CPI"] == pytest.approx(results.cpi)
    # EAC ≈ 279k > 250k * 1.10
    assert budget["trigger"] == "EAC>BAC+10%"
    assert "ts" in budget and budget["recommendations"]


def test_whatif_triggers_deadline_and_budget() -> None:
    metrics, constraints = get_scenario("whatif")
    alerts = build_alerts(metrics, evaluate(metrics), constraints=constraints)

    triggers = [a["trigger"] for a in alerts]
    assert len(alerts) == 3
    assert "TCPI>1.10" in triggers[0]
    assert "CPI<=0.85" in triggers[0]
    assert triggers[1] == "DEADLINE_FIXED"
    assert triggers[2] == "EAC>BAC+5%"


def test_without_constraints_only_performance_alerts(baseline_metrics: EVMMetrics) -> None:
    alerts = build_alerts(baseline_metrics, evaluate(baseline_metrics))
    assert len(alerts) == 1


def test_cli_writes_outbox(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        sys,
        "argv",
        ["services.alerts", "--config", str(tmp_path / "absent.yaml"), "--scenario", "whatif", "--out", "out"],
    )
    runpy.run_module("services.alerts", run_name="__main__")

    out_fp = tmp_path / "out" / "alerts_outbox.json"
    assert out_fp.exists()
    payload = json.loads(out_fp.read_text(encoding="utf-8"))
    assert isinstance(payload, list) and len(payload) == 3
