"""
tests/test_scenarios.py

Config loading and case-study presets.
"""

from pathlib import Path

import pytest

from etl.evm_calculator import evaluate
from etl.evm_types import EVMMetrics, ManagementConstraints
from etl.scenarios import DEFAULTS, default_snapshot, get_scenario, list_scenarios, load_config


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "absent.yaml")
    assert cfg == DEFAULTS
    assert cfg is not DEFAULTS


def test_yaml_overrides_merge_per_section(tmp_path: Path) -> None:
    fp = tmp_path / "config.yaml"
    fp.write_text(
        "thresholds:\n"
        "  tcpi_highlight: 1.2\n"
        "scenarios:\n"
        "  tiny:\n"
        "    title: Tiny\n"
        "    metrics: {pv: 10, ev: 5, ac: 5, bac: 20, totalDurationDays: 10, elapsedDays: 5}\n",
        encoding="utf-8",
    )
    cfg = load_config(fp)

    assert cfg["thresholds"]["tcpi_highlight"] == 1.2
    assert cfg["thresholds"]["index_warning"] == 0.85
    keys = [k for k, _ in list_scenarios(cfg)]
    assert keys[:4] == ["schedule", "financial", "integrated", "whatif"]
    assert "tiny" in keys
    # Defaults are never mutated by a load
    assert DEFAULTS["thresholds"]["tcpi_highlight"] == 1.1


def test_empty_yaml_file(tmp_path: Path) -> None:
    fp = tmp_path / "config.yaml"
    fp.write_text("", encoding="utf-8")
    assert load_config(fp) == DEFAULTS


def test_repo_config_loads() -> None:
    cfg = load_config(Path(__file__).resolve().parents[1] / "config.yaml")
    metrics, constraints = default_snapshot(cfg)
    assert metrics == EVMMetrics(100000, 85000, 95000, 250000, 180, 60)
    assert constraints == ManagementConstraints(deadline_fixed=False, max_budget_increase_percent=10)


def test_case_studies_hit_their_headline_indices() -> None:
    m, _ = get_scenario("schedule")
    assert evaluate(m).spi == pytest.approx(0.80)

    m, _ = get_scenario("financial")
    assert evaluate(m).cpi == pytest.approx(0.833, abs=1e-3)


def test_whatif_brings_its_own_constraints() -> None:
    current = ManagementConstraints(deadline_fixed=False, max_budget_increase_percent=25)
    m, c = get_scenario("whatif", current=current)
    assert m.elapsed_days == 110
    assert c == ManagementConstraints(deadline_fixed=True, max_budget_increase_percent=5)


def test_presets_without_constraints_keep_current() -> None:
    current = ManagementConstraints(deadline_fixed=True, max_budget_increase_percent=25)
    _, c = get_scenario("integrated", current=current)
    assert c is current

    _, c = get_scenario("integrated")
    assert c == default_snapshot()[1]


def test_unknown_scenario_raises() -> None:
    with pytest.raises(KeyError):
        get_scenario("nope")


@pytest.mark.parametrize(
    "raw, expected",
    [("false", False), ("False", False), ("no", False), ("", False), ("true", True), ("YES", True), (True, True), (0, False)],
)
def test_constraint_flag_parses_quoted_values(raw, expected: bool) -> None:
    c = ManagementConstraints.from_dict({"deadlineFixed": raw, "maxBudgetIncreasePercent": "5"})
    assert c.deadline_fixed is expected
    assert c.max_budget_increase_percent == 5.0


def test_quoted_false_in_yaml_preset(tmp_path: Path) -> None:
    fp = tmp_path / "config.yaml"
    fp.write_text(
        "scenarios:\n"
        "  quoted:\n"
        "    metrics: {pv: 10, ev: 5, ac: 5, bac: 20, totalDurationDays: 10, elapsedDays: 5}\n"
        "    constraints: {deadlineFixed: \"false\", maxBudgetIncreasePercent: 5}\n",
        encoding="utf-8",
    )
    _, c = get_scenario("quoted", load_config(fp))
    assert c.deadline_fixed is False


def test_constraint_flag_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        ManagementConstraints.from_dict({"deadlineFixed": "maybe"})
