# services/alerts.py
"""
Alert and status service.

- Classifies CPI/SPI into good / warning / bad bands for the KPI cards.
- Flags TCPI values above the highlight threshold.
- Emits breach alerts for one evaluated snapshot, including constraint-aware
  alerts (fixed deadline slipping, EAC above the allowed budget).
- CLI writes a JSON list to data/processed/alerts_outbox.json.
"""

import argparse
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from etl.evm_calculator import evaluate
from etl.evm_types import EVMMetrics, EVMResults, ManagementConstraints
from etl.scenarios import DEFAULTS, default_snapshot, get_scenario, load_config


def _thresholds(cfg: Optional[dict]) -> Dict[str, Any]:
    th = dict(DEFAULTS["thresholds"])
    th.update((cfg or {}).get("thresholds", {}) or {})
    return th


# ----------------------------
# Status bands
# ----------------------------
def index_status(value: float, cfg: Optional[dict] = None) -> str:
    """'good' at or above target, 'warning' above the warning line, else 'bad'."""
    th = _thresholds(cfg)
    if value >= th["index_good"]:
        return "good"
    if value > th["index_warning"]:
        return "warning"
    return "bad"


def tcpi_highlighted(tcpi: float, cfg: Optional[dict] = None) -> bool:
    return tcpi > _thresholds(cfg)["tcpi_highlight"]


def feasibility_band(score: float, cfg: Optional[dict] = None) -> str:
    th = _thresholds(cfg)
    if score > th["feasibility_green"]:
        return "green"
    if score > th["feasibility_amber"]:
        return "amber"
    return "red"


# ----------------------------
# Alert builders
# ----------------------------
def _build_alert(results: EVMResults, triggers: List[str], narrative: str, recommendations: List[str]) -> Dict:
    return {
        "ts": datetime.now(timezone.utc).isoformat(),
        "trigger": "|".join(triggers),
        "kpis": {
            "CPI": results.cpi,
            "SPI": results.spi,
            "EAC": results.eac,
            "VAC": results.vac,
            "TCPI": results.tcpi,
            "ScheduleVarianceDays": results.schedule_variance_days,
        },
        "narrative": narrative,
        "recommendations": recommendations,
    }


def build_alerts(
    metrics: EVMMetrics,
    results: EVMResults,
    cfg: Optional[dict] = None,
    constraints: Optional[ManagementConstraints] = None,
) -> List[Dict]:
    """
    Generate alerts for one snapshot.

    - Performance: CPI or SPI in the 'bad' band, VAC < 0, TCPI highlighted.
    - Constraints: fixed deadline with a positive schedule slip; EAC above
      BAC plus the allowed increase.
    Returns an empty list when nothing triggers.
    """
    th = _thresholds(cfg)
    alerts: List[Dict] = []

    # --- PERFORMANCE BREACHES ---
    triggers: List[str] = []
    if index_status(results.cpi, cfg) == "bad":
        triggers.append(f"CPI<={th['index_warning']:.2f}")
    if index_status(results.spi, cfg) == "bad":
        triggers.append(f"SPI<={th['index_warning']:.2f}")
    if results.vac < 0:
        triggers.append("VAC<0")
    if tcpi_highlighted(results.tcpi, cfg):
        triggers.append(f"TCPI>{th['tcpi_highlight']:.2f}")
    if triggers:
        alerts.append(
            _build_alert(
                results,
                triggers,
                "EVM thresholds breached",
                ["Escalate to PM", "Run bottom-up ETC", "Review critical path"],
            )
        )

    # --- CONSTRAINT BREACHES ---
    if constraints is not None:
        if constraints.deadline_fixed and results.schedule_variance_days > 0:
            alerts.append(
                _build_alert(
                    results,
                    ["DEADLINE_FIXED"],
                    f"Forecast finish slips {results.schedule_variance_days:.1f} days past a fixed deadline",
                    ["Crash or fast-track the critical path", "Assess quality risk of compression"],
                )
            )
        allowed = constraints.allowed_budget(metrics.bac)
        if results.eac > allowed:
            alerts.append(
                _build_alert(
                    results,
                    [f"EAC>BAC+{constraints.max_budget_increase_percent:g}%"],
                    f"EAC ${results.eac:,.0f} exceeds allowed budget ${allowed:,.0f}",
                    ["Request change control review", "Value-engineer remaining scope"],
                )
            )

    return alerts


# ----------------------------
# Main entrypoint
# ----------------------------
def main(cfg_fp: str, scenario: Optional[str], out_dir: str) -> Path:
    """Evaluate the chosen preset (or the default snapshot), build alerts, write JSON outbox."""
    cfg = load_config(Path(cfg_fp))
    if scenario:
        metrics, constraints = get_scenario(scenario, cfg)
    else:
        metrics, constraints = default_snapshot(cfg)

    alerts = build_alerts(metrics, evaluate(metrics), cfg, constraints)

    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    out_fp = out / "alerts_outbox.json"
    out_fp.write_text(json.dumps(alerts, ensure_ascii=False, indent=2), encoding="utf-8")
    print(f"[alerts] Wrote {len(alerts)} alerts to {out_fp}.")
    return out_fp


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", default="config.yaml")
    parser.add_argument("--scenario", default=None)
    parser.add_argument("--out", default="data/processed")
    args = parser.parse_args()
    main(args.config, args.scenario, args.out)
