# etl/scenarios.py
# -----------------------------------------------------------------------------
# Purpose:
#   Config loading and the case-study presets the dashboard can load with one
#   click. Presets live in code as defaults and can be overridden or extended
#   from config.yaml under `scenarios:`.
# -----------------------------------------------------------------------------

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from etl.evm_types import EVMMetrics, ManagementConstraints

DEFAULTS: Dict[str, Any] = {
    "thresholds": {
        "index_good": 1.0,
        "index_warning": 0.85,
        "tcpi_highlight": 1.1,
        "feasibility_green": 70,
        "feasibility_amber": 40,
    },
    "paths": {
        "samples_dir": "data/samples",
        "processed_dir": "data/processed",
    },
    "defaults": {
        "metrics": {
            "pv": 100000, "ev": 85000, "ac": 95000, "bac": 250000,
            "totalDurationDays": 180, "elapsedDays": 60,
        },
        "constraints": {"deadlineFixed": False, "maxBudgetIncreasePercent": 10},
    },
    "scenarios": {
        "schedule": {
            "title": "Schedule Variance Case",
            "metrics": {"pv": 90000, "ev": 72000, "ac": 80000, "bac": 250000,
                        "totalDurationDays": 180, "elapsedDays": 90},
        },
        "financial": {
            "title": "Financial Overrun Case",
            "metrics": {"pv": 150000, "ev": 150000, "ac": 180000, "bac": 250000,
                        "totalDurationDays": 180, "elapsedDays": 100},
        },
        "integrated": {
            "title": "Integrated Performance Case",
            "metrics": {"pv": 150000, "ev": 130000, "ac": 160000, "bac": 300000,
                        "totalDurationDays": 200, "elapsedDays": 100},
        },
        "whatif": {
            "title": "What-If: Fixed Deadline",
            "metrics": {"pv": 150000, "ev": 117000, "ac": 142000, "bac": 300000,
                        "totalDurationDays": 200, "elapsedDays": 110},
            "constraints": {"deadlineFixed": True, "maxBudgetIncreasePercent": 5},
        },
    },
    "ai": {"temperature": 0.2, "max_tokens": 1200},
}


def load_config(cfg_path: Optional[Path] = None) -> Dict[str, Any]:
    """Return defaults overlaid with config.yaml if present (one-level merge per section)."""
    cfg = copy.deepcopy(DEFAULTS)
    if cfg_path is None or not Path(cfg_path).exists():
        return cfg

    with Path(cfg_path).open("r", encoding="utf-8") as f:
        user_cfg = yaml.safe_load(f) or {}
    for k, v in user_cfg.items():
        if isinstance(v, dict) and isinstance(cfg.get(k), dict):
            cfg[k].update(v)
        else:
            cfg[k] = v
    return cfg


def default_snapshot(cfg: Optional[Dict[str, Any]] = None) -> Tuple[EVMMetrics, ManagementConstraints]:
    """The snapshot the dashboard opens with."""
    d = (cfg or DEFAULTS)["defaults"]
    return EVMMetrics.from_dict(d["metrics"]), ManagementConstraints.from_dict(d.get("constraints", {}))


def list_scenarios(cfg: Optional[Dict[str, Any]] = None) -> List[Tuple[str, str]]:
    """(key, title) pairs in config order."""
    scen = (cfg or DEFAULTS)["scenarios"]
    return [(k, str(v.get("title", k))) for k, v in scen.items()]


def get_scenario(
    name: str,
    cfg: Optional[Dict[str, Any]] = None,
    current: Optional[ManagementConstraints] = None,
) -> Tuple[EVMMetrics, ManagementConstraints]:
    """
    Look up a preset by key. A preset without constraints keeps `current`
    (or the default constraints when none are given). Unknown keys raise KeyError.
    """
    cfg = cfg or DEFAULTS
    scen = cfg["scenarios"]
    if name not in scen:
        raise KeyError(f"Unknown scenario {name!r}; expected one of {sorted(scen)}")

    entry = scen[name]
    metrics = EVMMetrics.from_dict(entry["metrics"])
    if "constraints" in entry:
        return metrics, ManagementConstraints.from_dict(entry["constraints"])
    if current is not None:
        return metrics, current
    return metrics, default_snapshot(cfg)[1]
