# etl/evm_types.py
# -----------------------------------------------------------------------------
# Purpose:
#   Value objects shared by the EVM calculator, the chart series builder, the
#   alerts service and the narrative service.
#
# Conventions:
#   - Attributes are snake_case; to_dict()/from_dict() speak the camelCase
#     "wire" names the dashboard and the narrative payloads use.
#   - Everything is frozen: a new snapshot means a new object.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping


def _num(d: Mapping[str, Any], *keys: str) -> float:
    """First present key wins; blank/None coerce to 0.0 like the input form does."""
    for k in keys:
        if k in d:
            v = d[k]
            if v is None or (isinstance(v, str) and not v.strip()):
                return 0.0
            return float(v)
    return 0.0


_TRUE = {"true", "yes", "y", "on", "1"}
_FALSE = {"false", "no", "n", "off", "0", ""}


def _flag(v: Any) -> bool:
    """bool() for config values; quoted YAML strings like "false" read as False."""
    if isinstance(v, str):
        s = v.strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
        raise ValueError(f"not a boolean flag: {v!r}")
    return bool(v)


@dataclass(frozen=True)
class EVMMetrics:
    """One project snapshot: four money figures and two durations (days)."""

    pv: float
    ev: float
    ac: float
    bac: float
    total_duration_days: float
    elapsed_days: float

    def __post_init__(self) -> None:
        # int inputs would otherwise take exact integer arithmetic, not IEEE doubles
        for name in ("pv", "ev", "ac", "bac", "total_duration_days", "elapsed_days"):
            object.__setattr__(self, name, float(getattr(self, name)))

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "EVMMetrics":
        """
        Build from a mapping using wire names (pv, totalDurationDays, ...),
        snake_case names, or the upper-case ledger keys (PV, EV, AC, BAC).
        Non-numeric strings raise ValueError.
        """
        return cls(
            pv=_num(row, "pv", "PV"),
            ev=_num(row, "ev", "EV"),
            ac=_num(row, "ac", "AC"),
            bac=_num(row, "bac", "BAC"),
            total_duration_days=_num(row, "totalDurationDays", "total_duration_days"),
            elapsed_days=_num(row, "elapsedDays", "elapsed_days"),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "pv": self.pv,
            "ev": self.ev,
            "ac": self.ac,
            "bac": self.bac,
            "totalDurationDays": self.total_duration_days,
            "elapsedDays": self.elapsed_days,
        }


@dataclass(frozen=True)
class EVMResults:
    """Variances, indices and forecasts for one EVMMetrics snapshot. Never rounded."""

    sv: float
    spi: float
    cv: float
    cpi: float
    eac: float
    etc: float
    vac: float
    tcpi: float
    estimated_completion_days: float
    schedule_variance_days: float

    def to_dict(self) -> Dict[str, float]:
        d = asdict(self)
        d["estimatedCompletionDays"] = d.pop("estimated_completion_days")
        d["scheduleVarianceDays"] = d.pop("schedule_variance_days")
        return d


@dataclass(frozen=True)
class ChartDataPoint:
    day: int
    pv: int
    ev: int
    ac: int


@dataclass(frozen=True)
class ManagementConstraints:
    """
    Steering-committee constraints. Carried next to the results for the
    narrative report; the calculator never reads them.
    """

    deadline_fixed: bool = False
    max_budget_increase_percent: float = 0.0

    def allowed_budget(self, bac: float) -> float:
        """Total spend the committee will tolerate: BAC plus the allowed increase."""
        return bac * (1 + self.max_budget_increase_percent / 100)

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "ManagementConstraints":
        fixed = row.get("deadlineFixed", row.get("deadline_fixed", False))
        return cls(
            deadline_fixed=_flag(fixed),
            max_budget_increase_percent=_num(row, "maxBudgetIncreasePercent", "max_budget_increase_percent"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deadlineFixed": self.deadline_fixed,
            "maxBudgetIncreasePercent": self.max_budget_increase_percent,
        }
