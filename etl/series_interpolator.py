# etl/series_interpolator.py
# -----------------------------------------------------------------------------
# Purpose:
#   Build the 11-point PV/EV/AC trend line the dashboard charts. The series is
#   a straight ramp from zero at day 0 to the current snapshot at elapsed_days.
#   It is cosmetic: there is no history behind it.
# -----------------------------------------------------------------------------

from __future__ import annotations

import math
from typing import List

import pandas as pd

from etl.evm_types import ChartDataPoint, EVMMetrics

STEPS = 10


def _round_half_up(x: float) -> int:
    """Nearest integer, .5 rounds toward +inf (not Python's banker's rounding)."""
    f = math.floor(x)
    return int(f) + (1 if x - f >= 0.5 else 0)


def interpolate_series(metrics: EVMMetrics) -> List[ChartDataPoint]:
    """
    Return exactly STEPS + 1 points. Point i sits at day round(i * elapsed/10)
    and carries round(value * i/10) for each of PV, EV and AC.

    elapsed_days == 0 stacks every point at day 0; that is not an error.
    """
    step_days = metrics.elapsed_days / STEPS
    points: List[ChartDataPoint] = []
    for i in range(STEPS + 1):
        ratio = i / STEPS
        points.append(
            ChartDataPoint(
                day=_round_half_up(i * step_days),
                pv=_round_half_up(metrics.pv * ratio),
                ev=_round_half_up(metrics.ev * ratio),
                ac=_round_half_up(metrics.ac * ratio),
            )
        )
    return points


def series_frame(metrics: EVMMetrics) -> pd.DataFrame:
    """
    Long-form table of the ramp for plotly: columns day, Metric (PV/EV/AC), Value.
    """
    wide = pd.DataFrame([vars(p) for p in interpolate_series(metrics)])
    wide = wide.rename(columns={"pv": "PV", "ev": "EV", "ac": "AC"})
    wide["step"] = range(len(wide))
    return wide.melt(id_vars=["step", "day"], value_vars=["PV", "EV", "AC"], var_name="Metric", value_name="Value")
