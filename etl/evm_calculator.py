# etl/evm_calculator.py
# -----------------------------------------------------------------------------
# Purpose:
#   Core EVM math for a single project snapshot + a simple CLI that evaluates a
#   CSV of snapshots and writes a results parquet to data/processed. This makes
#   it usable in CI, tests, and demo runs.
#
# Zero-denominator policy:
#   The textbook ratios divide by PV, AC, CPI, SPI and (BAC - AC). Instead of
#   NaN/inf we substitute bounded values the dashboard can compare against:
#     - PV == 0            -> SPI = 1
#     - AC == 0            -> CPI = 1
#     - CPI == 0           -> EAC = BAC
#     - SPI == 0           -> estimated completion = planned duration
#     - BAC - AC <= 0      -> TCPI = 9.99 if work remains, else 0
#
# What this module provides:
#   - evaluate(metrics): EVMMetrics -> EVMResults (total, never raises)
#   - compute_metrics_row(row): dict -> dict, wire names in and out
#   - compute_metrics(...): polymorphic API (dict | EVMMetrics | DataFrame)
#   - __main__ CLI: read snapshots.csv -> evaluate -> write evm_results.parquet
# -----------------------------------------------------------------------------

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from etl.evm_types import EVMMetrics, EVMResults

# Reported when no funds remain but work does. Kept literal: downstream
# highlighting (TCPI > 1.1) is calibrated on realistic TCPI values.
TCPI_UNBOUNDED = 9.99

# Frame column -> accepted input aliases (first match wins)
_FRAME_INPUTS: Dict[str, List[str]] = {
    "pv": ["pv", "PV"],
    "ev": ["ev", "EV"],
    "ac": ["ac", "AC"],
    "bac": ["bac", "BAC"],
    "totalDurationDays": ["totalDurationDays", "total_duration_days"],
    "elapsedDays": ["elapsedDays", "elapsed_days"],
}

RESULT_COLUMNS = [
    "sv", "spi", "cv", "cpi", "eac", "etc", "vac", "tcpi",
    "estimatedCompletionDays", "scheduleVarianceDays",
]


# -----------------------------------------------------------------------------
# Public API (EVMMetrics -> EVMResults): the calculator itself
# -----------------------------------------------------------------------------
def evaluate(metrics: EVMMetrics) -> EVMResults:
    """
    Compute variances, performance indices and completion forecasts.

    Total function: any real inputs (zero, negative, inconsistent) map to a
    result via the zero-denominator policy above. No rounding is applied.
    """
    pv, ev, ac, bac = metrics.pv, metrics.ev, metrics.ac, metrics.bac
    total_days = metrics.total_duration_days

    sv = ev - pv
    spi = 1.0 if pv == 0 else ev / pv
    cv = ev - ac
    cpi = 1.0 if ac == 0 else ev / ac

    eac = bac if cpi == 0 else bac / cpi
    etc = eac - ac
    vac = bac - eac

    work_remaining = bac - ev
    funds_remaining = bac - ac
    if funds_remaining <= 0:
        tcpi = TCPI_UNBOUNDED if work_remaining > 0 else 0.0
    else:
        tcpi = work_remaining / funds_remaining

    estimated_days = total_days if spi == 0 else total_days / spi

    return EVMResults(
        sv=sv,
        spi=spi,
        cv=cv,
        cpi=cpi,
        eac=eac,
        etc=etc,
        vac=vac,
        tcpi=tcpi,
        estimated_completion_days=estimated_days,
        schedule_variance_days=estimated_days - total_days,
    )


# -----------------------------------------------------------------------------
# Public API (dict -> dict): used by the dashboard, services and tests
# -----------------------------------------------------------------------------
def compute_metrics_row(row: Dict[str, Any]) -> Dict[str, float]:
    """
    Evaluate one snapshot given as a plain dict.

    Accepts wire names (pv, ev, ac, bac, totalDurationDays, elapsedDays) or
    upper-case ledger keys (PV, EV, AC, BAC). Returns the echoed inputs plus
    every EVMResults field under its wire name.
    """
    metrics = EVMMetrics.from_dict(row)
    return {**metrics.to_dict(), **evaluate(metrics).to_dict()}


# -----------------------------------------------------------------------------
# Public API (DataFrame -> DataFrame): one snapshot per row
# -----------------------------------------------------------------------------
def _compute_metrics_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Evaluate every row of a snapshot table.

    Each row goes through evaluate() so the zero-denominator policy is
    identical to the single-snapshot path. Non-numeric cells coerce to 0.

    Returns
    -------
    pd.DataFrame with any extra input columns (e.g. ProjectID) preserved,
    the six inputs under wire names, then RESULT_COLUMNS.
    """
    src = df.copy()

    # --- 1) Resolve column aliases; enforce required inputs -------------------
    resolved: Dict[str, str] = {}
    for col, aliases in _FRAME_INPUTS.items():
        hit = next((a for a in aliases if a in src.columns), None)
        if hit is not None:
            resolved[col] = hit
    missing = set(_FRAME_INPUTS) - set(resolved)
    if missing:
        raise ValueError(f"snapshot frame missing columns: {sorted(missing)}")

    # --- 2) Normalize inputs (blank/strings -> NaN -> 0, like the input form) -
    alias_cols = {a for col in _FRAME_INPUTS.values() for a in col}
    out = src.loc[:, [c for c in src.columns if c not in alias_cols]].copy()
    for col, alias in resolved.items():
        out[col] = pd.to_numeric(src[alias], errors="coerce").fillna(0.0).astype("float64")

    # --- 3) KPIs via the scalar evaluator -------------------------------------
    records = [
        evaluate(EVMMetrics.from_dict(r)).to_dict()
        for r in out.loc[:, list(_FRAME_INPUTS)].to_dict(orient="records")
    ]
    results = pd.DataFrame(records, index=out.index, columns=RESULT_COLUMNS)
    return pd.concat([out, results.astype("float64")], axis=1)


# -----------------------------------------------------------------------------
# Polymorphic public API: compute_metrics(...)
# -----------------------------------------------------------------------------
def compute_metrics(
    snapshot: Union[EVMMetrics, Dict[str, Any], pd.DataFrame],
) -> Union[EVMResults, Dict[str, float], pd.DataFrame]:
    """
    Dispatcher:

    - EVMMetrics -> EVMResults (same as evaluate)
    - dict       -> dict (same as compute_metrics_row)
    - DataFrame  -> DataFrame with result columns appended

    Examples
    --------
    >>> compute_metrics({"pv": 100, "ev": 90, "ac": 110, "bac": 300})["cpi"]
    0.8181...
    """
    if isinstance(snapshot, EVMMetrics):
        return evaluate(snapshot)
    if isinstance(snapshot, dict):
        return compute_metrics_row(snapshot)
    if isinstance(snapshot, pd.DataFrame):
        return _compute_metrics_frame(snapshot)

    raise TypeError("compute_metrics expects an EVMMetrics, a row dict, or a snapshot DataFrame.")


# -----------------------------------------------------------------------------
# CLI helpers: read/write, so tests and CI can invoke `python -m etl.evm_calculator`
# -----------------------------------------------------------------------------
def _read_inputs(samples_dir: Path) -> pd.DataFrame:
    """Read snapshots.csv (one row per project snapshot) from the samples directory."""
    snap_fp = samples_dir / "snapshots.csv"
    if not snap_fp.exists():
        raise FileNotFoundError(f"Missing {snap_fp}")
    return pd.read_csv(snap_fp)


def _write_output(df: pd.DataFrame, out_dir: Path) -> Path:
    """Write evm_results.parquet to the processed directory and return its path."""
    out_dir.mkdir(parents=True, exist_ok=True)
    out_fp = out_dir / "evm_results.parquet"
    df.to_parquet(out_fp, index=False)
    return out_fp


def _build_argparser() -> argparse.ArgumentParser:
    """
    Examples:
      python -m etl.evm_calculator
      python -m etl.evm_calculator --samples data/samples --processed data/processed
    """
    ap = argparse.ArgumentParser(description="Evaluate EVM snapshots and write a results parquet.")
    ap.add_argument(
        "--samples",
        default="data/samples",
        help="Directory containing snapshots.csv (default: data/samples)",
    )
    ap.add_argument(
        "--processed",
        default="data/processed",
        help="Output directory for evm_results.parquet (default: data/processed)",
    )
    return ap


def main(samples: str, processed: str) -> Path:
    """
    Orchestrates the CLI:
      1) Read snapshots from --samples
      2) Evaluate every row
      3) Write to --processed/evm_results.parquet
    """
    snapshots = _read_inputs(Path(samples))
    results = _compute_metrics_frame(snapshots)
    out_fp = _write_output(results, Path(processed))
    print(f"[evm_calculator] wrote {out_fp} rows={len(results)}")
    return out_fp


if __name__ == "__main__":
    parser = _build_argparser()
    args = parser.parse_args()
    main(args.samples, args.processed)
