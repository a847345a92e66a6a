"""
tests/conftest.py

Shared pytest fixtures: a few realistic project snapshots (the dashboard's
default plus case studies) and a small snapshot table for the batch path.
"""
# --- Add this block so `import etl...` / `import services...` works in tests & CI ---
import sys
from pathlib import Path
_repo_root = Path(__file__).resolve().parents[1]
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))
# -------------------------------------------------------------------------------------

import pandas as pd
import pytest

from etl.evm_types import EVMMetrics, ManagementConstraints


@pytest.fixture(autouse=True)
def no_llm_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    """🔒 Make sure no test ever reaches a cloud LLM."""
    for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GROQ_API_KEY"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def baseline_metrics() -> EVMMetrics:
    """The dashboard's opening snapshot: behind schedule and over budget."""
    return EVMMetrics(pv=100000, ev=85000, ac=95000, bac=250000, total_duration_days=180, elapsed_days=60)


@pytest.fixture
def financial_metrics() -> EVMMetrics:
    """On schedule (EV == PV) but spending faster than earning."""
    return EVMMetrics(pv=150000, ev=150000, ac=180000, bac=250000, total_duration_days=180, elapsed_days=100)


@pytest.fixture
def on_target_metrics() -> EVMMetrics:
    return EVMMetrics(pv=100, ev=100, ac=100, bac=1000, total_duration_days=50, elapsed_days=5)


@pytest.fixture
def default_constraints() -> ManagementConstraints:
    return ManagementConstraints(deadline_fixed=False, max_budget_increase_percent=10)


@pytest.fixture
def snapshot_df() -> pd.DataFrame:
    """
    Three snapshots in ledger style (upper-case money columns).

    - P1: baseline
    - P2: nothing planned or spent yet (zero denominators)
    - P3: budget exhausted with work remaining
    """
    return pd.DataFrame(
        {
            "ProjectID": ["P1", "P2", "P3"],
            "PV": [100000.0, 0.0, 240000.0],
            "EV": [85000.0, 0.0, 200000.0],
            "AC": [95000.0, 0.0, 250000.0],
            "BAC": [250000.0, 50000.0, 250000.0],
            "totalDurationDays": [180.0, 90.0, 200.0],
            "elapsedDays": [60.0, 0.0, 190.0],
        }
    )
