from __future__ import annotations

from typing import Optional

import pandas as pd

from etl.evm_calculator import compute_metrics
from services.alerts import index_status, tcpi_highlighted


def compute_kpis(df: pd.DataFrame, cfg: Optional[dict] = None) -> pd.DataFrame:
    """Snapshot table -> results table with CPI/SPI status bands and the TCPI highlight flag."""
    out = compute_metrics(df.copy())
    out["CPI_Status"] = out["cpi"].map(lambda v: index_status(v, cfg))
    out["SPI_Status"] = out["spi"].map(lambda v: index_status(v, cfg))
    out["TCPI_Highlight"] = out["tcpi"].map(lambda v: tcpi_highlighted(v, cfg)).astype(bool)
    return out
