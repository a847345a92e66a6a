"""
EVM Project Control Dashboard
Single-snapshot Earned Value analysis with forecasts and an AI analyst report.

WHAT THIS APP DOES
------------------
• Reads settings from config.yaml (thresholds, default snapshot, case-study presets, AI settings).
• Sidebar collects PV / EV / AC / BAC and the planned/elapsed durations, plus management constraints.
• One-click case studies load preset snapshots (schedule slip, cost overrun, integrated, what-if).
• Shows CPI/SPI status cards, variances, forecasts (EAC/ETC/TCPI) and a PV/EV/AC trend chart.
• AI Analysis: structured report from a cloud LLM if keys exist, otherwise rule-based.
• Alerts tab lists threshold and constraint breaches for the current snapshot.

HOW TO READ IT
--------------
1) “Every widget change re-evaluates the snapshot; nothing is stored.”
2) “Zero denominators never produce NaN: SPI/CPI default to 1, TCPI caps at 9.99.”
3) “The trend chart is a straight ramp to today’s values, not history.”
"""

from __future__ import annotations

# ── Standard library
import sys
from pathlib import Path
from typing import Any, Dict, Optional

# ── Third-party
import pandas as pd
import plotly.express as px
import streamlit as st

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# ── Local
from etl.evm_calculator import evaluate  # noqa: E402
from etl.evm_types import EVMMetrics, ManagementConstraints  # noqa: E402
from etl.scenarios import default_snapshot, get_scenario, list_scenarios, load_config  # noqa: E402
from etl.series_interpolator import series_frame  # noqa: E402
from services.ai_variance_narratives import AnalysisResponse, generate_analysis  # noqa: E402
from services.alerts import build_alerts, feasibility_band, index_status, tcpi_highlighted  # noqa: E402
from services.evm_metrics import compute_kpis  # noqa: E402


# ──────────────────────────────────────────────────────────────────────────────
# 1) CONFIG & PAGE SETUP
# ──────────────────────────────────────────────────────────────────────────────
CFG_PATH = ROOT / "config.yaml"
CFG = load_config(CFG_PATH)

st.set_page_config(page_title="EVM Project Control Dashboard", page_icon="📊", layout="wide")

st.markdown(
    """
<style>
.block-container { padding-top: 1rem; padding-bottom: 2rem; }
.hero { background: linear-gradient(90deg, #0F172A 0%, #1E3A8A 100%); border-radius: 14px;
        padding: 18px 22px; color: #fff; margin-bottom: 10px; }
.hero h1 { font-size: 1.5rem; margin: 0; }
.kpi-card { border: 1px solid #e8e8e8; border-radius: 12px; padding: 12px 14px; background: #fff; }
.kpi-label { font-size: 0.85rem; color: #666; }
.kpi-value { font-weight: 700; font-size: 1.3rem; color: #0F172A; }
.status-good { border-left: 6px solid #10b981; }
.status-warning { border-left: 6px solid #f59e0b; }
.status-bad { border-left: 6px solid #ef4444; }
.highlight { background: #fef3c7; }
.band-green { color: #059669; } .band-amber { color: #d97706; } .band-red { color: #dc2626; }
</style>
""",
    unsafe_allow_html=True,
)

st.markdown(
    '<div class="hero"><h1>Project Control Dashboard</h1>'
    "<p>Earned Value Management: indices, variances and completion forecasts</p></div>",
    unsafe_allow_html=True,
)


# ──────────────────────────────────────────────────────────────────────────────
# 2) SESSION STATE — current snapshot lives in widget keys
# ──────────────────────────────────────────────────────────────────────────────
_METRIC_FIELDS = [
    ("pv", "Planned Value (PV)"),
    ("ev", "Earned Value (EV)"),
    ("ac", "Actual Cost (AC)"),
    ("bac", "Budget at Completion (BAC)"),
    ("total_duration_days", "Total Duration (days)"),
    ("elapsed_days", "Elapsed Time (days)"),
]


def _apply_snapshot(metrics: EVMMetrics, constraints: ManagementConstraints) -> None:
    """Push a snapshot into the widget keys and drop any stale report."""
    for name, _ in _METRIC_FIELDS:
        st.session_state[f"m_{name}"] = float(getattr(metrics, name))
    st.session_state["c_deadline_fixed"] = constraints.deadline_fixed
    st.session_state["c_max_increase"] = float(constraints.max_budget_increase_percent)
    st.session_state["analysis"] = None
    st.session_state["analysis_source"] = "n/a"


if "m_pv" not in st.session_state:
    _apply_snapshot(*default_snapshot(CFG))


def kpi_card(col: Any, label: str, value: str, css: str = "") -> None:
    col.markdown(
        f'<div class="kpi-card {css}"><div class="kpi-label">{label}</div>'
        f'<div class="kpi-value">{value}</div></div>',
        unsafe_allow_html=True,
    )


# ──────────────────────────────────────────────────────────────────────────────
# 3) SIDEBAR — presets, metrics, constraints
# ──────────────────────────────────────────────────────────────────────────────
with st.sidebar:
    st.header("Quick Load Case Studies")
    for key, title in list_scenarios(CFG):
        if st.button(title, key=f"scn_{key}", use_container_width=True):
            current = ManagementConstraints(
                deadline_fixed=bool(st.session_state["c_deadline_fixed"]),
                max_budget_increase_percent=float(st.session_state["c_max_increase"]),
            )
            _apply_snapshot(*get_scenario(key, CFG, current=current))
            st.rerun()

    st.divider()
    st.header("Project Metrics")
    for name, label in _METRIC_FIELDS:
        st.number_input(label, key=f"m_{name}", step=1000.0 if "days" not in name else 1.0)

    st.divider()
    st.header("Management Constraints")
    st.toggle("Fixed deadline", key="c_deadline_fixed")
    st.number_input("Max budget increase (%)", key="c_max_increase", step=1.0)

metrics = EVMMetrics(**{name: float(st.session_state[f"m_{name}"]) for name, _ in _METRIC_FIELDS})
constraints = ManagementConstraints(
    deadline_fixed=bool(st.session_state["c_deadline_fixed"]),
    max_budget_increase_percent=float(st.session_state["c_max_increase"]),
)
results = evaluate(metrics)


# ──────────────────────────────────────────────────────────────────────────────
# 4) MAIN TABS — Performance, AI Analysis, Alerts
# ──────────────────────────────────────────────────────────────────────────────
tab_perf, tab_ai, tab_alerts = st.tabs(["Performance", "AI Analysis", "Alerts"])

# --- PERFORMANCE TAB --------------------------------------------------------
with tab_perf:
    c1, c2 = st.columns(2)
    cpi_state = index_status(results.cpi, CFG)
    spi_state = index_status(results.spi, CFG)
    kpi_card(
        c1,
        f"Cost Performance (CPI) — {'Within Budget' if results.cpi >= 1 else 'Over Budget'}",
        f"{results.cpi:.2f}",
        f"status-{cpi_state}",
    )
    kpi_card(
        c2,
        f"Schedule Performance (SPI) — {'On Schedule' if results.spi >= 1 else 'Behind Schedule'}",
        f"{results.spi:.2f}",
        f"status-{spi_state}",
    )

    st.subheader("Variances")
    v1, v2, v3 = st.columns(3)
    kpi_card(v1, "Cost Variance (CV)", f"${results.cv:,.0f}")
    kpi_card(v2, "Schedule Variance (SV)", f"${results.sv:,.0f}")
    kpi_card(v3, "Variance at Completion (VAC)", f"${results.vac:,.0f}")

    st.subheader("Forecasts")
    f1, f2, f3, f4 = st.columns(4)
    kpi_card(f1, "EAC (Forecast Cost)", f"${results.eac:,.2f}")
    kpi_card(f2, "ETC (Funds Needed)", f"${results.etc:,.2f}")
    kpi_card(
        f3,
        "TCPI (Needed Efficiency)",
        f"{results.tcpi:.2f}",
        "highlight" if tcpi_highlighted(results.tcpi, CFG) else "",
    )
    kpi_card(
        f4,
        "Forecast Duration",
        f"{results.estimated_completion_days:,.1f} d ({results.schedule_variance_days:+.1f} d)",
    )

    st.divider()
    series = series_frame(metrics)
    # Overlaid (not stacked) areas: PV/EV/AC are compared, not summed
    fig = px.line(
        series,
        x="day",
        y="Value",
        color="Metric",
        title="PV / EV / AC progression to date",
        labels={"day": "Day", "Value": "Value ($)"},
    )
    fig.update_traces(fill="tozeroy")
    st.plotly_chart(fig, use_container_width=True)

    with st.expander("Compare with case studies", expanded=False):
        rows = [{"Case": "Current", **metrics.to_dict()}]
        for key, title in list_scenarios(CFG):
            rows.append({"Case": title, **get_scenario(key, CFG)[0].to_dict()})
        table = compute_kpis(pd.DataFrame(rows), CFG)
        show_cols = ["Case", "spi", "cpi", "eac", "vac", "tcpi", "SPI_Status", "CPI_Status", "TCPI_Highlight"]
        st.dataframe(table[show_cols], use_container_width=True)

# --- AI ANALYSIS TAB --------------------------------------------------------
with tab_ai:
    st.subheader("Analyst Report")
    st.caption("Sends the metrics, results and constraints to an LLM if an API key is set; otherwise rule-based.")

    if st.button("⚡ Analyze Data", use_container_width=True, type="primary"):
        with st.spinner("Analyzing snapshot…"):
            report, source = generate_analysis(metrics, results, constraints, CFG)
        st.session_state["analysis"] = report.to_dict()
        st.session_state["analysis_source"] = source

    stored: Optional[Dict[str, Any]] = st.session_state.get("analysis")
    if stored:
        report = AnalysisResponse(
            executive_summary=stored["executiveSummary"],
            variance_analysis=stored["varianceAnalysis"],
            risk_identification=list(stored["riskIdentification"]),
            recommendations=list(stored["recommendations"]),
            pmbok_reference=stored["pmbokReference"],
            feasibility_score=float(stored["feasibilityScore"]),
            management_verdict=stored["managementVerdict"],
        )
        band = feasibility_band(report.feasibility_score, CFG)
        st.markdown(
            f'Feasibility: <span class="band-{band}"><b>{report.feasibility_score:.0f}/100</b></span>',
            unsafe_allow_html=True,
        )
        st.info(f"“{report.management_verdict}”")
        st.markdown(f"**Executive Summary**\n\n{report.executive_summary}")
        st.markdown(f"**Variance Analysis**\n\n{report.variance_analysis}")
        r1, r2 = st.columns(2)
        with r1:
            st.markdown("**Risks**")
            for risk in report.risk_identification:
                st.markdown(f"- {risk}")
        with r2:
            st.markdown("**Recommendations**")
            for rec in report.recommendations:
                st.markdown(f"- {rec}")
        st.caption(f"PMBOK Reference: {report.pmbok_reference} · Source: {st.session_state['analysis_source']}")
    else:
        st.info("No report yet. Press **Analyze Data**.")

# --- ALERTS TAB -------------------------------------------------------------
with tab_alerts:
    st.subheader("Threshold & Constraint Alerts")
    alerts = build_alerts(metrics, results, CFG, constraints)
    if alerts:
        st.json(alerts)
    else:
        st.success("No thresholds breached for this snapshot.")
