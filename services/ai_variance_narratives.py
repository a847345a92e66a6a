# services/ai_variance_narratives.py
"""
Narrative report for one EVM snapshot.

The calculator's results, the raw metrics and the optional management
constraints are rendered into an analyst prompt. A cloud LLM (OpenAI,
Anthropic or Groq, whichever key is set) returns a structured JSON report;
if no key is set or the call fails, a deterministic rule-based report is
returned instead so the dashboard always has something to show.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from etl.evm_calculator import evaluate
from etl.evm_types import EVMMetrics, EVMResults, ManagementConstraints
from etl.scenarios import default_snapshot, get_scenario, load_config
from services.alerts import feasibility_band, tcpi_highlighted

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a Senior Project Control Analyst expert in the PMBOK Guide."

# camelCase payload key -> AnalysisResponse attribute
_FIELDS = {
    "executiveSummary": "executive_summary",
    "varianceAnalysis": "variance_analysis",
    "riskIdentification": "risk_identification",
    "recommendations": "recommendations",
    "pmbokReference": "pmbok_reference",
    "feasibilityScore": "feasibility_score",
    "managementVerdict": "management_verdict",
}


class NarrativeError(RuntimeError):
    """The LLM answered, but not with a usable report."""


@dataclass
class AnalysisResponse:
    executive_summary: str
    variance_analysis: str
    risk_identification: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    pmbok_reference: str = ""
    feasibility_score: float = 0.0
    management_verdict: str = ""

    @classmethod
    def from_json(cls, text: Optional[str]) -> "AnalysisResponse":
        """Parse the camelCase JSON report. Tolerates a ```json fence around it."""
        if not text or not text.strip():
            raise NarrativeError("Empty response from LLM")
        body = text.strip()
        if body.startswith("```"):
            body = body.strip("`")
            if body.lower().startswith("json"):
                body = body[4:]
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise NarrativeError(f"LLM response is not JSON: {e}") from e
        if not isinstance(payload, dict):
            raise NarrativeError("LLM response is not a JSON object")

        missing = [k for k in _FIELDS if k not in payload]
        if missing:
            raise NarrativeError(f"LLM response missing keys: {missing}")
        for k in ("riskIdentification", "recommendations"):
            if not isinstance(payload[k], list):
                raise NarrativeError(f"{k} must be a list")

        try:
            score = float(payload["feasibilityScore"])
        except (TypeError, ValueError) as e:
            raise NarrativeError(f"feasibilityScore is not a number: {payload['feasibilityScore']!r}") from e

        return cls(
            executive_summary=str(payload["executiveSummary"]),
            variance_analysis=str(payload["varianceAnalysis"]),
            risk_identification=[str(x) for x in payload["riskIdentification"]],
            recommendations=[str(x) for x in payload["recommendations"]],
            pmbok_reference=str(payload["pmbokReference"]),
            feasibility_score=min(100.0, max(0.0, score)),
            management_verdict=str(payload["managementVerdict"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        return {k: d[attr] for k, attr in _FIELDS.items()}


# ----------------------------
# Prompt
# ----------------------------
def _num_text(x: float) -> str:
    """Whole numbers without a trailing .0; everything else as Python prints it."""
    return f"{x:.0f}" if float(x).is_integer() else str(x)


def build_prompt(
    metrics: EVMMetrics,
    results: EVMResults,
    constraints: Optional[ManagementConstraints] = None,
) -> str:
    """Analyst prompt: raw inputs, calculated results, optional constraint block, output contract."""
    constraint_block = ""
    if constraints is not None:
        allowed = constraints.allowed_budget(metrics.bac)
        constraint_block = (
            "MANAGEMENT CONSTRAINTS:\n"
            f"- Fixed Deadline: {'YES' if constraints.deadline_fixed else 'NO'}\n"
            f"- Max Budget Increase: {constraints.max_budget_increase_percent:g}% "
            f"(Total allowed: ${allowed:,.2f})\n"
        )

    return (
        "Analyze the following Earned Value Management (EVM) data for a project.\n\n"
        "INPUT METRICS:\n"
        f"- Planned Value (PV): {_num_text(metrics.pv)}\n"
        f"- Earned Value (EV): {_num_text(metrics.ev)}\n"
        f"- Actual Cost (AC): {_num_text(metrics.ac)}\n"
        f"- Budget at Completion (BAC): {_num_text(metrics.bac)}\n"
        f"- Total Duration: {_num_text(metrics.total_duration_days)} days\n"
        f"- Elapsed Time: {_num_text(metrics.elapsed_days)} days\n\n"
        "CALCULATED RESULTS:\n"
        f"- Schedule Performance Index (SPI): {results.spi:.2f}\n"
        f"- Cost Performance Index (CPI): {results.cpi:.2f}\n"
        f"- Estimate at Completion (EAC): {results.eac:.2f}\n"
        f"- Variance at Completion (VAC): {results.vac:.2f}\n"
        f"- TCPI: {results.tcpi:.2f}\n"
        f"- Forecasted Duration: {results.estimated_completion_days:.1f} days\n\n"
        f"{constraint_block}\n"
        "Evaluate the FEASIBILITY of meeting the constraints given the current SPI/CPI trends.\n"
        "Respond with a single JSON object with exactly these keys:\n"
        "executiveSummary (string), varianceAnalysis (string), riskIdentification (list of strings: "
        "risks created by corrective actions), recommendations (list of strings), pmbokReference (string), "
        "feasibilityScore (number 0-100, probability of meeting all constraints), "
        "managementVerdict (one sentence for the Steering Committee)."
    )


# ----------------------------
# Rule-based fallback
# ----------------------------
def _feasibility(
    metrics: EVMMetrics,
    results: EVMResults,
    constraints: Optional[ManagementConstraints],
    cfg: Optional[dict] = None,
) -> float:
    score = 100.0
    score -= max(0.0, 1.0 - results.cpi) * 100
    score -= max(0.0, 1.0 - results.spi) * 50
    if tcpi_highlighted(results.tcpi, cfg):
        score -= 15
    if constraints is not None:
        if constraints.deadline_fixed and results.schedule_variance_days > 0:
            score -= min(40.0, results.schedule_variance_days)
        allowed = constraints.allowed_budget(metrics.bac)
        if results.eac > allowed and allowed:
            score -= min(40.0, (results.eac - allowed) / abs(allowed) * 400)
    return round(min(100.0, max(0.0, score)), 1)


def rule_based_analysis(
    metrics: EVMMetrics,
    results: EVMResults,
    constraints: Optional[ManagementConstraints] = None,
    cfg: Optional[dict] = None,
) -> AnalysisResponse:
    """Deterministic report that works offline. Thresholds come from cfg like the dashboard bands."""
    cost_word = "under budget" if results.cpi >= 1 else "over budget"
    sched_word = "ahead of or on schedule" if results.spi >= 1 else "behind schedule"
    summary = (
        f"The project is {cost_word} (CPI {results.cpi:.2f}) and {sched_word} (SPI {results.spi:.2f}). "
        f"EAC is ${results.eac:,.0f} against a BAC of ${metrics.bac:,.0f} (VAC ${results.vac:,.0f})."
    )
    variance = (
        f"Cost variance is ${results.cv:,.0f} and schedule variance is ${results.sv:,.0f}. "
        f"At the current pace the work finishes in {results.estimated_completion_days:.1f} days, "
        f"{results.schedule_variance_days:+.1f} days against the {_num_text(metrics.total_duration_days)}-day plan. "
        f"Remaining work needs a TCPI of {results.tcpi:.2f} to land on budget."
    )

    risks: List[str] = []
    recs: List[str] = []
    if results.spi < 1:
        risks.append("Crashing or fast-tracking to recover schedule raises cost and rework risk.")
        recs.append("Re-baseline the critical path and fast-track activities with the best crash ratio.")
    if results.cpi < 1:
        risks.append("Cost-cutting on remaining scope may erode quality.")
        recs.append("Run a bottom-up ETC on overrunning work packages and tighten change control.")
    if tcpi_highlighted(results.tcpi, cfg):
        risks.append("Required efficiency on remaining work is above historically achievable levels.")
        recs.append("Escalate a budget or scope change request rather than relying on efficiency gains.")
    if constraints is not None and constraints.deadline_fixed and results.schedule_variance_days > 0:
        risks.append("A fixed deadline with a forecast slip forces compression of remaining work.")
    if not recs:
        recs.append("Maintain current controls; continue weekly CPI/SPI trend monitoring.")

    score = _feasibility(metrics, results, constraints, cfg)
    band = feasibility_band(score, cfg)
    if band == "green":
        verdict = "Proceed under the current baseline with routine monitoring."
    elif band == "amber":
        verdict = "Approve a targeted recovery plan and review at the next steering meeting."
    else:
        verdict = "Constraints are unlikely to be met; authorize a formal re-baseline."

    return AnalysisResponse(
        executive_summary=summary,
        variance_analysis=variance,
        risk_identification=risks,
        recommendations=recs,
        pmbok_reference="Monitor and Control Project Work; Control Costs; Control Schedule",
        feasibility_score=score,
        management_verdict=verdict,
    )


# ----------------------------
# LLM call
# ----------------------------
def _call_llm(prompt: str, temperature: float, max_tokens: int) -> Optional[Tuple[str, str]]:
    """
    Try OpenAI, Anthropic, then Groq, using whichever API key is set first.
    Returns (raw_text, source) or None when no key is configured.
    """
    openai_key = os.getenv("OPENAI_API_KEY", "").strip()
    anthropic_key = os.getenv("ANTHROPIC_API_KEY", "").strip()
    groq_key = os.getenv("GROQ_API_KEY", "").strip()

    if openai_key:
        from openai import OpenAI

        model = os.getenv("LLM_MODEL", "gpt-4o-mini")
        client = OpenAI(api_key=openai_key)
        openai_resp = client.chat.completions.create(
            model=model,
            temperature=float(temperature),
            max_tokens=int(max_tokens),
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
        return (openai_resp.choices[0].message.content or "").strip(), f"OpenAI ({model})"

    if anthropic_key:
        import anthropic

        model = os.getenv("LLM_MODEL", "claude-3-5-sonnet-20240620")
        c = anthropic.Anthropic(api_key=anthropic_key)
        anthropic_msg = c.messages.create(
            model=model,
            max_tokens=int(max_tokens),
            temperature=float(temperature),
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        parts = [getattr(p, "text", "") for p in anthropic_msg.content]
        return "".join(parts).strip(), f"Anthropic ({model})"

    if groq_key:
        from groq import Groq

        model = os.getenv("LLM_MODEL", "llama-3.1-70b-versatile")
        g = Groq(api_key=groq_key)
        groq_resp = g.chat.completions.create(
            model=model,
            temperature=float(temperature),
            max_tokens=int(max_tokens),
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
        return (groq_resp.choices[0].message.content or "").strip(), f"Groq ({model})"

    return None


def generate_analysis(
    metrics: EVMMetrics,
    results: EVMResults,
    constraints: Optional[ManagementConstraints] = None,
    cfg: Optional[dict] = None,
) -> Tuple[AnalysisResponse, str]:
    """
    Returns (report, source). Falls back to the rule-based report when no LLM
    key is set or the LLM call / response parsing fails.
    """
    ai_cfg = (cfg or {}).get("ai", {}) or {}
    prompt = build_prompt(metrics, results, constraints)

    try:
        answer = _call_llm(
            prompt,
            temperature=float(ai_cfg.get("temperature", 0.2)),
            max_tokens=int(ai_cfg.get("max_tokens", 1200)),
        )
        if answer is not None:
            text, source = answer
            return AnalysisResponse.from_json(text), source
    except Exception:
        logger.warning("LLM narrative failed; using rule-based report", exc_info=True)
        return rule_based_analysis(metrics, results, constraints, cfg), "Rule-based (LLM fallback)"

    return rule_based_analysis(metrics, results, constraints, cfg), "Rule-based expert system"


# ----------------------------
# Main entrypoint
# ----------------------------
def main(cfg_fp: str, scenario: Optional[str], processed_dir: Path) -> Path:
    cfg = load_config(Path(cfg_fp))
    metrics, constraints = get_scenario(scenario, cfg) if scenario else default_snapshot(cfg)
    results = evaluate(metrics)
    report, source = generate_analysis(metrics, results, constraints, cfg)

    processed_dir.mkdir(parents=True, exist_ok=True)
    out_jsonl = processed_dir / "variance_narratives.jsonl"
    record = {
        "ts": time.strftime("%Y-%m-%d %H:%M:%S"),
        "scenario": scenario or "default",
        "source": source,
        "metrics": metrics.to_dict(),
        "results": results.to_dict(),
        "constraints": constraints.to_dict(),
        "report": report.to_dict(),
    }
    with open(out_jsonl, "a", encoding="utf-8") as f:
        f.write(json.dumps(record) + "\n")
    print(f"[ai_variance_narratives] Appended narrative to {out_jsonl} source={source}")
    return out_jsonl


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", default="config.yaml")
    ap.add_argument("--scenario", default=None)
    ap.add_argument("--processed", default="data/processed")
    args = ap.parse_args()
    main(args.config, args.scenario, Path(args.processed))
