"""
tables.py — Table and report views of engine outputs

Outputs:
  - DataFrames: action-day pivot, efficiency table, proposal table,
    period comparison table, version-change table
  - CSV export of any of those tables
  - Proposal report (.txt-style text): KPIs, per-physician efficiency,
    proposals with justification, totals

Usage:
  from schedule_analytics.tables import efficiency_table, format_proposal_report
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .efficiency import EfficiencyReport
from .models import ActionDaySummary, ActionDelta, DoctorEfficiencyRecord, ReductionProposal
from .reduction import summarize_proposals
from .versions import VersionComparison

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DataFrames
# ---------------------------------------------------------------------------

def action_day_table(summaries: Dict[str, ActionDaySummary]) -> pd.DataFrame:
    """One row per group, one column per action, plus work-day and capacity totals."""
    rows = []
    for key in sorted(summaries):
        s = summaries[key]
        row = {"key": s.key, "name": s.label, "branch": s.branch}
        row.update(s.action_days)
        row["total_work_days"] = s.total_work_days
        row["capacity_total"] = s.capacity_total
        rows.append(row)
    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(columns=["key", "name", "branch", "total_work_days", "capacity_total"])
    fixed = ["key", "name", "branch"]
    tail = ["total_work_days", "capacity_total"]
    actions = sorted(c for c in df.columns if c not in fixed + tail)
    df[actions] = df[actions].fillna(0.0)
    return df[fixed + actions + tail]


def efficiency_table(records: Iterable[DoctorEfficiencyRecord]) -> pd.DataFrame:
    rows = [
        {
            "physician": r.physician_name,
            "branch": r.branch,
            "period": r.period.key,
            "planned_days": r.planned_days,
            "performed": r.performed_count,
            "efficiency": r.efficiency,
            "branch_average": r.branch_average,
            "peer_group_average": r.peer_group_average,
            "reference_efficiency": r.reference_efficiency,
            "status": r.status.value,
            "daily_outpatient_capacity": r.daily_outpatient_capacity,
            "capacity_total": r.capacity_total,
            "exams_total": r.exams_total,
            "exams_booked": r.exams_booked,
            "exams_walk_in": r.exams_walk_in,
            "exam_utilization": r.exam_utilization,
            "capacity_gap": r.capacity_gap,
        }
        for r in records
    ]
    return pd.DataFrame(rows)


def proposal_table(proposals: Iterable[ReductionProposal]) -> pd.DataFrame:
    rows = [
        {
            "physician": p.physician_name,
            "branch": p.branch,
            "period": p.period.key,
            "current_days": p.current_days,
            "proposed_days": p.proposed_days,
            "reduction": p.reduction,
            "efficiency": p.efficiency,
            "target_efficiency": p.target_efficiency,
            "performance_ratio": p.performance_ratio,
            "estimated_capacity_gain": p.estimated_capacity_gain,
            "strategy": p.strategy,
            "justification": "; ".join(p.justification),
        }
        for p in proposals
    ]
    return pd.DataFrame(rows)


def comparison_table(
    deltas: Dict[str, List[ActionDelta]],
    labels: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """Long-format current/previous/delta table, one row per (group, action)."""
    labels = labels or {}
    rows = [
        {
            "key": key,
            "name": labels.get(key, key),
            "action": d.action,
            "current": d.current,
            "previous": d.previous,
            "delta": d.delta,
            "delta_percent": d.delta_percent,
            "significant": d.significant,
        }
        for key in sorted(deltas)
        for d in deltas[key]
    ]
    return pd.DataFrame(rows)


def version_change_table(comparison: VersionComparison) -> pd.DataFrame:
    rows = [
        {
            "physician": c.physician_name,
            "branch": c.branch,
            "baseline_capacity": c.baseline_capacity,
            "updated_capacity": c.updated_capacity,
            "capacity_delta": c.capacity_delta,
            "change_type": c.change_type,
            "top_driver_action": c.top_driver_action,
        }
        for c in comparison.changes
    ]
    return pd.DataFrame(rows)


def export_table(df: pd.DataFrame, output_path: Path) -> None:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.info(f"CSV exported → {output_path}")


# ---------------------------------------------------------------------------
# Text report
# ---------------------------------------------------------------------------

def _num(value: Optional[float], width: int = 7) -> str:
    return f"{value:>{width}.2f}" if value is not None else f"{'-':>{width}}"


def format_proposal_report(
    report: EfficiencyReport,
    proposals: List[ReductionProposal],
    strategy: str = "",
) -> str:
    """Efficiency overview and reduction proposals as plain text."""
    sep = "=" * 78
    rule = "─" * 78
    kpis = report.kpis
    summary = summarize_proposals(proposals)

    lines = [
        sep,
        f"  SURGICAL EFFICIENCY REPORT — {report.facility} {report.period.month_name} {report.period.year}",
        sep,
        "",
        f"  Planned surgery days:  {kpis.total_planned_days}",
        f"  Performed surgeries:   {kpis.total_performed}",
        f"  Facility average:      {kpis.average_efficiency:.2f} cases/day",
        f"  Physicians:            {kpis.physician_count} ({kpis.surgical_physician_count} surgical)",
    ]
    if not report.outcomes_loaded:
        lines.append("  Outcome data:          not loaded (performed counts shown as 0)")
    if report.peer_stats is not None:
        lines.append(
            f"  Peer group:            {report.peer_stats.role_group} "
            f"({report.peer_stats.pooled_count}/{report.peer_stats.total_facilities} facilities pooled)"
        )

    lines += [
        "",
        rule,
        "  Per-Physician Efficiency",
        rule,
        f"  {'Name':<26} {'Branch':<18} {'Days':>4} {'Done':>5} {'Eff':>7} {'Ref':>7}  Status",
    ]
    for r in report.records:
        lines.append(
            f"  {r.physician_name[:26]:<26} {r.branch[:18]:<18} {r.planned_days:>4d} "
            f"{r.performed_count:>5d} {_num(r.efficiency)} {_num(r.reference_efficiency)}  {r.status.value}"
        )

    lines += [
        "",
        rule,
        f"  Reduction Proposals{(' (' + strategy + ')') if strategy else ''}",
        rule,
    ]
    if proposals:
        for p in proposals:
            lines.append(
                f"  {p.physician_name[:26]:<26} {p.current_days:>3d} → {p.proposed_days:<3d} "
                f"(−{p.reduction})  +{p.estimated_capacity_gain} outpatient slots"
            )
            for note in p.justification:
                lines.append(f"      · {note}")
    else:
        lines.append("  (no reductions proposed)")

    lines += [
        "",
        f"  Total: {summary.proposal_count} proposals, {summary.total_reduction_days} days, "
        f"+{summary.total_capacity_gain} estimated outpatient capacity",
        sep,
    ]
    return "\n".join(lines)
