"""
aggregator.py — Action-day aggregation

Sums half-day classifications into period totals:
  - per physician:  {action: days} plus work days and capacity total
  - per branch
  - facility-wide

and compares a period against the one before it. A delta is significant
only if |delta %| ≥ significant_delta_percent AND |delta| ≥
significant_delta_days.

Pure functions over supplied entry collections; nothing is mutated.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from .classifier import classify_entries, drop_holidays
from .config import DEFAULT_CONFIG, EngineConfig
from .models import ActionDaySummary, ActionDelta, HalfDayClassification, RosterEntry

logger = logging.getLogger(__name__)

FACILITY_KEY = "__facility__"

GROUP_BY_PHYSICIAN = "physician"
GROUP_BY_BRANCH = "branch"
GROUP_BY_FACILITY = "facility"
GROUPINGS = (GROUP_BY_PHYSICIAN, GROUP_BY_BRANCH, GROUP_BY_FACILITY)


def _group_key(item, group_by: str) -> str:
    if group_by == GROUP_BY_PHYSICIAN:
        return item.physician_key
    if group_by == GROUP_BY_BRANCH:
        return item.branch
    if group_by == GROUP_BY_FACILITY:
        return FACILITY_KEY
    raise ValueError(f"Unknown grouping {group_by!r}; expected one of {GROUPINGS}")


def _group_label(item, group_by: str) -> str:
    if group_by == GROUP_BY_PHYSICIAN:
        return item.physician_name
    if group_by == GROUP_BY_BRANCH:
        return item.branch
    return item.facility


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def action_totals(
    classifications: Iterable[HalfDayClassification],
    group_by: str = GROUP_BY_PHYSICIAN,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[str, Dict[str, float]]:
    """Return {group_key: {action: days}} from half-day classifications."""
    totals: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for c in classifications:
        totals[_group_key(c, group_by)][c.action] += config.half_day
    return {k: dict(v) for k, v in totals.items()}


def summarize_actions(
    entries: Iterable[RosterEntry],
    group_by: str = GROUP_BY_PHYSICIAN,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[str, ActionDaySummary]:
    """
    Build ActionDaySummary rows for a period's entries.

    Capacity totals include result/control exam entries (they are excluded
    from classification only); holiday entries contribute nothing.
    """
    if group_by not in GROUPINGS:
        raise ValueError(f"Unknown grouping {group_by!r}; expected one of {GROUPINGS}")

    surviving = drop_holidays(entries, config)
    summaries: Dict[str, ActionDaySummary] = {}

    for entry in surviving:
        key = _group_key(entry, group_by)
        summary = summaries.get(key)
        if summary is None:
            summary = ActionDaySummary(
                key=key,
                label=_group_label(entry, group_by),
                branch=entry.branch if group_by != GROUP_BY_FACILITY else "",
            )
            summaries[key] = summary
        summary.capacity_total += int(entry.capacity or 0)

    for c in classify_entries(surviving, config):
        summary = summaries[_group_key(c, group_by)]
        summary.action_days[c.action] = summary.action_days.get(c.action, 0.0) + config.half_day
        summary.total_work_days += config.half_day

    logger.info(f"Summarized {len(summaries)} {group_by} rows from {len(surviving)} entries")
    return summaries


# ---------------------------------------------------------------------------
# Period comparison
# ---------------------------------------------------------------------------

def compare_action_days(
    current: Dict[str, float],
    previous: Dict[str, float],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[ActionDelta]:
    """
    Per-action {current, previous, delta, delta %, significant}.

    delta % is None when the previous value is zero (no baseline); such a
    delta is significant on the day threshold alone.
    """
    deltas: List[ActionDelta] = []
    for action in sorted(set(current) | set(previous)):
        cur = current.get(action, 0.0)
        prev = previous.get(action, 0.0)
        delta = cur - prev
        pct: Optional[float] = (delta / prev * 100) if prev else None
        pct_ok = pct is None or abs(pct) >= config.significant_delta_percent
        significant = delta != 0 and pct_ok and abs(delta) >= config.significant_delta_days
        deltas.append(ActionDelta(
            action=action,
            current=cur,
            previous=prev,
            delta=delta,
            delta_percent=pct,
            significant=significant,
        ))
    return deltas


def compare_periods(
    current_entries: Iterable[RosterEntry],
    previous_entries: Iterable[RosterEntry],
    group_by: str = GROUP_BY_PHYSICIAN,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[str, List[ActionDelta]]:
    """Compare two periods' action days for every group present in either."""
    cur = summarize_actions(current_entries, group_by, config)
    prev = summarize_actions(previous_entries, group_by, config)
    result: Dict[str, List[ActionDelta]] = {}
    for key in sorted(set(cur) | set(prev)):
        cur_days = cur[key].action_days if key in cur else {}
        prev_days = prev[key].action_days if key in prev else {}
        result[key] = compare_action_days(cur_days, prev_days, config)
    significant = sum(1 for ds in result.values() for d in ds if d.significant)
    logger.info(f"Compared {len(result)} {group_by} rows: {significant} significant deltas")
    return result
