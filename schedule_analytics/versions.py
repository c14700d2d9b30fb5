"""
versions.py — Roster version comparison

Compares two uploads of the same period's roster (baseline vs updated)
physician by physician. Physicians are matched on the loose match_key of
name + branch, so "Op. Dr. Adem Dilek" and "ADEM DİLEK" line up.

Change types:
  none                     nothing moved
  capacity-only            |capacity delta| > 0.1, no action change
  action-mix-only          action days moved, capacity unchanged
  capacity-and-action-mix  both

Only changed physicians are reported.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .aggregator import GROUP_BY_PHYSICIAN, summarize_actions
from .config import DEFAULT_CONFIG, EngineConfig
from .models import ActionDaySummary, RosterEntry
from .normalize import match_key

logger = logging.getLogger(__name__)

ACTION_DELTA_EPSILON = 0.01
CAPACITY_DELTA_EPSILON = 0.1
TOP_N = 5

CHANGE_NONE = "none"
CHANGE_CAPACITY_ONLY = "capacity-only"
CHANGE_ACTION_MIX_ONLY = "action-mix-only"
CHANGE_BOTH = "capacity-and-action-mix"


@dataclass
class PhysicianChange:
    physician_name: str
    branch: str
    baseline_capacity: int
    updated_capacity: int
    capacity_delta: int
    action_deltas: Dict[str, float] = field(default_factory=dict)
    change_type: str = CHANGE_NONE
    top_driver_action: Optional[str] = None


@dataclass
class BranchChange:
    branch: str
    capacity_delta: int
    baseline_capacity: int
    share_percent: float


@dataclass
class VersionComparison:
    changes: List[PhysicianChange]
    branches: List[BranchChange]
    baseline_capacity_total: int
    updated_capacity_total: int

    @property
    def net_capacity_delta(self) -> int:
        return self.updated_capacity_total - self.baseline_capacity_total

    def top_physicians(self, n: int = TOP_N) -> List[PhysicianChange]:
        return sorted(self.changes, key=lambda c: abs(c.capacity_delta), reverse=True)[:n]

    def top_branches(self, n: int = TOP_N) -> List[BranchChange]:
        return sorted(self.branches, key=lambda b: abs(b.capacity_delta), reverse=True)[:n]


def _index(summaries: Dict[str, ActionDaySummary]) -> Dict[Tuple[str, str], ActionDaySummary]:
    return {(match_key(s.label), match_key(s.branch)): s for s in summaries.values()}


def classify_change(capacity_delta: float, has_action_change: bool) -> str:
    capacity_moved = abs(capacity_delta) > CAPACITY_DELTA_EPSILON
    if capacity_moved and has_action_change:
        return CHANGE_BOTH
    if capacity_moved:
        return CHANGE_CAPACITY_ONLY
    if has_action_change:
        return CHANGE_ACTION_MIX_ONLY
    return CHANGE_NONE


def compare_versions(
    baseline_entries: Iterable[RosterEntry],
    updated_entries: Iterable[RosterEntry],
    branch: Optional[str] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> VersionComparison:
    """Compare two roster versions of one period. branch restricts the report."""
    base = summarize_actions(baseline_entries, GROUP_BY_PHYSICIAN, config)
    upd = summarize_actions(updated_entries, GROUP_BY_PHYSICIAN, config)
    base_idx = _index(base)
    upd_idx = _index(upd)

    changes: List[PhysicianChange] = []
    for ident in sorted(set(base_idx) | set(upd_idx)):
        b = base_idx.get(ident)
        u = upd_idx.get(ident)
        display = u or b
        if branch and match_key(display.branch) != match_key(branch):
            continue

        b_cap = b.capacity_total if b else 0
        u_cap = u.capacity_total if u else 0
        b_days = b.action_days if b else {}
        u_days = u.action_days if u else {}

        action_deltas = {}
        for action in sorted(set(b_days) | set(u_days)):
            d = u_days.get(action, 0.0) - b_days.get(action, 0.0)
            if abs(d) > ACTION_DELTA_EPSILON:
                action_deltas[action] = d

        change_type = classify_change(u_cap - b_cap, bool(action_deltas))
        if change_type == CHANGE_NONE:
            continue

        top = None
        if action_deltas:
            top = max(action_deltas, key=lambda a: abs(action_deltas[a]))

        changes.append(PhysicianChange(
            physician_name=display.label,
            branch=display.branch,
            baseline_capacity=b_cap,
            updated_capacity=u_cap,
            capacity_delta=u_cap - b_cap,
            action_deltas=action_deltas,
            change_type=change_type,
            top_driver_action=top,
        ))

    branch_totals: Dict[str, List[int]] = {}
    for c in changes:
        delta, base_cap = branch_totals.get(c.branch, [0, 0])
        branch_totals[c.branch] = [delta + c.capacity_delta, base_cap + c.baseline_capacity]
    total_abs = sum(abs(v[0]) for v in branch_totals.values())
    branches = [
        BranchChange(
            branch=name,
            capacity_delta=v[0],
            baseline_capacity=v[1],
            share_percent=(abs(v[0]) / total_abs * 100) if total_abs > 0 else 0.0,
        )
        for name, v in sorted(branch_totals.items())
    ]

    logger.info(f"Version comparison: {len(changes)} changed physicians across {len(branches)} branches")
    return VersionComparison(
        changes=changes,
        branches=branches,
        baseline_capacity_total=sum(s.capacity_total for s in base.values()),
        updated_capacity_total=sum(s.capacity_total for s in upd.values()),
    )
