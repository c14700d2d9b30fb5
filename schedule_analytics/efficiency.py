"""
efficiency.py — Surgical efficiency resolver

Joins planned surgery days from the roster with externally reported
performed-surgery counts.

Layers:
  1. Physician   efficiency = performed / planned_days (None when no planned days)
  2. Branch      Σ performed / Σ planned_days within the selected facility
  3. Peer group  same sums pooled over every facility of the canonical role
                 group that has BOTH roster and outcome data for the period

Reference efficiency = peer-group branch average if > 0, else the local
branch average if > 0, else None.

Status (first match wins):
  no-data  planned_days == 0 and performed == 0
  low      efficiency < low_efficiency_factor  × reference
  high     efficiency > high_efficiency_factor × reference
  normal   otherwise
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .classifier import is_holiday, is_result_exam
from .config import DEFAULT_CONFIG, EngineConfig
from .models import (
    DoctorEfficiencyRecord,
    EfficiencyStatus,
    OutcomeRecord,
    PeerPoolStats,
    Period,
    RosterEntry,
)
from .normalize import matches_any

logger = logging.getLogger(__name__)

Outcomes = Dict[str, OutcomeRecord]                                   # physician_key → record
PeerDatasets = Dict[str, Tuple[Optional[List[RosterEntry]], Optional[Outcomes]]]


# ---------------------------------------------------------------------------
# Physician activity
# ---------------------------------------------------------------------------

@dataclass
class PhysicianActivity:
    physician_key: str
    physician_name: str
    branch: str
    surgery_dates: Set[str] = field(default_factory=set)
    exam_dates: Set[str] = field(default_factory=set)
    exam_capacity: int = 0
    capacity_total: int = 0

    @property
    def planned_days(self) -> int:
        return len(self.surgery_dates)

    @property
    def daily_outpatient_capacity(self) -> float:
        if not self.exam_dates:
            return 0.0
        return self.exam_capacity / len(self.exam_dates)


def collect_activity(
    entries: Iterable[RosterEntry],
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[str, PhysicianActivity]:
    """
    Per physician: distinct surgery dates, outpatient exam dates/capacity
    and total capacity.

    Holiday entries are ignored. Result/control exam entries add capacity
    only.
    """
    activity: Dict[str, PhysicianActivity] = {}
    branches: Dict[str, Counter] = {}
    names: Dict[str, Set[str]] = {}

    for entry in entries:
        if is_holiday(entry, config):
            continue
        key = entry.physician_key
        act = activity.get(key)
        if act is None:
            act = PhysicianActivity(key, entry.physician_name, entry.branch)
            activity[key] = act
            branches[key] = Counter()
            names[key] = set()
        branches[key][entry.branch] += 1
        names[key].add(entry.physician_name)
        act.capacity_total += int(entry.capacity or 0)

        if is_result_exam(entry, config):
            continue
        if matches_any(entry.action, config.surgery_actions):
            act.surgery_dates.add(entry.date)
        elif matches_any(entry.action, config.exam_actions):
            act.exam_dates.add(entry.date)
            act.exam_capacity += int(entry.capacity or 0)

    # Most frequent branch label wins; ties by name so input order never matters.
    for key, act in activity.items():
        counts = branches[key]
        act.branch = sorted(counts, key=lambda b: (-counts[b], b))[0]
        act.physician_name = min(names[key])
    return activity


def performed_for(outcomes: Optional[Outcomes], physician_key: str) -> int:
    if not outcomes:
        return 0
    record = outcomes.get(physician_key)
    if record is None or record.performed_surgeries is None:
        return 0
    return int(record.performed_surgeries)


def ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


# ---------------------------------------------------------------------------
# Branch sums
# ---------------------------------------------------------------------------

def branch_totals(
    activity: Dict[str, PhysicianActivity],
    outcomes: Optional[Outcomes],
) -> Dict[str, Tuple[int, int]]:
    """{branch: (Σ performed, Σ planned_days)} over physicians with planned days."""
    totals: Dict[str, Tuple[int, int]] = {}
    for key, act in activity.items():
        if act.planned_days == 0:
            continue
        performed, days = totals.get(act.branch, (0, 0))
        totals[act.branch] = (performed + performed_for(outcomes, key), days + act.planned_days)
    return totals


def branch_averages(totals: Dict[str, Tuple[int, int]]) -> Dict[str, float]:
    return {branch: ratio(p, d) for branch, (p, d) in totals.items()}


# ---------------------------------------------------------------------------
# Peer-group pooling
# ---------------------------------------------------------------------------

def pool_peer_group(
    period: Period,
    role_group: Optional[str],
    peer_datasets: PeerDatasets,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Tuple[Dict[str, float], PeerPoolStats]:
    """
    Pool branch sums across peer facilities for one period.

    peer_datasets maps every facility of the role group (the selected one
    included) to (roster entries or None, outcomes or None). A facility
    is pooled only if both are present; otherwise it is skipped, never
    zero-filled.
    """
    pooled: List[str] = []
    skipped: List[str] = []
    sums: Dict[str, Tuple[int, int]] = {}

    for facility in sorted(peer_datasets):
        entries, outcomes = peer_datasets[facility]
        period_entries = [e for e in (entries or []) if e.period == period]
        if not period_entries or outcomes is None:
            skipped.append(facility)
            continue
        pooled.append(facility)
        for branch, (p, d) in branch_totals(collect_activity(period_entries, config), outcomes).items():
            sp, sd = sums.get(branch, (0, 0))
            sums[branch] = (sp + p, sd + d)

    if skipped:
        logger.warning(
            f"Role group {role_group} {period.key}: skipped {len(skipped)} facilities "
            f"without complete data: {skipped}"
        )
    logger.info(f"Role group {role_group} {period.key}: pooled {len(pooled)}/{len(peer_datasets)} facilities")

    stats = PeerPoolStats(
        role_group=role_group,
        period=period,
        pooled_facilities=tuple(pooled),
        skipped_facilities=tuple(skipped),
        total_facilities=len(peer_datasets),
    )
    return branch_averages(sums), stats


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def reference_efficiency(peer_average: Optional[float], branch_average: float) -> Optional[float]:
    if peer_average is not None and peer_average > 0:
        return peer_average
    if branch_average > 0:
        return branch_average
    return None


def classify_status(
    planned_days: int,
    performed: int,
    efficiency: Optional[float],
    reference: Optional[float],
    config: EngineConfig = DEFAULT_CONFIG,
) -> EfficiencyStatus:
    if planned_days == 0 and performed == 0:
        return EfficiencyStatus.NO_DATA
    if efficiency is not None and reference is not None and reference > 0:
        if efficiency < reference * config.low_efficiency_factor:
            return EfficiencyStatus.LOW
        if efficiency > reference * config.high_efficiency_factor:
            return EfficiencyStatus.HIGH
    return EfficiencyStatus.NORMAL


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass
class EfficiencyKpis:
    total_planned_days: int
    total_performed: int
    average_efficiency: float
    physician_count: int
    surgical_physician_count: int


@dataclass
class EfficiencyReport:
    facility: str
    period: Period
    records: List[DoctorEfficiencyRecord]
    branch_averages: Dict[str, float]
    peer_averages: Dict[str, float]
    peer_stats: Optional[PeerPoolStats]
    kpis: EfficiencyKpis
    outcomes_loaded: bool = True

    def by_status(self, status: EfficiencyStatus) -> List[DoctorEfficiencyRecord]:
        return [r for r in self.records if r.status == status]


def resolve_efficiency(
    facility: str,
    period: Period,
    entries: Iterable[RosterEntry],
    outcomes: Optional[Outcomes],
    config: EngineConfig = DEFAULT_CONFIG,
    peer_datasets: Optional[PeerDatasets] = None,
    role_group: Optional[str] = None,
    branch: Optional[str] = None,
    include_non_surgical: bool = False,
) -> EfficiencyReport:
    """
    Build DoctorEfficiencyRecords for one facility and period.

    Args:
        facility:              Selected facility id.
        period:                Period to analyze; entries from other periods
                               or facilities are ignored.
        entries:               Roster entries of the facility.
        outcomes:              {physician_key: OutcomeRecord}, None if not loaded.
        peer_datasets:         Datasets of the role group for pooling (see
                               pool_peer_group). None disables pooling.
        role_group:            Canonical role group, for logging/stats.
        branch:                Restrict returned records to one branch (averages
                               are always computed over all branches).
        include_non_surgical:  Also emit records (status no-data) for physicians
                               without planned days or performed surgeries.
    """
    if not facility:
        raise ValueError("A facility must be selected before resolving efficiency")
    if period is None:
        raise ValueError("A period must be selected before resolving efficiency")

    period_entries = [e for e in entries if e.facility == facility and e.period == period]
    if outcomes is None:
        logger.warning(f"No outcome data loaded for {facility} {period.key}; performed counts are 0")

    activity = collect_activity(period_entries, config)
    totals = branch_totals(activity, outcomes)
    local_avgs = branch_averages(totals)
    branch_counts = Counter(a.branch for a in activity.values() if a.planned_days > 0)

    total_planned = sum(a.planned_days for a in activity.values())
    total_performed = sum(
        performed_for(outcomes, k) for k, a in activity.items() if a.planned_days > 0
    )
    facility_avg = ratio(total_performed, total_planned)

    peer_avgs: Dict[str, float] = {}
    peer_stats: Optional[PeerPoolStats] = None
    if peer_datasets:
        peer_avgs, peer_stats = pool_peer_group(period, role_group, peer_datasets, config)

    records: List[DoctorEfficiencyRecord] = []
    for key in sorted(activity):
        act = activity[key]
        performed = performed_for(outcomes, key)
        if not include_non_surgical and act.planned_days == 0 and performed == 0:
            continue
        if branch and act.branch != branch:
            continue

        eff = performed / act.planned_days if act.planned_days > 0 else None
        b_avg = local_avgs.get(act.branch, 0.0)
        p_avg = peer_avgs.get(act.branch) if peer_avgs else None
        ref = reference_efficiency(p_avg, b_avg)

        outcome = outcomes.get(key) if outcomes else None
        exams_total = outcome.exams_total if outcome else None
        utilization = None
        if exams_total is not None and act.capacity_total > 0:
            utilization = exams_total / act.capacity_total

        records.append(DoctorEfficiencyRecord(
            physician_key=key,
            physician_name=act.physician_name,
            facility=facility,
            branch=act.branch,
            period=period,
            planned_days=act.planned_days,
            performed_count=performed,
            efficiency=eff,
            branch_average=b_avg,
            peer_group_average=p_avg,
            reference_efficiency=ref,
            status=classify_status(act.planned_days, performed, eff, ref, config),
            daily_outpatient_capacity=act.daily_outpatient_capacity,
            outpatient_days=len(act.exam_dates),
            capacity_total=act.capacity_total,
            branch_physician_count=branch_counts.get(act.branch, 0),
            facility_average=facility_avg,
            exams_total=exams_total,
            exam_utilization=utilization,
            exams_booked=outcome.exams_booked if outcome else None,
            exams_walk_in=outcome.exams_walk_in if outcome else None,
        ))

    kpis = EfficiencyKpis(
        total_planned_days=total_planned,
        total_performed=total_performed,
        average_efficiency=facility_avg,
        physician_count=len(activity),
        surgical_physician_count=sum(1 for a in activity.values() if a.planned_days > 0),
    )
    low = sum(1 for r in records if r.status == EfficiencyStatus.LOW)
    logger.info(
        f"Resolved efficiency for {facility} {period.key}: {len(records)} physicians, {low} low"
    )
    return EfficiencyReport(
        facility=facility,
        period=period,
        records=records,
        branch_averages=local_avgs,
        peer_averages=peer_avgs,
        peer_stats=peer_stats,
        kpis=kpis,
        outcomes_loaded=outcomes is not None,
    )


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------

SORTABLE_FIELDS: Sequence[str] = (
    "physician_name", "branch", "planned_days", "performed_count", "efficiency",
    "branch_average", "peer_group_average", "reference_efficiency",
    "daily_outpatient_capacity", "capacity_total", "exam_utilization",
)


def sort_records(
    records: Iterable[DoctorEfficiencyRecord],
    field_name: str = "efficiency",
    descending: bool = False,
) -> List[DoctorEfficiencyRecord]:
    """Sort by any numeric or text field; undefined numbers sort as 0."""
    if field_name not in SORTABLE_FIELDS:
        raise ValueError(f"Cannot sort by {field_name!r}; expected one of {list(SORTABLE_FIELDS)}")

    def key(r: DoctorEfficiencyRecord):
        value = getattr(r, field_name)
        if isinstance(value, str):
            return value
        return value if value is not None else 0.0

    return sorted(records, key=key, reverse=descending)
