"""
reduction.py — Surgical-day reduction policies

Two interchangeable strategies share one contract:

    strategy.propose(DoctorEfficiencyRecord) -> Optional[ReductionProposal]

StagedReductionPolicy ("staged")
  Applies to status=low records with planned days. ratio = efficiency / target.
    ratio ≥ 0.8          no proposal
    [0.6, 0.8)           −1 day (−2 when current ≥ 5), floor 1
    [0.4, 0.6)           −2 days (−3 when current ≥ 5), floor 1
    < 0.4                round(performed / target) if performed > 0,
                         else round(current × 0.5); forced to current − 1
                         when that does not reduce; floor 1
  Protected branch (obstetrics) with ratio ≥ 0.3: floor 2, skip when
  current ≤ 2; ratios in [0.3, 0.4) use the [0.4, 0.6) cut.
  Volume preservation: never below ceil(performed / target), never above
  current. Proposals that do not reduce are dropped.

OutcomeRatioPolicy ("outcome-ratio")
  Compares HAO (performed per planned day) with BAO (branch average, or
  the facility average when the branch has a single physician):
    HAO < 40% BAO   cap at 1 day
    HAO < 60% BAO   −2 days
    HAO < 80% BAO   −1 day
  then a 6-day cap unless HAO ≥ 2 × BAO, and a 3-day cap whenever
  0 < HAO < 2.5. Only decreases; freed days become outpatient days.

Capacity gain (both): reduction × round(daily outpatient capacity, or 42).
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple, Type

from .config import DEFAULT_CONFIG, EngineConfig
from .models import (
    DoctorEfficiencyRecord,
    EfficiencyStatus,
    ProposalSummary,
    ReductionProposal,
)
from .normalize import matches_any

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class ReductionStrategy(ABC):
    """Base class: one efficiency record in, at most one proposal out."""

    name = "base"

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config

    @abstractmethod
    def propose(self, record: DoctorEfficiencyRecord) -> Optional[ReductionProposal]:
        ...

    def capacity_gain(self, record: DoctorEfficiencyRecord, reduction: int) -> int:
        daily = record.daily_outpatient_capacity
        if not daily or daily <= 0:
            daily = self.config.fallback_daily_capacity
        return max(0, reduction * round_half_up(daily))

    def _build(
        self,
        record: DoctorEfficiencyRecord,
        proposed_days: int,
        target: float,
        performance_ratio: float,
        justification: Tuple[str, ...] = (),
        outpatient: Tuple[Optional[int], Optional[int]] = (None, None),
    ) -> Optional[ReductionProposal]:
        # Drop rule: no effective reduction, no proposal.
        if proposed_days >= record.planned_days:
            return None
        reduction = record.planned_days - proposed_days
        return ReductionProposal(
            physician_key=record.physician_key,
            physician_name=record.physician_name,
            facility=record.facility,
            branch=record.branch,
            period=record.period,
            current_days=record.planned_days,
            proposed_days=proposed_days,
            reduction=reduction,
            efficiency=record.efficiency_value,
            branch_average=record.branch_average,
            peer_group_average=record.peer_group_average,
            target_efficiency=target,
            performance_ratio=performance_ratio,
            estimated_capacity_gain=self.capacity_gain(record, reduction),
            strategy=self.name,
            justification=justification,
            current_outpatient_days=outpatient[0],
            proposed_outpatient_days=outpatient[1],
        )


# ---------------------------------------------------------------------------
# Staged policy
# ---------------------------------------------------------------------------

class StagedReductionPolicy(ReductionStrategy):

    name = "staged"

    def target_efficiency(self, record: DoctorEfficiencyRecord) -> float:
        if record.reference_efficiency is not None and record.reference_efficiency > 0:
            return record.reference_efficiency
        if record.branch_average > 0:
            return record.branch_average
        return self.config.neutral_target_efficiency

    def is_protected_branch(self, branch: str) -> bool:
        return matches_any(branch, self.config.protected_branch_markers)

    def _cut(self, current: int, cuts: Tuple[int, int]) -> int:
        small, large = cuts
        return large if current >= self.config.large_allocation_days else small

    def staged_days(
        self,
        current: int,
        performed: int,
        ratio: float,
        target: float,
        protected: bool,
    ) -> Optional[Tuple[int, int]]:
        """
        Days after the staged table, before volume preservation.
        Returns (proposed_days, floor) or None when no reduction applies.
        """
        cfg = self.config

        if protected and ratio >= cfg.protected_branch_min_ratio:
            floor = cfg.protected_branch_floor_days
            if current <= floor or ratio >= cfg.no_reduction_ratio:
                return None
            if ratio >= cfg.moderate_ratio:
                return max(floor, current - self._cut(current, cfg.moderate_cuts)), floor
            # [0.4, 0.6) and [0.3, 0.4) share the medium cut.
            return max(floor, current - self._cut(current, cfg.medium_cuts)), floor

        floor = cfg.general_floor_days
        if ratio >= cfg.no_reduction_ratio:
            return None
        if ratio >= cfg.moderate_ratio:
            return max(floor, current - self._cut(current, cfg.moderate_cuts)), floor
        if ratio >= cfg.aggressive_ratio:
            return max(floor, current - self._cut(current, cfg.medium_cuts)), floor

        if performed > 0:
            proposed = max(floor, round_half_up(performed / target))
        else:
            proposed = max(floor, round_half_up(current * cfg.aggressive_zero_volume_factor))
        if proposed >= current:
            proposed = max(floor, current - 1)
        return proposed, floor

    def propose(self, record: DoctorEfficiencyRecord) -> Optional[ReductionProposal]:
        if record.status != EfficiencyStatus.LOW or record.planned_days <= 0:
            return None

        current = record.planned_days
        performed = record.performed_count
        target = self.target_efficiency(record)
        ratio = record.efficiency_value / target if target > 0 else 0.0
        protected = self.is_protected_branch(record.branch)

        staged = self.staged_days(current, performed, ratio, target, protected)
        if staged is None:
            return None
        proposed, _floor = staged

        notes = [f"ratio {ratio:.2f} of target {target:.2f}"]
        if protected and ratio >= self.config.protected_branch_min_ratio:
            notes.append(f"protected branch: floor {self.config.protected_branch_floor_days} days")

        if performed > 0 and target > 0:
            min_days_for_volume = math.ceil(performed / target)
            if proposed < min_days_for_volume:
                proposed = min(min_days_for_volume, current)
                notes.append(f"raised to {proposed} days to keep volume of {performed} cases")

        return self._build(record, proposed, target, ratio, tuple(notes))


# ---------------------------------------------------------------------------
# Outcome-ratio (HAO / BAO) policy
# ---------------------------------------------------------------------------

class OutcomeRatioPolicy(ReductionStrategy):

    name = "outcome-ratio"

    def baseline(self, record: DoctorEfficiencyRecord) -> Tuple[float, bool]:
        """(BAO, uses_facility_average)."""
        if record.branch_physician_count <= 1:
            return record.facility_average, True
        return record.branch_average, False

    def propose(self, record: DoctorEfficiencyRecord) -> Optional[ReductionProposal]:
        if record.planned_days <= 0:
            return None

        cfg = self.config
        current = record.planned_days
        hao = record.efficiency_value
        bao, facility_wide = self.baseline(record)
        floor = cfg.ratio_policy_floor_days
        proposed = current
        notes: List[str] = []

        if facility_wide:
            notes.append("single physician in branch: compared with the facility average")

        if hao < bao * cfg.ratio_policy_cap_band:
            if proposed > cfg.ratio_policy_cap_days:
                proposed = max(floor, cfg.ratio_policy_cap_days)
                notes.append(f"HAO below {cfg.ratio_policy_cap_band:.0%} of BAO: capped at {proposed} days")
        elif hao < bao * cfg.ratio_policy_medium_band:
            proposed = max(floor, proposed - 2)
            notes.append(f"HAO below {cfg.ratio_policy_medium_band:.0%} of BAO: −2 days")
        elif hao < bao * cfg.ratio_policy_moderate_band:
            proposed = max(floor, proposed - 1)
            notes.append(f"HAO below {cfg.ratio_policy_moderate_band:.0%} of BAO: −1 day")

        if proposed > cfg.ratio_policy_max_days and hao < bao * cfg.ratio_policy_excellence_multiple:
            proposed = cfg.ratio_policy_max_days
            notes.append(f"capped at {cfg.ratio_policy_max_days} days without outstanding performance")

        if 0 < hao < cfg.ratio_policy_low_volume_hao and proposed > cfg.ratio_policy_low_volume_max_days:
            proposed = cfg.ratio_policy_low_volume_max_days
            notes.append(
                f"HAO below {cfg.ratio_policy_low_volume_hao} cases/day: "
                f"capped at {cfg.ratio_policy_low_volume_max_days} days"
            )

        proposed = min(proposed, current)
        reduction = current - proposed
        outpatient = (record.outpatient_days, record.outpatient_days + reduction)
        perf_ratio = hao / bao if bao > 0 else 0.0
        return self._build(record, proposed, bao, perf_ratio, tuple(notes), outpatient)


# ---------------------------------------------------------------------------
# Registry and batch helpers
# ---------------------------------------------------------------------------

STRATEGIES: Dict[str, Type[ReductionStrategy]] = {
    StagedReductionPolicy.name: StagedReductionPolicy,
    OutcomeRatioPolicy.name: OutcomeRatioPolicy,
}


def get_strategy(name: str, config: EngineConfig = DEFAULT_CONFIG) -> ReductionStrategy:
    cls = STRATEGIES.get(name)
    if cls is None:
        raise ValueError(f"Unknown reduction strategy {name!r}; expected one of {sorted(STRATEGIES)}")
    return cls(config)


def propose_reductions(
    records: Iterable[DoctorEfficiencyRecord],
    strategy: ReductionStrategy,
) -> List[ReductionProposal]:
    """Run a strategy over records; proposals sorted by reduction (largest first)."""
    proposals = [p for p in (strategy.propose(r) for r in records) if p is not None and p.reduction > 0]
    proposals.sort(key=lambda p: (-p.reduction, p.physician_name))
    logger.info(f"Strategy {strategy.name}: {len(proposals)} reduction proposals")
    return proposals


def summarize_proposals(proposals: Iterable[ReductionProposal]) -> ProposalSummary:
    proposals = list(proposals)
    return ProposalSummary(
        proposal_count=len(proposals),
        total_reduction_days=sum(p.reduction for p in proposals),
        total_capacity_gain=sum(p.estimated_capacity_gain for p in proposals),
    )
