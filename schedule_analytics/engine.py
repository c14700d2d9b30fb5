"""
engine.py — Schedule Analytics Engine facade

Ties the pure computations to a DatasetStore and the peer-data
coordinator:

  raw entries → half-day classifications → action-day totals
              → efficiency records → reduction proposals

Every request is validated before any computation: a missing facility or
period raises ValueError instead of returning an empty result that could
be read as "nothing to reduce".
"""

import logging
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .aggregator import GROUP_BY_PHYSICIAN, compare_periods, summarize_actions
from .classifier import classify_entries
from .config import DEFAULT_CONFIG, EngineConfig
from .efficiency import EfficiencyReport, resolve_efficiency
from .models import (
    ActionDaySummary,
    ActionDelta,
    FetchReport,
    HalfDayClassification,
    OutcomeRecord,
    Period,
    ReductionProposal,
    RosterEntry,
)
from .normalize import normalize_physician_name
from .peers import DatasetStore, PeerDataCoordinator, PeerLoader, RoleGroupDirectory
from .reduction import get_strategy, propose_reductions
from .versions import VersionComparison, compare_versions

logger = logging.getLogger(__name__)


class ScheduleAnalyticsEngine:
    """
    Entry point for callers: holds configuration, the physician-name
    normalizer and the loaded datasets.
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        normalizer: Callable[[str], str] = normalize_physician_name,
        store: Optional[DatasetStore] = None,
        directory: Optional[RoleGroupDirectory] = None,
        peer_loader: Optional[PeerLoader] = None,
    ):
        """
        Args:
            config:       Engine tunables
            normalizer:   Maps a raw physician name to the join key
            store:        Dataset registry (a fresh one if omitted)
            directory:    Facility → role group lookup; None disables peer pooling
            peer_loader:  loader(facility, period) used by the coordinator
        """
        self.config = config
        self.normalizer = normalizer
        self.store = store if store is not None else DatasetStore()
        self.directory = directory
        self.coordinator: Optional[PeerDataCoordinator] = None
        if directory is not None and peer_loader is not None:
            self.coordinator = PeerDataCoordinator(peer_loader, directory, self.store)

    # ------------------------------------------------------------------
    # Data intake
    # ------------------------------------------------------------------

    def add_roster(self, facility: str, period: Period, entries: Iterable[RosterEntry]) -> None:
        self._require(facility, period)
        keyed = [e.rekey(self.normalizer) for e in entries if e.facility == facility and e.period == period]
        self.store.put_roster(facility, period, keyed)

    def add_outcomes(self, facility: str, period: Period, records: Iterable[OutcomeRecord]) -> None:
        self._require(facility, period)
        keyed = [replace(r, physician_key=self.normalizer(r.physician_name)) for r in records]
        self.store.put_outcomes(facility, period, keyed)

    def clear_data(self, facility: Optional[str] = None, period: Optional[Period] = None) -> int:
        """
        Drop stored roster and outcome data. Peer data removed here is
        fetched again by the next load_peer_data call.
        """
        removed = self.store.clear(facility, period)
        if self.coordinator is not None:
            self.coordinator.forget(facility, period)
        return removed

    def _require(self, facility: Optional[str], period: Optional[Period]) -> None:
        if not facility:
            raise ValueError("No facility selected")
        if period is None:
            raise ValueError(f"No period selected for facility {facility}")

    def _entries(self, facility: str, period: Period) -> List[RosterEntry]:
        entries = self.store.get_roster(facility, period)
        if entries is None:
            logger.warning(f"No roster loaded for {facility} {period.key}")
            return []
        return entries

    # ------------------------------------------------------------------
    # Classification and aggregation
    # ------------------------------------------------------------------

    def classify(self, facility: str, period: Period) -> List[HalfDayClassification]:
        self._require(facility, period)
        return classify_entries(self._entries(facility, period), self.config)

    def summarize_actions(
        self,
        facility: str,
        period: Period,
        group_by: str = GROUP_BY_PHYSICIAN,
    ) -> Dict[str, ActionDaySummary]:
        self._require(facility, period)
        return summarize_actions(self._entries(facility, period), group_by, self.config)

    def compare_with_previous(
        self,
        facility: str,
        period: Period,
        group_by: str = GROUP_BY_PHYSICIAN,
    ) -> Dict[str, List[ActionDelta]]:
        """Action-day deltas of a period against the month before it."""
        self._require(facility, period)
        previous = period.previous()
        return compare_periods(
            self._entries(facility, period),
            self._entries(facility, previous),
            group_by,
            self.config,
        )

    def compare_versions(
        self,
        baseline: Iterable[RosterEntry],
        updated: Iterable[RosterEntry],
        branch: Optional[str] = None,
    ) -> VersionComparison:
        return compare_versions(
            [e.rekey(self.normalizer) for e in baseline],
            [e.rekey(self.normalizer) for e in updated],
            branch=branch,
            config=self.config,
        )

    # ------------------------------------------------------------------
    # Efficiency and proposals
    # ------------------------------------------------------------------

    def load_peer_data(self, facility: str, years: Iterable[int], months: Iterable[int]) -> FetchReport:
        if self.coordinator is None:
            raise ValueError("Peer data loading needs a role-group directory and a peer loader")
        return self.coordinator.ensure_peer_data(facility, years, months)

    def resolve_efficiency(
        self,
        facility: str,
        period: Period,
        branch: Optional[str] = None,
        include_non_surgical: bool = False,
    ) -> EfficiencyReport:
        self._require(facility, period)
        peer_datasets = None
        role_group = None
        if self.directory is not None:
            role_group = self.directory.canonical(facility)
            peer_datasets = self.store.peer_datasets(self.directory.peers(facility), period)

        return resolve_efficiency(
            facility,
            period,
            self._entries(facility, period),
            self.store.get_outcomes(facility, period),
            config=self.config,
            peer_datasets=peer_datasets,
            role_group=role_group,
            branch=branch,
            include_non_surgical=include_non_surgical,
        )

    def propose_reductions(
        self,
        facility: str,
        period: Period,
        strategy: str = "staged",
        branch: Optional[str] = None,
    ) -> Tuple[EfficiencyReport, List[ReductionProposal]]:
        """Resolve efficiency and run a reduction strategy over its records."""
        self._require(facility, period)
        policy = get_strategy(strategy, self.config)
        report = self.resolve_efficiency(facility, period, branch=branch)
        return report, propose_reductions(report.records, policy)
