"""
peers.py — Role groups, dataset store and peer-data fetch coordinator

RoleGroupDirectory
  facility → raw tier tag, collapsed to a canonical tier (A1/A2 → A) for
  pooling. Facilities sharing a canonical tier are peers.

DatasetStore
  In-memory registry of roster entries and outcome maps keyed by
  (facility, period). Outcomes absent ≠ outcomes empty: has_outcomes()
  is False until something has been stored, even an empty map.

PeerDataCoordinator
  Makes sure sibling-facility data is loaded before pooling:
    - cache key = (canonical tier, sorted years, sorted months)
    - at most one fetch sequence per key at a time (per-key lock)
    - fetches issued one after another, never concurrently
    - a failing fetch is logged and recorded; the rest still run
    - the key is marked fetched only after a sequence with no failures,
      so the next request retries just the missing pairs
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .config import DEFAULT_CONFIG, EngineConfig
from .models import FacilityPeriod, FetchFailure, FetchReport, OutcomeRecord, Period, RosterEntry

logger = logging.getLogger(__name__)

PeerLoader = Callable[[str, Period], None]
CacheKey = Tuple[str, Tuple[int, ...], Tuple[int, ...]]


# ---------------------------------------------------------------------------
# Role groups
# ---------------------------------------------------------------------------

class RoleGroupDirectory:

    def __init__(
        self,
        facility_tiers: Mapping[str, str],
        collapse: Optional[Mapping[str, str]] = None,
    ):
        self.facility_tiers = dict(facility_tiers)
        self.collapse = dict(collapse if collapse is not None else DEFAULT_CONFIG.role_group_collapse)

    @classmethod
    def from_config(cls, facility_tiers: Mapping[str, str], config: EngineConfig) -> "RoleGroupDirectory":
        return cls(facility_tiers, config.role_group_collapse)

    def canonical_tier(self, raw_tier: Optional[str]) -> Optional[str]:
        if not raw_tier:
            return None
        tier = str(raw_tier).strip()
        return self.collapse.get(tier, tier)

    def canonical(self, facility: str) -> Optional[str]:
        """Canonical tier of a facility, None when the facility is unknown."""
        return self.canonical_tier(self.facility_tiers.get(facility))

    def peers(self, facility: str, include_self: bool = True) -> List[str]:
        group = self.canonical(facility)
        if group is None:
            return [facility] if include_self else []
        members = sorted(f for f in self.facility_tiers if self.canonical(f) == group)
        if not include_self:
            members = [f for f in members if f != facility]
        return members


# ---------------------------------------------------------------------------
# Dataset store
# ---------------------------------------------------------------------------

class DatasetStore:
    """Roster entries and outcome maps per (facility, period)."""

    def __init__(self):
        self._rosters: Dict[FacilityPeriod, List[RosterEntry]] = {}
        self._outcomes: Dict[FacilityPeriod, Dict[str, OutcomeRecord]] = {}
        self._lock = threading.Lock()

    def put_roster(self, facility: str, period: Period, entries: Iterable[RosterEntry]) -> None:
        entries = list(entries)
        with self._lock:
            self._rosters[FacilityPeriod(facility, period)] = entries
        logger.info(f"Stored {len(entries)} roster entries for {facility} {period.key}")

    def put_outcomes(self, facility: str, period: Period, records: Iterable[OutcomeRecord]) -> None:
        """Store outcomes keyed by physician_key. Later records for a key win."""
        by_key = {r.physician_key: r for r in records}
        with self._lock:
            self._outcomes[FacilityPeriod(facility, period)] = by_key
        logger.info(f"Stored {len(by_key)} outcome records for {facility} {period.key}")

    def get_roster(self, facility: str, period: Period) -> Optional[List[RosterEntry]]:
        return self._rosters.get(FacilityPeriod(facility, period))

    def get_outcomes(self, facility: str, period: Period) -> Optional[Dict[str, OutcomeRecord]]:
        return self._outcomes.get(FacilityPeriod(facility, period))

    def has_roster(self, facility: str, period: Period) -> bool:
        return FacilityPeriod(facility, period) in self._rosters

    def has_outcomes(self, facility: str, period: Period) -> bool:
        return FacilityPeriod(facility, period) in self._outcomes

    def is_complete(self, facility: str, period: Period) -> bool:
        return self.has_roster(facility, period) and self.has_outcomes(facility, period)

    def clear(self, facility: Optional[str] = None, period: Optional[Period] = None) -> int:
        """
        Drop stored data matching facility and/or period (both None → all).
        Returns the number of (facility, period) slots removed.
        """
        def matches(fp: FacilityPeriod) -> bool:
            return (facility is None or fp.facility == facility) and (period is None or fp.period == period)

        with self._lock:
            slots = {fp for fp in list(self._rosters) + list(self._outcomes) if matches(fp)}
            for fp in slots:
                self._rosters.pop(fp, None)
                self._outcomes.pop(fp, None)
        logger.info(f"Cleared {len(slots)} dataset slots (facility={facility}, period={period})")
        return len(slots)

    def facilities(self) -> List[str]:
        return sorted({fp.facility for fp in list(self._rosters) + list(self._outcomes)})

    def peer_datasets(
        self,
        facilities: Iterable[str],
        period: Period,
    ) -> Dict[str, Tuple[Optional[List[RosterEntry]], Optional[Dict[str, OutcomeRecord]]]]:
        """Shape expected by efficiency.pool_peer_group."""
        return {f: (self.get_roster(f, period), self.get_outcomes(f, period)) for f in facilities}


# ---------------------------------------------------------------------------
# Fetch coordinator
# ---------------------------------------------------------------------------

class PeerDataCoordinator:
    """
    Fetch-once-per-(role group, years, months) orchestration.

    loader(facility, period) populates the store (or whatever backs it)
    and raises on failure. With a store attached, store completeness is
    the only record of what is loaded, so cleared data is fetched again.
    """

    def __init__(
        self,
        loader: PeerLoader,
        directory: RoleGroupDirectory,
        store: Optional[DatasetStore] = None,
    ):
        self.loader = loader
        self.directory = directory
        self.store = store
        self._fetched_keys: Set[CacheKey] = set()
        self._loaded_pairs: Set[FacilityPeriod] = set()
        self._key_locks: Dict[CacheKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def cache_key(self, facility: str, years: Iterable[int], months: Iterable[int]) -> CacheKey:
        group = self.directory.canonical(facility) or f"facility:{facility}"
        return group, tuple(sorted(set(years))), tuple(sorted(set(months)))

    def is_fetched(self, key: CacheKey) -> bool:
        return key in self._fetched_keys

    def reset(self) -> None:
        with self._registry_lock:
            self._fetched_keys.clear()
            self._loaded_pairs.clear()

    def forget(self, facility: Optional[str] = None, period: Optional[Period] = None) -> None:
        """Drop loaded-pair bookkeeping for facility and/or period (both None → all)."""
        with self._registry_lock:
            self._loaded_pairs = {
                fp for fp in self._loaded_pairs
                if not ((facility is None or fp.facility == facility) and (period is None or fp.period == period))
            }

    def _lock_for(self, key: CacheKey) -> threading.Lock:
        with self._registry_lock:
            return self._key_locks.setdefault(key, threading.Lock())

    def _already_loaded(self, pair: FacilityPeriod) -> bool:
        if self.store is not None:
            return self.store.is_complete(pair.facility, pair.period)
        return pair in self._loaded_pairs

    def _pairs(self, facility: str, key: CacheKey) -> List[FacilityPeriod]:
        siblings = self.directory.peers(facility, include_self=False)
        return [FacilityPeriod(s, Period(y, m)) for s in siblings for y in key[1] for m in key[2]]

    def _cache_valid(self, facility: str, key: CacheKey) -> bool:
        """A fetched key stays valid only while all of its pairs are still loaded."""
        if not self.is_fetched(key):
            return False
        if all(self._already_loaded(pair) for pair in self._pairs(facility, key)):
            return True
        logger.info(f"Peer data for {key} was cleared; fetching again")
        with self._registry_lock:
            self._fetched_keys.discard(key)
        return False

    def ensure_peer_data(
        self,
        facility: str,
        years: Iterable[int],
        months: Iterable[int],
    ) -> FetchReport:
        """
        Load every sibling facility's data for each requested (year, month).

        Raises ValueError when no facility or no period is given. Fetch
        errors never propagate; they are listed in the returned report.
        """
        if not facility:
            raise ValueError("A facility must be selected before loading peer data")
        years = list(years or [])
        months = list(months or [])
        if not years or not months:
            raise ValueError("At least one year and one month are required to load peer data")

        key = self.cache_key(facility, years, months)
        if self._cache_valid(facility, key):
            logger.info(f"Peer data for {key} already fetched; skipping")
            return FetchReport(cache_key=key, from_cache=True)

        with self._lock_for(key):
            # Another caller may have finished the same sequence while we waited.
            if self._cache_valid(facility, key):
                logger.info(f"Peer data for {key} fetched by a concurrent request")
                return FetchReport(cache_key=key, from_cache=True)

            pairs = self._pairs(facility, key)
            report = FetchReport(cache_key=key)
            logger.info(f"Fetching peer data for {key}: {len(pairs)} facility periods")

            for pair in pairs:
                if self._already_loaded(pair):
                    continue
                try:
                    self.loader(pair.facility, pair.period)
                except Exception as e:
                    logger.warning(f"Peer fetch failed for {pair}: {e}")
                    report.failures.append(FetchFailure(pair.facility, pair.period, str(e)))
                    continue
                with self._registry_lock:
                    self._loaded_pairs.add(pair)
                report.fetched.append(pair)

            if report.complete:
                with self._registry_lock:
                    self._fetched_keys.add(key)
                    self._key_locks.pop(key, None)
            logger.info(
                f"Peer fetch for {key} finished: {len(report.fetched)} loaded, "
                f"{len(report.failures)} failed"
            )
            return report
