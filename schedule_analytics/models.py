"""
models.py — Record types shared by the analytics modules

Inputs (immutable, supplied by import collaborators):
  - Period, FacilityPeriod
  - RosterEntry     one time-stamped roster line
  - OutcomeRecord   performed surgeries / exam counts per physician+period

Derived (recomputed on demand, never persisted):
  - HalfDayClassification, ActionDaySummary, ActionDelta
  - DoctorEfficiencyRecord, PeerPoolStats
  - ReductionProposal, ProposalSummary
  - FetchFailure, FetchReport
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .normalize import match_key, normalize_physician_name, turkish_lower

MONTH_NAMES_TR: Tuple[str, ...] = (
    "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
    "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
)
MONTH_NAMES_EN: Tuple[str, ...] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

_MONTH_LOOKUP: Dict[str, int] = {}
for _idx, (_tr, _en) in enumerate(zip(MONTH_NAMES_TR, MONTH_NAMES_EN), start=1):
    _MONTH_LOOKUP[turkish_lower(_tr)] = _idx
    _MONTH_LOOKUP[match_key(_tr)] = _idx
    _MONTH_LOOKUP[_en.lower()] = _idx
    _MONTH_LOOKUP[_en[:3].lower()] = _idx


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

@dataclass(frozen=True, order=True)
class Period:
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be in 1..12, got {self.month}")
        if self.year < 1:
            raise ValueError(f"Year must be positive, got {self.year}")

    @classmethod
    def parse(cls, year: Union[int, str], month: Union[int, str]) -> "Period":
        """Build a Period from a month number or a Turkish/English month name."""
        try:
            year_num = int(year)
        except (TypeError, ValueError):
            raise ValueError(f"Unparseable year: {year!r}")
        if isinstance(month, int):
            return cls(year_num, month)
        text = str(month).strip()
        if text.isdigit():
            return cls(year_num, int(text))
        idx = _MONTH_LOOKUP.get(turkish_lower(text)) or _MONTH_LOOKUP.get(match_key(text))
        if idx is None:
            raise ValueError(f"Unknown month name: {month!r}")
        return cls(year_num, idx)

    @classmethod
    def from_month_name(cls, year: Union[int, str], name: str) -> "Period":
        return cls.parse(year, name)

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month:02d}"

    @property
    def month_name(self) -> str:
        return MONTH_NAMES_TR[self.month - 1]

    def previous(self) -> "Period":
        if self.month == 1:
            return Period(self.year - 1, 12)
        return Period(self.year, self.month - 1)

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class FacilityPeriod:
    facility: str
    period: Period

    def __str__(self) -> str:
        return f"{self.facility}-{self.period.key}"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RosterEntry:
    """
    One roster line. physician_key is filled from physician_name with the
    default normalizer when the caller does not supply one.
    """
    physician_name: str
    facility: str
    branch: str
    action: str
    date: str
    start_time: str
    duration_minutes: float
    capacity: int
    period: Period
    physician_key: str = ""

    def __post_init__(self):
        d = self.duration_minutes
        if d is None or not math.isfinite(d) or d < 0:
            raise ValueError(
                f"Negative, missing or non-finite duration for {self.physician_name} on {self.date}: "
                f"{self.duration_minutes}"
            )
        if not self.physician_key:
            object.__setattr__(self, "physician_key", normalize_physician_name(self.physician_name))

    def rekey(self, normalizer: Callable[[str], str]) -> "RosterEntry":
        """Copy with physician_key recomputed by another normalizer."""
        return replace(self, physician_key=normalizer(self.physician_name))


@dataclass(frozen=True)
class OutcomeRecord:
    """
    Externally reported outcomes for one physician in one period.
    None means "not reported", never zero.
    """
    physician_name: str
    performed_surgeries: Optional[int] = None
    exams_total: Optional[int] = None
    exams_booked: Optional[int] = None
    exams_walk_in: Optional[int] = None
    physician_key: str = ""

    def __post_init__(self):
        if not self.physician_key:
            object.__setattr__(self, "physician_key", normalize_physician_name(self.physician_name))


# ---------------------------------------------------------------------------
# Classifier / aggregator outputs
# ---------------------------------------------------------------------------

class Session(Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


@dataclass(frozen=True)
class HalfDayClassification:
    physician_key: str
    physician_name: str
    facility: str
    branch: str
    date: str
    session: Session
    action: str
    minutes: float


@dataclass
class ActionDaySummary:
    """Per-physician (or per-branch / per-facility) action → days table row."""
    key: str
    label: str
    branch: str
    action_days: Dict[str, float] = field(default_factory=dict)
    total_work_days: float = 0.0
    capacity_total: int = 0


@dataclass(frozen=True)
class ActionDelta:
    action: str
    current: float
    previous: float
    delta: float
    delta_percent: Optional[float]
    significant: bool


# ---------------------------------------------------------------------------
# Efficiency
# ---------------------------------------------------------------------------

class EfficiencyStatus(Enum):
    NO_DATA = "no-data"
    LOW = "low"
    HIGH = "high"
    NORMAL = "normal"


@dataclass(frozen=True)
class DoctorEfficiencyRecord:
    physician_key: str
    physician_name: str
    facility: str
    branch: str
    period: Period
    planned_days: int
    performed_count: int
    efficiency: Optional[float]
    branch_average: float
    peer_group_average: Optional[float]
    reference_efficiency: Optional[float]
    status: EfficiencyStatus
    daily_outpatient_capacity: float = 0.0
    outpatient_days: int = 0
    capacity_total: int = 0
    branch_physician_count: int = 1
    facility_average: float = 0.0
    exams_total: Optional[int] = None
    exam_utilization: Optional[float] = None
    exams_booked: Optional[int] = None
    exams_walk_in: Optional[int] = None

    @property
    def efficiency_value(self) -> float:
        return self.efficiency if self.efficiency is not None else 0.0

    @property
    def capacity_gap(self) -> Optional[int]:
        """Reported exams minus scheduled exam capacity; None when exams are unreported."""
        if self.exams_total is None:
            return None
        return self.exams_total - self.capacity_total


@dataclass(frozen=True)
class PeerPoolStats:
    role_group: Optional[str]
    period: Period
    pooled_facilities: Tuple[str, ...] = ()
    skipped_facilities: Tuple[str, ...] = ()
    total_facilities: int = 0

    @property
    def pooled_count(self) -> int:
        return len(self.pooled_facilities)


# ---------------------------------------------------------------------------
# Reduction proposals
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReductionProposal:
    physician_key: str
    physician_name: str
    facility: str
    branch: str
    period: Period
    current_days: int
    proposed_days: int
    reduction: int
    efficiency: float
    branch_average: float
    peer_group_average: Optional[float]
    target_efficiency: float
    performance_ratio: float
    estimated_capacity_gain: int
    strategy: str
    justification: Tuple[str, ...] = ()
    current_outpatient_days: Optional[int] = None
    proposed_outpatient_days: Optional[int] = None


@dataclass(frozen=True)
class ProposalSummary:
    proposal_count: int
    total_reduction_days: int
    total_capacity_gain: int


# ---------------------------------------------------------------------------
# Peer fetch coordination
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FetchFailure:
    facility: str
    period: Period
    error: str

    def __str__(self) -> str:
        return f"{self.facility} {self.period.key}: {self.error}"


@dataclass
class FetchReport:
    cache_key: Tuple[Any, ...]
    from_cache: bool = False
    fetched: List[FacilityPeriod] = field(default_factory=list)
    failures: List[FetchFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures
