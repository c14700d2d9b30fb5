"""
Schedule Analytics & Staffing-Reduction Engine

Modules:
- config: Session windows, vocabularies, thresholds, EngineConfig
- classifier: Half-day (morning/afternoon) session classification
- aggregator: Action-day totals and period-over-period deltas
- versions: Roster version comparison
- efficiency: Planned-day vs performed-surgery efficiency, peer pooling
- reduction: Staged and outcome-ratio reduction policies
- peers: Role groups, dataset store, peer-data fetch coordinator
- api_client: HTTP roster/outcome data client
- loader: CSV loaders
- tables: DataFrame and text report views
- engine: Facade tying the above together
"""

from .config import (
    DEFAULT_CONFIG,
    EngineConfig,
    get_config,
    load_engine_config,
)

from .models import (
    DoctorEfficiencyRecord,
    EfficiencyStatus,
    OutcomeRecord,
    Period,
    ReductionProposal,
    RosterEntry,
    Session,
)

from .normalize import match_key, normalize_physician_name

from .classifier import classify_day, classify_entries
from .aggregator import compare_periods, summarize_actions
from .efficiency import resolve_efficiency, sort_records
from .reduction import (
    OutcomeRatioPolicy,
    StagedReductionPolicy,
    get_strategy,
    propose_reductions,
    summarize_proposals,
)
from .peers import DatasetStore, PeerDataCoordinator, RoleGroupDirectory
from .engine import ScheduleAnalyticsEngine

__all__ = [
    "DEFAULT_CONFIG",
    "EngineConfig",
    "get_config",
    "load_engine_config",
    "DoctorEfficiencyRecord",
    "EfficiencyStatus",
    "OutcomeRecord",
    "Period",
    "ReductionProposal",
    "RosterEntry",
    "Session",
    "match_key",
    "normalize_physician_name",
    "classify_day",
    "classify_entries",
    "compare_periods",
    "summarize_actions",
    "resolve_efficiency",
    "sort_records",
    "OutcomeRatioPolicy",
    "StagedReductionPolicy",
    "get_strategy",
    "propose_reductions",
    "summarize_proposals",
    "DatasetStore",
    "PeerDataCoordinator",
    "RoleGroupDirectory",
    "ScheduleAnalyticsEngine",
]
