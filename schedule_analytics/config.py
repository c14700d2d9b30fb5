"""
config.py — Engine Configuration for Schedule Analytics

Every threshold, vocabulary and fallback constant used by the classifier,
the efficiency resolver and the reduction policies lives here.

Module-level constants are the documented defaults. EngineConfig bundles
them into one object that is handed to the engine at construction;
load_engine_config() applies JSON overrides on top of the defaults.

Vocabularies are matched as substrings of the upper-cased action label
(Turkish locale rules, see normalize.turkish_upper).
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Session windows (minutes since midnight, half-open)
# ---------------------------------------------------------------------------
MORNING_WINDOW: Tuple[int, int] = (8 * 60, 12 * 60)
AFTERNOON_WINDOW: Tuple[int, int] = (13 * 60, 17 * 60)
MIN_WINDOW_MINUTES = 30
HALF_DAY = 0.5

# ---------------------------------------------------------------------------
# Action vocabularies
# ---------------------------------------------------------------------------
HOLIDAY_ACTIONS: Tuple[str, ...] = (
    "HAFTA SONU TATİLİ",
    "HAFTASONU TATİLİ",
)
RESULT_EXAM_ACTIONS: Tuple[str, ...] = (
    "SONUÇ/KONTROL MUAYENE",
    "SONUÇ/KONTROL MUAYENESİ",
)
SURGERY_ACTIONS: Tuple[str, ...] = (
    "AMELİYAT",
    "AMELİYATTA",
    "SURGERY",
    "AMELİYATHANE",
)
EXAM_ACTIONS: Tuple[str, ...] = (
    "MUAYENE",
    "POLİKLİNİK",
)

# ---------------------------------------------------------------------------
# Month-over-month significance
# ---------------------------------------------------------------------------
SIGNIFICANT_DELTA_PERCENT = 25.0
SIGNIFICANT_DELTA_DAYS = 3.0

# ---------------------------------------------------------------------------
# Efficiency status multipliers (× reference efficiency)
# ---------------------------------------------------------------------------
LOW_EFFICIENCY_FACTOR = 0.8
HIGH_EFFICIENCY_FACTOR = 1.5

# ---------------------------------------------------------------------------
# Role groups: raw tier → canonical tier
# ---------------------------------------------------------------------------
ROLE_GROUP_COLLAPSE: Dict[str, str] = {
    "A1": "A",
    "A2": "A",
}

# ---------------------------------------------------------------------------
# Staged reduction policy
#   ratio ≥ NO_REDUCTION_RATIO          → no proposal
#   [MODERATE_RATIO, NO_REDUCTION_RATIO) → −1 (−2 when days ≥ LARGE_ALLOCATION_DAYS)
#   [AGGRESSIVE_RATIO, MODERATE_RATIO)   → −2 (−3 when days ≥ LARGE_ALLOCATION_DAYS)
#   < AGGRESSIVE_RATIO                   → recompute from volume
# ---------------------------------------------------------------------------
NO_REDUCTION_RATIO = 0.8
MODERATE_RATIO = 0.6
AGGRESSIVE_RATIO = 0.4
LARGE_ALLOCATION_DAYS = 5
MODERATE_CUTS: Tuple[int, int] = (1, 2)     # (small allocation, large allocation)
MEDIUM_CUTS: Tuple[int, int] = (2, 3)
GENERAL_FLOOR_DAYS = 1
AGGRESSIVE_ZERO_VOLUME_FACTOR = 0.5
NEUTRAL_TARGET_EFFICIENCY = 1.0

# High-continuity branch (obstetrics & gynaecology)
PROTECTED_BRANCH_MARKERS: Tuple[str, ...] = ("KADIN HASTALIKLARI",)
PROTECTED_BRANCH_MIN_RATIO = 0.3
PROTECTED_BRANCH_FLOOR_DAYS = 2

FALLBACK_DAILY_CAPACITY = 42.0

# ---------------------------------------------------------------------------
# Outcome-ratio (HAO / BAO) policy
# ---------------------------------------------------------------------------
RATIO_POLICY_CAP_BAND = 0.4          # HAO < 40% BAO → cap at RATIO_POLICY_CAP_DAYS
RATIO_POLICY_MEDIUM_BAND = 0.6       # HAO < 60% BAO → −2
RATIO_POLICY_MODERATE_BAND = 0.8     # HAO < 80% BAO → −1
RATIO_POLICY_CAP_DAYS = 1
RATIO_POLICY_MAX_DAYS = 6
RATIO_POLICY_EXCELLENCE_MULTIPLE = 2.0
RATIO_POLICY_LOW_VOLUME_HAO = 2.5
RATIO_POLICY_LOW_VOLUME_MAX_DAYS = 3
RATIO_POLICY_FLOOR_DAYS = 1


@dataclass(frozen=True)
class EngineConfig:
    """All tunables of the engine. Defaults mirror the module constants."""

    morning_window: Tuple[int, int] = MORNING_WINDOW
    afternoon_window: Tuple[int, int] = AFTERNOON_WINDOW
    min_window_minutes: int = MIN_WINDOW_MINUTES
    half_day: float = HALF_DAY

    holiday_actions: Tuple[str, ...] = HOLIDAY_ACTIONS
    result_exam_actions: Tuple[str, ...] = RESULT_EXAM_ACTIONS
    surgery_actions: Tuple[str, ...] = SURGERY_ACTIONS
    exam_actions: Tuple[str, ...] = EXAM_ACTIONS

    significant_delta_percent: float = SIGNIFICANT_DELTA_PERCENT
    significant_delta_days: float = SIGNIFICANT_DELTA_DAYS

    low_efficiency_factor: float = LOW_EFFICIENCY_FACTOR
    high_efficiency_factor: float = HIGH_EFFICIENCY_FACTOR

    role_group_collapse: Dict[str, str] = field(default_factory=lambda: dict(ROLE_GROUP_COLLAPSE))

    no_reduction_ratio: float = NO_REDUCTION_RATIO
    moderate_ratio: float = MODERATE_RATIO
    aggressive_ratio: float = AGGRESSIVE_RATIO
    large_allocation_days: int = LARGE_ALLOCATION_DAYS
    moderate_cuts: Tuple[int, int] = MODERATE_CUTS
    medium_cuts: Tuple[int, int] = MEDIUM_CUTS
    general_floor_days: int = GENERAL_FLOOR_DAYS
    aggressive_zero_volume_factor: float = AGGRESSIVE_ZERO_VOLUME_FACTOR
    neutral_target_efficiency: float = NEUTRAL_TARGET_EFFICIENCY

    protected_branch_markers: Tuple[str, ...] = PROTECTED_BRANCH_MARKERS
    protected_branch_min_ratio: float = PROTECTED_BRANCH_MIN_RATIO
    protected_branch_floor_days: int = PROTECTED_BRANCH_FLOOR_DAYS

    fallback_daily_capacity: float = FALLBACK_DAILY_CAPACITY

    ratio_policy_cap_band: float = RATIO_POLICY_CAP_BAND
    ratio_policy_medium_band: float = RATIO_POLICY_MEDIUM_BAND
    ratio_policy_moderate_band: float = RATIO_POLICY_MODERATE_BAND
    ratio_policy_cap_days: int = RATIO_POLICY_CAP_DAYS
    ratio_policy_max_days: int = RATIO_POLICY_MAX_DAYS
    ratio_policy_excellence_multiple: float = RATIO_POLICY_EXCELLENCE_MULTIPLE
    ratio_policy_low_volume_hao: float = RATIO_POLICY_LOW_VOLUME_HAO
    ratio_policy_low_volume_max_days: int = RATIO_POLICY_LOW_VOLUME_MAX_DAYS
    ratio_policy_floor_days: int = RATIO_POLICY_FLOOR_DAYS

    def __post_init__(self):
        for name in ("morning_window", "afternoon_window"):
            start, end = getattr(self, name)
            if not 0 <= start < end <= 24 * 60:
                raise ValueError(f"{name} must satisfy 0 <= start < end <= 1440, got {(start, end)}")
        if self.min_window_minutes < 0:
            raise ValueError(f"min_window_minutes must be >= 0, got {self.min_window_minutes}")
        if not self.aggressive_ratio <= self.moderate_ratio <= self.no_reduction_ratio:
            raise ValueError(
                "Reduction bands must be ordered aggressive <= moderate <= no_reduction, got "
                f"{self.aggressive_ratio} / {self.moderate_ratio} / {self.no_reduction_ratio}"
            )
        if self.general_floor_days < 0 or self.protected_branch_floor_days < 0:
            raise ValueError("Floor days must be >= 0")
        if self.fallback_daily_capacity < 0:
            raise ValueError(f"fallback_daily_capacity must be >= 0, got {self.fallback_daily_capacity}")

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Return a validated copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        coerced = {k: _coerce(getattr(self, k), v) for k, v in overrides.items()}
        return replace(self, **coerced)


def _coerce(default: Any, value: Any) -> Any:
    # JSON has no tuples; keep the field's container type.
    if isinstance(default, tuple) and isinstance(value, list):
        return tuple(value)
    return value


DEFAULT_CONFIG = EngineConfig()


def load_engine_config(config_path: Optional[Path] = None) -> EngineConfig:
    """
    Load engine configuration overrides from JSON.

    The file holds a flat object of EngineConfig field names → values.
    Returns defaults if the path is None or the file is missing.
    """
    if config_path is None:
        return DEFAULT_CONFIG
    path = Path(config_path)
    if not path.exists():
        logger.warning(f"Engine config not found: {path}. Using defaults.")
        return DEFAULT_CONFIG
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Engine config must be a JSON object: {path}")
    config = DEFAULT_CONFIG.with_overrides(**data)
    logger.info(f"Loaded engine config overrides from {path}: {sorted(data)}")
    return config


def get_config() -> Dict[str, Any]:
    return asdict(DEFAULT_CONFIG)
