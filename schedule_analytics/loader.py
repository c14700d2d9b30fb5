"""
loader.py — CSV loaders for roster entries and outcome records

Roster CSV columns:
  physician_name, facility, branch, action, date, start_time,
  duration_minutes, capacity, year, month

  month may be a number or a Turkish/English month name.

Outcome CSV columns:
  physician_name, performed_surgeries (optional), exams_total (optional),
  exams_booked (optional), exams_walk_in (optional)

Blank outcome cells stay None ("not reported"), never 0.
"""

import logging
import math
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

import pandas as pd

from .models import OutcomeRecord, Period, RosterEntry
from .normalize import normalize_physician_name

logger = logging.getLogger(__name__)

ROSTER_COLUMNS = (
    "physician_name", "facility", "branch", "action", "date",
    "start_time", "duration_minutes", "capacity", "year", "month",
)
OUTCOME_COLUMNS = ("physician_name",)
OUTCOME_COUNT_COLUMNS = ("performed_surgeries", "exams_total", "exams_booked", "exams_walk_in")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _text(value: Any) -> str:
    return "" if _is_blank(value) else str(value).strip()


def _optional_int(value: Any) -> Optional[int]:
    if _is_blank(value):
        return None
    return int(float(value))


def _read_csv(path: Union[str, Path], required: tuple, kind: str) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")
    df = pd.read_csv(path, dtype=str, keep_default_na=True)
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{kind} file {path} is missing columns: {missing}")
    return df


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------

def load_roster_entries(
    path: Union[str, Path],
    normalizer: Callable[[str], str] = normalize_physician_name,
) -> List[RosterEntry]:
    """
    Load roster entries from CSV.

    Raises FileNotFoundError for a missing file and ValueError for missing
    columns, unknown months or negative or non-finite durations.
    """
    df = _read_csv(path, ROSTER_COLUMNS, "Roster")

    entries: List[RosterEntry] = []
    for _, row in df.iterrows():
        name = _text(row["physician_name"])
        duration = row["duration_minutes"]
        entries.append(RosterEntry(
            physician_name=name,
            facility=_text(row["facility"]),
            branch=_text(row["branch"]),
            action=_text(row["action"]),
            date=_text(row["date"]),
            start_time=_text(row["start_time"]),
            duration_minutes=0.0 if _is_blank(duration) else float(duration),
            capacity=_optional_int(row["capacity"]) or 0,
            period=Period.parse(_text(row["year"]), _text(row["month"])),
            physician_key=normalizer(name),
        ))

    logger.info(f"Loaded {len(entries)} roster entries from {path}")
    return entries


def load_outcomes(
    path: Union[str, Path],
    normalizer: Callable[[str], str] = normalize_physician_name,
) -> List[OutcomeRecord]:
    """Load outcome records from CSV. Count columns are optional."""
    df = _read_csv(path, OUTCOME_COLUMNS, "Outcome")

    records: List[OutcomeRecord] = []
    for _, row in df.iterrows():
        name = _text(row["physician_name"])
        counts = {c: _optional_int(row[c]) if c in df.columns else None for c in OUTCOME_COUNT_COLUMNS}
        records.append(OutcomeRecord(physician_name=name, physician_key=normalizer(name), **counts))

    logger.info(f"Loaded {len(records)} outcome records from {path}")
    return records
