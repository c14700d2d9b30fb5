"""
classifier.py — Half-day session classification

Turns the roster entries of one physician on one calendar date into at
most two labels, one for the MORNING window and one for the AFTERNOON
window.

Algorithm (per window):
  overlap(entry) = max(0, min(entry_end, window_end) - max(entry_start, window_start))
  minutes[action] = Σ overlap over that physician's entries on that date
  drop actions with minutes < min_window_minutes
  winner = max minutes; ties → earliest contributing entry start,
           then label order (keeps the result order-independent)

Holiday entries are dropped before anything else. Result/control exam
entries never compete for a window but are kept by the callers that
count capacity.

Malformed clock strings degrade to zero overlap; they are logged, never
raised.
"""

import logging
from collections import defaultdict
from datetime import time as dt_time
from typing import Dict, Iterable, List, Optional, Tuple

from .config import DEFAULT_CONFIG, EngineConfig
from .models import HalfDayClassification, RosterEntry, Session
from .normalize import matches_any, normalize_action

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Clock helpers
# ---------------------------------------------------------------------------

def parse_clock(value) -> Optional[int]:
    """
    Parse "HH:MM" (or "HH:MM:SS", or a datetime.time) into minutes since
    midnight. Returns None when the value cannot be parsed.
    """
    if isinstance(value, dt_time):
        return value.hour * 60 + value.minute
    if value is None:
        return None
    parts = str(value).strip().split(":")
    if len(parts) < 2:
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return hours * 60 + minutes


def window_overlap(start: int, end: int, window: Tuple[int, int]) -> int:
    return max(0, min(end, window[1]) - max(start, window[0]))


def entry_span(entry: RosterEntry) -> Optional[Tuple[int, int]]:
    """(start, end) minutes of an entry, or None if its start time is malformed."""
    start = parse_clock(entry.start_time)
    if start is None:
        logger.warning(
            f"Unparseable start time {entry.start_time!r} for {entry.physician_name} "
            f"on {entry.date}; treated as zero overlap"
        )
        return None
    return start, start + int(round(entry.duration_minutes))


# ---------------------------------------------------------------------------
# Entry filters
# ---------------------------------------------------------------------------

def is_holiday(entry: RosterEntry, config: EngineConfig = DEFAULT_CONFIG) -> bool:
    return matches_any(entry.action, config.holiday_actions)


def is_result_exam(entry: RosterEntry, config: EngineConfig = DEFAULT_CONFIG) -> bool:
    return matches_any(entry.action, config.result_exam_actions)


def drop_holidays(
    entries: Iterable[RosterEntry],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[RosterEntry]:
    """Remove holiday entries entirely (they contribute nothing, not even capacity)."""
    return [e for e in entries if not is_holiday(e, config)]


def classifiable_entries(
    entries: Iterable[RosterEntry],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[RosterEntry]:
    """Entries that may compete for a session window."""
    return [
        e for e in entries
        if not is_holiday(e, config) and not is_result_exam(e, config)
    ]


# ---------------------------------------------------------------------------
# Core: one physician, one date
# ---------------------------------------------------------------------------

def _pick_winner(
    minutes: Dict[str, int],
    first_start: Dict[str, int],
    threshold: int,
) -> Optional[Tuple[str, int]]:
    candidates = [(action, m) for action, m in minutes.items() if m >= threshold]
    if not candidates:
        return None
    # Highest minutes, then earliest contributing start, then label.
    candidates.sort(key=lambda c: (-c[1], first_start[c[0]], c[0]))
    return candidates[0]


def classify_day(
    entries: Iterable[RosterEntry],
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[Session, Tuple[str, int]]:
    """
    Classify the entries of ONE physician on ONE date.

    Returns {Session: (action, overlap_minutes)} for each window that has
    a winner. Actions are returned in normalized (upper-case) form.
    """
    windows = {
        Session.MORNING: config.morning_window,
        Session.AFTERNOON: config.afternoon_window,
    }
    minutes: Dict[Session, Dict[str, int]] = {s: defaultdict(int) for s in windows}
    first_start: Dict[Session, Dict[str, int]] = {s: {} for s in windows}

    for entry in classifiable_entries(entries, config):
        span = entry_span(entry)
        if span is None:
            continue
        start, end = span
        action = normalize_action(entry.action)
        for session, window in windows.items():
            overlap = window_overlap(start, end, window)
            if overlap <= 0:
                continue
            minutes[session][action] += overlap
            prev = first_start[session].get(action)
            if prev is None or start < prev:
                first_start[session][action] = start

    result: Dict[Session, Tuple[str, int]] = {}
    for session in windows:
        winner = _pick_winner(minutes[session], first_start[session], config.min_window_minutes)
        if winner is not None:
            result[session] = winner
    return result


# ---------------------------------------------------------------------------
# Batch: group by physician + date
# ---------------------------------------------------------------------------

def group_by_physician_date(
    entries: Iterable[RosterEntry],
) -> Dict[Tuple[str, str], List[RosterEntry]]:
    groups: Dict[Tuple[str, str], List[RosterEntry]] = defaultdict(list)
    for entry in entries:
        groups[(entry.physician_key, entry.date)].append(entry)
    return groups


def classify_entries(
    entries: Iterable[RosterEntry],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[HalfDayClassification]:
    """
    Classify every (physician, date) group in a collection of entries.

    Output is sorted by (physician_key, date, session) so repeated calls over
    the same entries yield identical lists.
    """
    classifications: List[HalfDayClassification] = []
    for (physician_key, date_str), day_entries in group_by_physician_date(entries).items():
        winners = classify_day(day_entries, config)
        if not winners:
            continue
        ref = min(day_entries, key=lambda e: (e.physician_name, e.branch, e.facility))
        for session, (action, mins) in winners.items():
            logger.debug(f"{physician_key} {date_str} {session.value}: {action} ({mins} min)")
            classifications.append(HalfDayClassification(
                physician_key=physician_key,
                physician_name=ref.physician_name,
                facility=ref.facility,
                branch=ref.branch,
                date=date_str,
                session=session,
                action=action,
                minutes=mins,
            ))

    session_order = {Session.MORNING: 0, Session.AFTERNOON: 1}
    classifications.sort(key=lambda c: (c.physician_key, c.date, session_order[c.session]))
    return classifications
