"""
tests/test_classifier.py — Half-day session classification.

Tests: parse_clock, classify_day (windows, threshold, tie-break, exclusions,
malformed clocks), classify_entries ordering and the half-day invariant.
"""

import sys
from datetime import time
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from schedule_analytics.classifier import classify_day, classify_entries, parse_clock
from schedule_analytics.models import Period, RosterEntry, Session

NOV = Period(2025, 11)


def entry(action, start, duration, name="ADEM DİLEK", date="2025-11-03", capacity=0):
    return RosterEntry(
        physician_name=name,
        facility="F1",
        branch="GENEL CERRAHİ",
        action=action,
        date=date,
        start_time=start,
        duration_minutes=duration,
        capacity=capacity,
        period=NOV,
    )


# ---------------------------------------------------------------------------
# parse_clock
# ---------------------------------------------------------------------------

class TestParseClock:

    def test_hh_mm(self):
        """HH:MM to minutes after midnight"""
        assert parse_clock("08:30") == 510

    def test_with_seconds(self):
        """Seconds are ignored"""
        assert parse_clock("13:00:00") == 780

    def test_time_object(self):
        """datetime.time accepted"""
        assert parse_clock(time(9, 15)) == 555

    @pytest.mark.parametrize("raw", [None, "", "abc", "25:00", "12:75", "0830"])
    def test_malformed_returns_none(self, raw):
        """Unparseable clocks give None"""
        assert parse_clock(raw) is None


# ---------------------------------------------------------------------------
# classify_day
# ---------------------------------------------------------------------------

class TestClassifyDay:

    def test_morning_only(self):
        """Single morning surgery block"""
        result = classify_day([entry("AMELİYAT", "08:00", 240)])
        assert result == {Session.MORNING: ("AMELİYAT", 240)}

    def test_full_day_entry_fills_both_windows(self):
        """08:00-18:00 covers both windows"""
        result = classify_day([entry("AMELİYAT", "08:00", 600)])
        assert result[Session.MORNING] == ("AMELİYAT", 240)
        assert result[Session.AFTERNOON] == ("AMELİYAT", 240)

    def test_lunch_gap_not_counted(self):
        """Lunch hour belongs to neither window"""
        # 12:00-13:00 belongs to neither window
        result = classify_day([entry("POLİKLİNİK", "12:00", 60)])
        assert result == {}

    def test_below_threshold_dropped(self):
        """20 minutes of overlap never wins"""
        result = classify_day([entry("POLİKLİNİK", "11:40", 20)])
        assert result == {}

    def test_exactly_threshold_kept(self):
        """30 minutes of overlap is enough"""
        result = classify_day([entry("POLİKLİNİK", "11:30", 30)])
        assert result == {Session.MORNING: ("POLİKLİNİK", 30)}

    def test_minutes_summed_per_action(self):
        """Split clinic blocks beat one longer surgery block"""
        entries = [
            entry("POLİKLİNİK", "08:00", 60),
            entry("AMELİYAT", "09:00", 90),
            entry("POLİKLİNİK", "10:30", 90),
        ]
        result = classify_day(entries)
        assert result[Session.MORNING] == ("POLİKLİNİK", 150)

    def test_tie_goes_to_earliest_start(self):
        """Equal minutes: earlier start wins"""
        entries = [
            entry("POLİKLİNİK", "10:00", 120),
            entry("AMELİYAT", "08:00", 120),
        ]
        assert classify_day(entries)[Session.MORNING] == ("AMELİYAT", 120)

    def test_tie_break_independent_of_order(self):
        """Tie result does not depend on input order"""
        entries = [
            entry("POLİKLİNİK", "10:00", 120),
            entry("AMELİYAT", "08:00", 120),
        ]
        assert classify_day(entries) == classify_day(list(reversed(entries)))

    def test_holiday_excluded(self):
        """Holiday rows never classify"""
        result = classify_day([entry("HAFTA SONU TATİLİ", "08:00", 540)])
        assert result == {}

    def test_result_exam_never_wins(self):
        """Result exams leave the window empty"""
        entries = [
            entry("SONUÇ/KONTROL MUAYENE", "08:00", 240),
            entry("POLİKLİNİK", "13:00", 240),
        ]
        result = classify_day(entries)
        assert Session.MORNING not in result
        assert result[Session.AFTERNOON] == ("POLİKLİNİK", 240)

    def test_labels_normalized_to_upper_case(self):
        """Winning label is upper-cased"""
        result = classify_day([entry("ameliyat", "08:00", 240)])
        assert result[Session.MORNING][0] == "AMELİYAT"

    def test_malformed_start_is_zero_overlap(self):
        """Bad start clock contributes nothing"""
        entries = [
            entry("AMELİYAT", "xx:yy", 240),
            entry("POLİKLİNİK", "13:00", 240),
        ]
        result = classify_day(entries)
        assert Session.MORNING not in result
        assert Session.AFTERNOON in result


# ---------------------------------------------------------------------------
# classify_entries
# ---------------------------------------------------------------------------

class TestClassifyEntries:

    def test_at_most_two_per_physician_date(self):
        """One morning and one afternoon per day at most"""
        entries = [
            entry("AMELİYAT", "07:00", 720),
            entry("POLİKLİNİK", "08:00", 240),
            entry("POLİKLİNİK", "13:00", 240),
        ]
        result = classify_entries(entries)
        assert len(result) == 2
        assert {c.session for c in result} == {Session.MORNING, Session.AFTERNOON}

    def test_sorted_and_repeatable(self):
        """Output sorted by physician then date"""
        entries = [
            entry("POLİKLİNİK", "13:00", 240, name="ZEYNEP AK", date="2025-11-04"),
            entry("AMELİYAT", "08:00", 240, name="ADEM DİLEK", date="2025-11-05"),
            entry("AMELİYAT", "08:00", 240, name="ADEM DİLEK", date="2025-11-04"),
        ]
        first = classify_entries(entries)
        second = classify_entries(list(reversed(entries)))
        assert first == second
        assert [(c.physician_key, c.date) for c in first] == [
            ("ADEM DİLEK", "2025-11-04"),
            ("ADEM DİLEK", "2025-11-05"),
            ("ZEYNEP AK", "2025-11-04"),
        ]

    def test_physicians_kept_apart(self):
        """Same slot for two physicians stays separate"""
        entries = [
            entry("AMELİYAT", "08:00", 240, name="ADEM DİLEK"),
            entry("POLİKLİNİK", "08:00", 240, name="ZEYNEP AK"),
        ]
        result = {c.physician_key: c.action for c in classify_entries(entries)}
        assert result == {"ADEM DİLEK": "AMELİYAT", "ZEYNEP AK": "POLİKLİNİK"}

    def test_empty_input(self):
        """No entries, no classifications"""
        assert classify_entries([]) == []
