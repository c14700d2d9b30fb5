"""
tests/test_versions.py — Roster version comparison.
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from schedule_analytics.models import Period, RosterEntry
from schedule_analytics.versions import (
    CHANGE_ACTION_MIX_ONLY,
    CHANGE_BOTH,
    CHANGE_CAPACITY_ONLY,
    CHANGE_NONE,
    classify_change,
    compare_versions,
)

NOV = Period(2025, 11)


def entry(name, branch, action, date, start="08:00", duration=240, capacity=0):
    return RosterEntry(
        physician_name=name,
        facility="F1",
        branch=branch,
        action=action,
        date=date,
        start_time=start,
        duration_minutes=duration,
        capacity=capacity,
        period=NOV,
    )


def week(name="Op. Dr. Adem Dilek", branch="Genel Cerrahi", clinic_capacity=20):
    return [
        entry(name, branch, "AMELİYAT", "2025-11-03"),
        entry(name, branch, "POLİKLİNİK", "2025-11-03", start="13:00", capacity=clinic_capacity),
        entry(name, branch, "POLİKLİNİK", "2025-11-04", capacity=clinic_capacity),
    ]


class TestClassifyChange:

    @pytest.mark.parametrize("capacity_delta,action_change,expected", [
        (0, False, CHANGE_NONE),
        (0.05, False, CHANGE_NONE),
        (5, False, CHANGE_CAPACITY_ONLY),
        (0, True, CHANGE_ACTION_MIX_ONLY),
        (-5, True, CHANGE_BOTH),
    ])
    def test_types(self, capacity_delta, action_change, expected):
        """Change type from capacity delta and action mix"""
        assert classify_change(capacity_delta, action_change) == expected


class TestCompareVersions:

    def test_identical_versions(self):
        """Same roster twice, no changes"""
        result = compare_versions(week(), week())
        assert result.changes == []
        assert result.net_capacity_delta == 0

    def test_names_matched_loosely(self):
        """Titles and case ignored when matching"""
        # Same physician, different spelling between uploads.
        result = compare_versions(week(), week(name="ADEM DİLEK", branch="GENEL CERRAHİ"))
        assert result.changes == []

    def test_capacity_only(self):
        """Clinic capacity raised, same actions"""
        result = compare_versions(week(), week(clinic_capacity=30))
        (change,) = result.changes
        assert change.change_type == CHANGE_CAPACITY_ONLY
        assert change.capacity_delta == 20
        assert change.top_driver_action is None
        assert result.net_capacity_delta == 20

    def test_action_mix_only(self):
        """Clinic half-day swapped for surgery"""
        updated = week()
        updated[2] = entry("Op. Dr. Adem Dilek", "Genel Cerrahi", "AMELİYAT", "2025-11-04")
        updated.append(entry("Op. Dr. Adem Dilek", "Genel Cerrahi", "SONUÇ/KONTROL MUAYENE",
                             "2025-11-05", capacity=20))
        (change,) = compare_versions(week(), updated).changes
        assert change.change_type == CHANGE_ACTION_MIX_ONLY
        assert change.action_deltas == {"AMELİYAT": 0.5, "POLİKLİNİK": -0.5}
        assert change.top_driver_action in ("AMELİYAT", "POLİKLİNİK")

    def test_capacity_and_action_mix(self):
        """Dropped clinic day changes both"""
        updated = week()[:2]
        (change,) = compare_versions(week(), updated).changes
        assert change.change_type == CHANGE_BOTH
        assert change.capacity_delta == -20
        assert change.top_driver_action == "POLİKLİNİK"

    def test_branch_shares(self):
        """Branch shares of the total change"""
        baseline = week() + week(name="Zeynep Ak", branch="Ortopedi")
        updated = week(clinic_capacity=25) + week(name="Zeynep Ak", branch="Ortopedi", clinic_capacity=5)
        result = compare_versions(baseline, updated)
        shares = {b.branch: b.share_percent for b in result.branches}
        assert shares["Genel Cerrahi"] == pytest.approx(25.0)
        assert shares["Ortopedi"] == pytest.approx(75.0)
        assert result.top_branches(1)[0].branch == "Ortopedi"

    def test_branch_filter(self):
        """Changes limited to one branch"""
        baseline = week() + week(name="Zeynep Ak", branch="Ortopedi")
        updated = week(clinic_capacity=25) + week(name="Zeynep Ak", branch="Ortopedi", clinic_capacity=5)
        result = compare_versions(baseline, updated, branch="ORTOPEDİ")
        assert [c.branch for c in result.changes] == ["Ortopedi"]

    def test_physician_removed(self):
        """Physician missing from the update"""
        baseline = week() + week(name="Zeynep Ak", branch="Ortopedi")
        result = compare_versions(baseline, week())
        (change,) = result.changes
        assert change.physician_name == "Zeynep Ak"
        assert change.updated_capacity == 0
        assert change.capacity_delta == -40
