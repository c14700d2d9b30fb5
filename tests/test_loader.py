"""
tests/test_loader.py — CSV loaders for roster entries and outcome records.
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from schedule_analytics.loader import load_outcomes, load_roster_entries
from schedule_analytics.models import Period

ROSTER_HEADER = "physician_name,facility,branch,action,date,start_time,duration_minutes,capacity,year,month\n"


@pytest.fixture
def roster_csv(tmp_path):
    path = tmp_path / "roster.csv"
    path.write_text(
        ROSTER_HEADER
        + "Op. Dr. Adem Dilek,F1,GENEL CERRAHİ,AMELİYAT,2025-11-03,08:00,240,0,2025,Kasım\n"
        + "adem  dilek.,F1,GENEL CERRAHİ,POLİKLİNİK,2025-11-03,13:00,240,20,2025,11\n"
        + "Zeynep Ak,F1,ORTOPEDİ,POLİKLİNİK,2025-10-31,08:00,,,2025,October\n",
        encoding="utf-8",
    )
    return path


class TestLoadRosterEntries:

    def test_rows_loaded(self, roster_csv):
        """Three rows, typed fields"""
        entries = load_roster_entries(roster_csv)
        assert len(entries) == 3
        first = entries[0]
        assert first.action == "AMELİYAT"
        assert first.duration_minutes == 240.0
        assert first.period == Period(2025, 11)

    def test_month_names_and_numbers(self, roster_csv):
        """Turkish, numeric and English months"""
        periods = [e.period for e in load_roster_entries(roster_csv)]
        assert periods == [Period(2025, 11), Period(2025, 11), Period(2025, 10)]

    def test_names_normalized(self, roster_csv):
        """Titles, spacing and trailing dot folded"""
        keys = [e.physician_key for e in load_roster_entries(roster_csv)]
        assert keys[1] == "ADEM DİLEK"

    def test_custom_normalizer(self, roster_csv):
        """Injected normalizer builds the keys"""
        keys = [e.physician_key for e in load_roster_entries(roster_csv, normalizer=str.lower)]
        assert keys[2] == "zeynep ak"

    def test_blank_numbers(self, roster_csv):
        """Blank duration and capacity read as zero"""
        last = load_roster_entries(roster_csv)[2]
        assert last.duration_minutes == 0.0
        assert last.capacity == 0

    def test_missing_file(self, tmp_path):
        """Missing roster file"""
        with pytest.raises(FileNotFoundError):
            load_roster_entries(tmp_path / "missing.csv")

    def test_missing_column(self, tmp_path):
        """Required column absent"""
        path = tmp_path / "roster.csv"
        path.write_text("physician_name,facility\nA,F1\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_roster_entries(path)

    def test_negative_duration(self, tmp_path):
        """Negative minutes rejected"""
        path = tmp_path / "roster.csv"
        path.write_text(ROSTER_HEADER + "A,F1,B,AMELİYAT,2025-11-03,08:00,-30,0,2025,11\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_roster_entries(path)

    def test_non_finite_duration(self, tmp_path):
        """Infinite minutes rejected"""
        path = tmp_path / "roster.csv"
        path.write_text(ROSTER_HEADER + "A,F1,B,AMELİYAT,2025-11-03,08:00,inf,0,2025,11\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_roster_entries(path)

    def test_unknown_month(self, tmp_path):
        """Unrecognized month name"""
        path = tmp_path / "roster.csv"
        path.write_text(ROSTER_HEADER + "A,F1,B,AMELİYAT,2025-11-03,08:00,30,0,2025,Brumaire\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_roster_entries(path)


class TestLoadOutcomes:

    def test_blank_counts_stay_none(self, tmp_path):
        """Blank counts are "not reported", not zero"""
        path = tmp_path / "outcomes.csv"
        path.write_text(
            "physician_name,performed_surgeries,exams_total\n"
            "Adem Dilek,12,\n"
            "Zeynep Ak,,340\n",
            encoding="utf-8",
        )
        adem, zeynep = load_outcomes(path)
        assert adem.physician_key == "ADEM DİLEK"
        assert adem.performed_surgeries == 12
        assert adem.exams_total is None
        assert zeynep.performed_surgeries is None
        assert zeynep.exams_total == 340

    def test_absent_columns(self, tmp_path):
        """Optional exam columns may be left out"""
        path = tmp_path / "outcomes.csv"
        path.write_text("physician_name,performed_surgeries\nAdem Dilek,3\n", encoding="utf-8")
        (rec,) = load_outcomes(path)
        assert rec.exams_booked is None
        assert rec.exams_walk_in is None

    def test_missing_file(self, tmp_path):
        """Missing outcomes file"""
        with pytest.raises(FileNotFoundError):
            load_outcomes(tmp_path / "missing.csv")
