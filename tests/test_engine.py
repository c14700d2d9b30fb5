"""
tests/test_engine.py — End-to-end runs through ScheduleAnalyticsEngine.

Tests: request validation, data intake with name normalization, action
summaries and month-over-month deltas, efficiency with peer pooling,
reduction proposals with both strategies.
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from schedule_analytics.aggregator import GROUP_BY_BRANCH
from schedule_analytics.engine import ScheduleAnalyticsEngine
from schedule_analytics.models import EfficiencyStatus, OutcomeRecord, Period, RosterEntry
from schedule_analytics.peers import RoleGroupDirectory

NOV = Period(2025, 11)
OCT = Period(2025, 10)


def entry(name, action, day, facility="F1", period=NOV, start="08:00", duration=240,
          capacity=0, branch="GENEL CERRAHİ"):
    return RosterEntry(
        physician_name=name,
        facility=facility,
        branch=branch,
        action=action,
        date=f"{period.year}-{period.month:02d}-{day:02d}",
        start_time=start,
        duration_minutes=duration,
        capacity=capacity,
        period=period,
    )


def surgeon_month(name, surgery_days, clinic_days=0, facility="F1", period=NOV, capacity=30):
    entries = [entry(name, "AMELİYAT", d, facility=facility, period=period) for d in range(1, surgery_days + 1)]
    entries += [
        entry(name, "POLİKLİNİK", 20 + d, facility=facility, period=period, capacity=capacity)
        for d in range(clinic_days)
    ]
    return entries


@pytest.fixture
def engine():
    eng = ScheduleAnalyticsEngine()
    eng.add_roster("F1", NOV, surgeon_month("Adem Dilek", 10, clinic_days=2) + surgeon_month("Zeynep Ak", 5))
    eng.add_outcomes("F1", NOV, [
        OutcomeRecord("ADEM DİLEK", performed_surgeries=9),
        OutcomeRecord("zeynep ak.", performed_surgeries=9),
    ])
    return eng


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:

    def test_no_facility(self, engine):
        """Proposal request without a facility"""
        with pytest.raises(ValueError):
            engine.propose_reductions("", NOV)

    def test_no_period(self, engine):
        """Efficiency request without a period"""
        with pytest.raises(ValueError):
            engine.resolve_efficiency("F1", None)

    def test_unknown_strategy(self, engine):
        """Unregistered strategy name"""
        with pytest.raises(ValueError):
            engine.propose_reductions("F1", NOV, strategy="coin-flip")

    def test_peer_loading_needs_coordinator(self, engine):
        """Peer loading without a loader configured"""
        with pytest.raises(ValueError):
            engine.load_peer_data("F1", [2025], [11])


# ---------------------------------------------------------------------------
# Intake and aggregation
# ---------------------------------------------------------------------------

class TestIntake:

    def test_names_joined_after_normalization(self, engine):
        """Outcome names in other spellings still join"""
        report = engine.resolve_efficiency("F1", NOV)
        performed = {r.physician_key: r.performed_count for r in report.records}
        assert performed == {"ADEM DİLEK": 9, "ZEYNEP AK": 9}

    def test_other_facility_entries_dropped(self):
        """Rows for another facility are not stored"""
        eng = ScheduleAnalyticsEngine()
        eng.add_roster("F1", NOV, surgeon_month("Adem Dilek", 3) + surgeon_month("Ali Veli", 3, facility="F2"))
        assert {c.physician_key for c in eng.classify("F1", NOV)} == {"ADEM DİLEK"}

    def test_custom_normalizer(self):
        """Injected normalizer keys the summaries"""
        eng = ScheduleAnalyticsEngine(normalizer=lambda name: name.strip().lower())
        eng.add_roster("F1", NOV, surgeon_month("Adem Dilek", 2))
        assert set(eng.summarize_actions("F1", NOV)) == {"adem dilek"}

    def test_summary_by_branch(self, engine):
        """Branch rollup of two surgeons"""
        summaries = engine.summarize_actions("F1", NOV, GROUP_BY_BRANCH)
        assert summaries["GENEL CERRAHİ"].action_days["AMELİYAT"] == pytest.approx(7.5)

    def test_compare_with_previous(self, engine):
        """Month-over-month surgery days from 2 to 5"""
        engine.add_roster("F1", OCT, surgeon_month("Adem Dilek", 4, period=OCT))
        deltas = {d.action: d for d in engine.compare_with_previous("F1", NOV)["ADEM DİLEK"]}
        assert deltas["AMELİYAT"].previous == 2.0
        assert deltas["AMELİYAT"].current == 5.0
        assert deltas["AMELİYAT"].significant

    def test_missing_roster_gives_empty_result(self):
        """Nothing loaded, empty classification"""
        eng = ScheduleAnalyticsEngine()
        assert eng.classify("F1", NOV) == []


# ---------------------------------------------------------------------------
# Efficiency and proposals
# ---------------------------------------------------------------------------

class TestProposals:

    def test_staged_proposal(self, engine):
        """10 days at 0.75 of the branch: 10 to 8"""
        report, proposals = engine.propose_reductions("F1", NOV)
        low = report.by_status(EfficiencyStatus.LOW)
        assert [r.physician_key for r in low] == ["ADEM DİLEK"]
        (p,) = proposals
        assert p.current_days == 10
        assert p.proposed_days == 8
        assert p.estimated_capacity_gain == 60
        assert p.strategy == "staged"

    def test_outcome_ratio_proposal(self, engine):
        """Outcome-ratio policy with caps and outpatient conversion"""
        _report, proposals = engine.propose_reductions("F1", NOV, strategy="outcome-ratio")
        by_name = {p.physician_key: p for p in proposals}
        # HAO 0.9 vs BAO 1.2 (75%) → −1, then 6-day cap and 3-day low-volume cap
        assert by_name["ADEM DİLEK"].proposed_days == 3
        assert by_name["ADEM DİLEK"].proposed_outpatient_days == 2 + 7

    def test_branch_restriction(self, engine):
        """No physicians in the requested branch"""
        _report, proposals = engine.propose_reductions("F1", NOV, branch="ORTOPEDİ")
        assert proposals == []


class TestPeerGroup:

    @pytest.fixture
    def peer_engine(self):
        directory = RoleGroupDirectory({"F1": "A1", "F2": "A2", "F3": "A", "F4": "A"})
        calls = []
        eng = ScheduleAnalyticsEngine(directory=directory, peer_loader=lambda f, p: calls.append((f, p)))
        eng.calls = calls
        eng.add_roster("F1", NOV, surgeon_month("Adem Dilek", 4))
        eng.add_outcomes("F1", NOV, [OutcomeRecord("Adem Dilek", performed_surgeries=4)])
        eng.add_roster("F2", NOV, surgeon_month("Zeynep Ak", 6, facility="F2"))
        eng.add_outcomes("F2", NOV, [OutcomeRecord("Zeynep Ak", performed_surgeries=12)])
        # F3: roster only. F4: outcomes only.
        eng.add_roster("F3", NOV, surgeon_month("Ayşe Kaya", 10, facility="F3"))
        eng.add_outcomes("F4", NOV, [OutcomeRecord("Fatma Öz", performed_surgeries=40)])
        return eng

    def test_only_complete_facilities_pooled(self, peer_engine):
        """F1 and F2 pooled, F3 and F4 skipped"""
        report = peer_engine.resolve_efficiency("F1", NOV)
        assert report.peer_stats.role_group == "A"
        assert report.peer_stats.pooled_count == 2
        assert report.peer_stats.total_facilities == 4
        (rec,) = report.records
        assert rec.peer_group_average == pytest.approx(16 / 10)
        assert rec.reference_efficiency == pytest.approx(1.6)
        assert rec.status == EfficiencyStatus.LOW

    def test_peer_reference_drives_proposal(self, peer_engine):
        """Peer average sets the reduction target"""
        _report, (p,) = peer_engine.propose_reductions("F1", NOV)
        assert p.target_efficiency == pytest.approx(1.6)
        # ratio 0.625 → −1, volume floor ceil(4 / 1.6) = 3
        assert p.proposed_days == 3

    def test_load_peer_data_skips_complete_facilities(self, peer_engine):
        """Only incomplete siblings are fetched"""
        report = peer_engine.load_peer_data("F1", [2025], [11])
        assert report.complete
        assert [f for f, _ in peer_engine.calls] == ["F3", "F4"]

    def test_cleared_peer_fetched_again(self, peer_engine):
        """Peer data dropped with clear_data is requested on the next load"""
        peer_engine.load_peer_data("F1", [2025], [11])
        assert peer_engine.clear_data("F2", NOV) == 1
        assert peer_engine.resolve_efficiency("F1", NOV).peer_stats.pooled_count == 1

        peer_engine.calls.clear()
        peer_engine.load_peer_data("F1", [2025], [11])
        assert [f for f, _ in peer_engine.calls] == ["F2", "F3", "F4"]
