"""
cli.py — Command-line efficiency and reduction report

Usage:
  python -m schedule_analytics.cli --roster roster.csv --outcomes outcomes.csv \
      --facility "ANKARA EAH" --year 2025 --month Kasım [--strategy staged]
      [--config engine.json] [--output-dir outputs/]
"""

import argparse
import logging
import sys
from pathlib import Path

from .aggregator import GROUP_BY_PHYSICIAN
from .config import load_engine_config
from .engine import ScheduleAnalyticsEngine
from .loader import load_outcomes, load_roster_entries
from .models import Period
from .reduction import STRATEGIES
from .tables import (
    action_day_table,
    efficiency_table,
    export_table,
    format_proposal_report,
    proposal_table,
)

logger = logging.getLogger(__name__)


def run_report(
    roster_path: Path,
    outcomes_path: Path,
    facility: str,
    period: Period,
    strategy: str = "staged",
    config_path: Path = None,
    output_dir: Path = None,
) -> str:
    """
    Load CSVs, resolve efficiency, propose reductions.

    Returns the text report; writes CSV tables when output_dir is given.
    """
    config = load_engine_config(config_path)
    engine = ScheduleAnalyticsEngine(config=config)

    entries = load_roster_entries(roster_path, engine.normalizer)
    for p in sorted({e.period for e in entries if e.facility == facility}):
        engine.add_roster(facility, p, entries)
    if outcomes_path is not None:
        engine.add_outcomes(facility, period, load_outcomes(outcomes_path, engine.normalizer))

    report, proposals = engine.propose_reductions(facility, period, strategy=strategy)
    text = format_proposal_report(report, proposals, strategy)

    if output_dir is not None:
        out = Path(output_dir)
        prefix = f"{facility}_{period.key}".replace(" ", "_")
        export_table(action_day_table(engine.summarize_actions(facility, period, GROUP_BY_PHYSICIAN)),
                     out / f"{prefix}_action_days.csv")
        export_table(efficiency_table(report.records), out / f"{prefix}_efficiency.csv")
        export_table(proposal_table(proposals), out / f"{prefix}_proposals.csv")
    return text


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Surgical efficiency and day-reduction report"
    )
    parser.add_argument("--roster",     required=True, help="Roster entries CSV")
    parser.add_argument("--outcomes",   default=None,  help="Outcome counts CSV")
    parser.add_argument("--facility",   required=True, help="Facility to analyze")
    parser.add_argument("--year",       required=True, help="Year, e.g. 2025")
    parser.add_argument("--month",      required=True, help="Month number or name (Kasım, November)")
    parser.add_argument("--strategy",   default="staged", choices=sorted(STRATEGIES),
                        help="Reduction strategy (default: staged)")
    parser.add_argument("--config",     default=None,  help="JSON engine config overrides")
    parser.add_argument("--output-dir", default=None,  help="Write CSV tables to this directory")
    parser.add_argument("--verbose",    action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        period = Period.parse(args.year, args.month)
    except ValueError as e:
        print(f"Invalid period: {e}")
        sys.exit(1)

    try:
        text = run_report(
            Path(args.roster),
            Path(args.outcomes) if args.outcomes else None,
            args.facility,
            period,
            strategy=args.strategy,
            config_path=Path(args.config) if args.config else None,
            output_dir=Path(args.output_dir) if args.output_dir else None,
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(text)


if __name__ == "__main__":
    main()
