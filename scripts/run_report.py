#!/usr/bin/env python3
"""
Efficiency report - Resolve surgical efficiency and propose day reductions

Usage:
  python scripts/run_report.py --roster roster.csv --outcomes outcomes.csv \
      --facility F1 --year 2025 --month Kasım

Pass --output-dir to also write CSV tables.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from schedule_analytics.cli import main

if __name__ == "__main__":
    main()
