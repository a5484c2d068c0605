#!/usr/bin/env python3
"""
Dry Run - Generate one week and write review outputs

Usage:
  python scripts/run_dry_run.py --week 2026-10-18

Outputs to outputs/ directory.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from station_scheduler.dry_run import main

if __name__ == "__main__":
    main()
