#!/usr/bin/env python3
"""
List the valid segment combinations in force on a date.

Usage:
    python3 scripts/view_valid_combinations.py
    python3 scripts/view_valid_combinations.py --date 2024-06-30 --all

By default only Effective and Unknown Include entries are listed; --all
shows every Include entry with its effective status.
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

COL = 22


def main() -> int:
    parser = argparse.ArgumentParser(description="List valid segment combinations")
    parser.add_argument("--date", type=date.fromisoformat, default=date.today())
    parser.add_argument("--set", dest="set_id", default=None)
    parser.add_argument("--config-dir", type=Path, default=None)
    parser.add_argument("--all", action="store_true", help="Show every Include entry")
    args = parser.parse_args()

    logging.disable(logging.CRITICAL)

    from coa_config import get_active_configuration
    from coa_kernel.exceptions import CoaKernelError
    from coa_services import CombinationService

    try:
        config = get_active_configuration(args.config_dir, args.set_id)
    except (CoaKernelError, FileNotFoundError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    service = CombinationService.from_configuration(config)
    print()
    print(f"  {config.config_id} v{config.version} -- combinations on {args.date.isoformat()}")
    print()

    if args.all:
        rows = service.project(args.date)
        if not rows:
            print("  No Include entries in active rules.")
            return 0
        print(f"  {'Rule':<{COL}} {'Entry':<10} {'Segment A':<{COL}} {'Segment B':<{COL}} Status")
        for row in rows:
            print(
                f"  {row.rule_name[:COL - 1]:<{COL}} {row.entry_id:<10} "
                f"{row.segment_a_display:<{COL}} {row.segment_b_display:<{COL}} "
                f"{row.status.value}"
            )
        return 0

    listing = service.list_valid_combinations(args.date)
    if not listing:
        print("  No valid combinations.")
        return 0

    segment_ids = list(listing[0].cells)
    print("  " + " ".join(f"{s:<{COL}}" for s in segment_ids) + " Status")
    for row in listing:
        cells = " ".join(f"{row.cells[s][:COL - 1]:<{COL}}" for s in segment_ids)
        print(f"  {cells} {row.status.value}")
    print()
    print(f"  {len(listing)} combination(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
