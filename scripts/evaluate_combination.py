#!/usr/bin/env python3
"""
Check whether two segment codes may be combined on a date, and why.

Usage:
    python3 scripts/evaluate_combination.py fund 101 object 6100
    python3 scripts/evaluate_combination.py fund 101 object 6100 --date 2025-03-31
    python3 scripts/evaluate_combination.py fund 101 object 6100 --set municipal-coa

Reads the active configuration set from coa_config/sets/.
Exit status is 0 when the combination is allowed, 2 when it is denied.
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 72


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("segment_a")
    parser.add_argument("code_a")
    parser.add_argument("segment_b")
    parser.add_argument("code_b")
    parser.add_argument("--date", type=date.fromisoformat, default=date.today())
    parser.add_argument("--set", dest="set_id", default=None)
    parser.add_argument("--config-dir", type=Path, default=None)
    parser.add_argument("--verbose", action="store_true", help="Show engine logs")
    args = parser.parse_args()

    if not args.verbose:
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
    explanation = service.explain(
        args.date, args.segment_a, args.code_a, args.segment_b, args.code_b,
    )
    decision = explanation.decision

    print()
    print("=" * W)
    print("COMBINATION CHECK".center(W))
    print("=" * W)
    print(f"  Configuration: {config.config_id} v{config.version}")
    print(f"  Date:          {explanation.on_date.isoformat()}")
    print(f"  {args.segment_a:<12} {args.code_a:<12} {_status(explanation.code_a_status)}")
    print(f"  {args.segment_b:<12} {args.code_b:<12} {_status(explanation.code_b_status)}")
    print("-" * W)
    print(f"  Decision:      {decision.decision.value.upper()}")
    if decision.used_default:
        print(f"  Reason:        default behavior ({config.default_behavior.value})")
    else:
        print(f"  Rule:          {explanation.matched_rule_name} ({decision.matched_rule_id})")
        print(f"  Entry:         {decision.matched_entry_id} "
              f"[{explanation.matched_behavior.value}]")
        print(f"  Criteria:      {explanation.segment_a_criterion_text} / "
              f"{explanation.segment_b_criterion_text}")
    for warning in decision.warnings:
        print(f"  WARNING {warning.code.value}: {warning.message}")
    print("=" * W)
    print()

    return 0 if decision.is_allowed else 2


def _status(status) -> str:
    return f"({status.value})" if status is not None else ""


if __name__ == "__main__":
    sys.exit(main())
