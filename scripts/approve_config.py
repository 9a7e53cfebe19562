#!/usr/bin/env python3
"""
Approve a chart-of-accounts configuration set by writing its checksum to
APPROVED_FINGERPRINT.

Usage:
    python scripts/approve_config.py [config_set_directory]

If no directory is given, defaults to coa_config/sets/municipal/

The script:
  1. Assembles fragments from the directory
  2. Validates the assembled config
  3. Writes the configuration checksum to APPROVED_FINGERPRINT

Changing any fragment without re-running approval will cause
get_active_configuration() to raise ConfigIntegrityError.
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from coa_config.assembler import assemble_from_directory
from coa_config.integrity import write_pinned_fingerprint
from coa_config.validator import validate_configuration


def approve(fragment_dir: Path) -> str:
    """Assemble, validate, and write the pin file.

    Returns the checksum that was written.
    """
    print(f"Assembling fragments from: {fragment_dir}")
    config_set = assemble_from_directory(fragment_dir)
    print(f"  config_id: {config_set.config_id}")
    print(f"  version:   {config_set.version}")
    print(f"  status:    {config_set.status.value}")
    print(f"  rules:     {len(config_set.rules)}")

    print("Validating...")
    result = validate_configuration(config_set)
    if not result.is_valid:
        print("VALIDATION FAILED:")
        for err in result.errors:
            print(f"  ERROR: {err}")
        sys.exit(1)
    for w in result.warnings:
        print(f"  WARNING: {w}")

    pin_path = write_pinned_fingerprint(fragment_dir, config_set.checksum)
    print(f"  checksum: {config_set.checksum}")
    print(f"Wrote {pin_path}")
    return config_set.checksum


def main():
    if len(sys.argv) > 1:
        target = Path(sys.argv[1])
    else:
        target = ROOT / "coa_config" / "sets" / "municipal"

    if not target.is_dir():
        print(f"Error: directory not found: {target}", file=sys.stderr)
        sys.exit(1)

    approve(target)
    print("Done. Config is now pinned.")


if __name__ == "__main__":
    main()
