"""
Configuration Integrity -- fingerprint pinning for approved configuration sets.

When a configuration set directory contains an APPROVED_FINGERPRINT file,
the assembled checksum must match the pinned value.  This prevents
unauthorized or accidental edits to an approved chart of accounts and its
combination rules.

The pin file is a single line: the SHA-256 hex string of
``ConfigurationSet.checksum``.  If no pin file exists the check is
skipped (draft workflow).
"""

from __future__ import annotations

from pathlib import Path

from coa_kernel.exceptions import ConfigurationError

PINFILE_NAME = "APPROVED_FINGERPRINT"


class ConfigIntegrityError(ConfigurationError):
    """Assembled configuration checksum does not match the approved pin.

    Attributes:
        config_id: The configuration set identifier.
        expected: The pinned (approved) fingerprint.
        actual: The assembled checksum.
        pin_path: Path to the APPROVED_FINGERPRINT file.
    """

    code: str = "CONFIG_INTEGRITY_MISMATCH"

    def __init__(
        self,
        config_id: str,
        expected: str,
        actual: str,
        pin_path: Path,
    ):
        self.config_id = config_id
        self.expected = expected
        self.actual = actual
        self.pin_path = pin_path
        super().__init__(
            f"Config integrity check failed for '{config_id}': "
            f"pinned fingerprint {expected[:16]}... != "
            f"assembled checksum {actual[:16]}... "
            f"(pin file: {pin_path})"
        )


def read_pinned_fingerprint(config_dir: Path) -> str | None:
    """The pinned SHA-256 hex string, or None if there is no pin file."""
    pin_path = config_dir / PINFILE_NAME
    if not pin_path.is_file():
        return None
    return pin_path.read_text(encoding="utf-8").strip()


def write_pinned_fingerprint(config_dir: Path, checksum: str) -> Path:
    """Approve a configuration set by pinning its current checksum."""
    pin_path = config_dir / PINFILE_NAME
    pin_path.write_text(checksum + "\n", encoding="utf-8")
    return pin_path


def verify_fingerprint_pin(
    config_id: str,
    checksum: str,
    config_dir: Path,
) -> None:
    """Verify the assembled checksum against the pin file (no-op without one).

    Raises:
        ConfigIntegrityError: If a pin exists and does not match.
    """
    pinned = read_pinned_fingerprint(config_dir)
    if pinned is None:
        return

    if checksum != pinned:
        raise ConfigIntegrityError(
            config_id=config_id,
            expected=pinned,
            actual=checksum,
            pin_path=config_dir / PINFILE_NAME,
        )
