"""
coa_config -- single public entrypoint for chart-of-accounts configuration.

Responsibility:
    Provides the way to obtain configuration at runtime through
    ``get_active_configuration()``.  Returns a ``CoaConfiguration`` holding
    immutable snapshots (segment catalog, hierarchy sets, rule set) plus
    the global default behavior.  YAML loading is internal tooling and
    never exposed to evaluation code.

Architecture position:
    Configuration -- YAML-driven chart of accounts.  Sits above
    ``coa_kernel`` and below ``coa_services`` / scripts.  The kernel and
    engines MUST NEVER import from ``coa_config``.

Invariants enforced:
    - Load-time validation: a configuration with validation errors is
      never returned.
    - Fingerprint pinning: when an APPROVED_FINGERPRINT file exists, the
      assembled checksum must match the pinned value.
    - Deterministic assembly: the same YAML fragments always produce the
      same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set directory matches.
    - ``AssemblyError`` -- a fragment cannot be parsed.
    - ``ConfigurationValidationError`` -- validation errors.
    - ``ConfigIntegrityError`` -- checksum mismatch against an approved pin.

Audit relevance:
    Every successful ``get_active_configuration()`` call emits a
    ``COA_CONFIG_TRACE`` log entry containing the config_id, version,
    checksum and object counts.  This ties every evaluated combination back
    to the exact configuration version that governed it.
"""

from __future__ import annotations

from pathlib import Path

from coa_config.assembler import AssemblyError, assemble_from_directory
from coa_config.integrity import ConfigIntegrityError, verify_fingerprint_pin
from coa_config.schema import CoaConfiguration, ConfigStatus, ConfigurationSet
from coa_config.validator import ConfigValidationResult, validate_configuration
from coa_kernel.domain.snapshots import CatalogSnapshot, RuleSetSnapshot
from coa_kernel.exceptions import ConfigurationValidationError
from coa_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "AssemblyError",
    "CoaConfiguration",
    "ConfigIntegrityError",
    "ConfigStatus",
    "ConfigValidationResult",
    "ConfigurationSet",
    "build_configuration",
    "get_active_configuration",
]


def build_configuration(config_set: ConfigurationSet) -> CoaConfiguration:
    """Turn an assembled set into immutable runtime snapshots.

    The rule set version is the configuration version.
    """
    return CoaConfiguration(
        config_id=config_set.config_id,
        version=config_set.version,
        default_behavior=config_set.default_behavior,
        catalog=CatalogSnapshot(config_set.segments, config_set.segment_codes),
        hierarchy_sets=config_set.hierarchy_sets,
        rule_set=RuleSetSnapshot(config_set.rules, version=config_set.version),
        checksum=config_set.checksum,
    )


def get_active_configuration(
    config_dir: Path | None = None,
    set_id: str | None = None,
) -> CoaConfiguration:
    """Load, validate and pin-check the active configuration set.

    Args:
        config_dir: Override path to the configuration sets directory.
            Defaults to coa_config/sets/.
        set_id: Select the set whose ``config_id`` (or directory name)
            equals this value.  Without it, the PUBLISHED set with the
            highest version wins, falling back to the only set present.

    Raises:
        FileNotFoundError: If no matching configuration set is found.
        AssemblyError: If a fragment is malformed.
        ConfigurationValidationError: If validation reports errors.
        ConfigIntegrityError: If APPROVED_FINGERPRINT exists and does not
            match the assembled checksum.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR

    config_set, fragment_dir = _find_matching_config(sets_dir, set_id)

    validation = validate_configuration(config_set)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={
            "config_set_id": config_set.config_id,
            "detail": warning,
        })
    if not validation.is_valid:
        raise ConfigurationValidationError(config_set.config_id, validation.errors)

    verify_fingerprint_pin(
        config_id=config_set.config_id,
        checksum=config_set.checksum,
        config_dir=fragment_dir,
    )

    configuration = build_configuration(config_set)

    _logger.info(
        "COA_CONFIG_TRACE",
        extra={
            "trace_type": "COA_CONFIG_TRACE",
            "config_set_id": configuration.config_id,
            "config_set_version": configuration.version,
            "checksum": configuration.checksum,
            "status": config_set.status.value,
            "default_behavior": configuration.default_behavior.value,
            "segment_count": len(config_set.segments),
            "code_count": len(config_set.segment_codes),
            "hierarchy_set_count": len(config_set.hierarchy_sets),
            "rule_count": len(config_set.rules),
            "warning_count": len(validation.warnings),
        },
    )
    return configuration


def _find_matching_config(
    sets_dir: Path, set_id: str | None
) -> tuple[ConfigurationSet, Path]:
    """Assemble every set under ``sets_dir`` and pick one.

    Raises:
        FileNotFoundError: If ``sets_dir`` does not exist or nothing matches.
    """
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    candidates: list[tuple[ConfigurationSet, Path]] = []
    for subdir in sorted(sets_dir.iterdir()):
        if not subdir.is_dir() or not (subdir / "root.yaml").exists():
            continue
        config_set = assemble_from_directory(subdir)
        if set_id is None or set_id in (config_set.config_id, subdir.name):
            candidates.append((config_set, subdir))

    if not candidates:
        wanted = f"set_id='{set_id}'" if set_id else "any set"
        raise FileNotFoundError(f"No configuration set found for {wanted} in {sets_dir}")

    if len(candidates) == 1:
        return candidates[0]

    # Multiple matches: prefer PUBLISHED, then highest version
    published = [(c, p) for c, p in candidates if c.status == ConfigStatus.PUBLISHED]
    return max(published or candidates, key=lambda pair: pair[0].version)
