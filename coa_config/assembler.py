"""
coa_config.assembler -- composes YAML fragments into one ConfigurationSet.

Responsibility:
    Administrators edit small, well-owned YAML fragments.  This module
    composes them into a single ``ConfigurationSet``.  Runtime only ever
    sees the ``CoaConfiguration`` built from it.

Architecture position:
    Configuration -- YAML-driven chart of accounts.  Called by
    ``coa_config.get_active_configuration()`` and by tests that build
    config fixtures.  Reads the filesystem; the resulting
    ``ConfigurationSet`` is a pure, frozen data structure.

Fragment structure::

    sets/municipal/
    +-- root.yaml               # Identity, version, status, default behavior
    +-- segments.yaml           # Segment definitions
    +-- segment_codes.yaml      # Codes keyed by segment id
    +-- hierarchies.yaml        # Hierarchy sets with nested trees
    +-- combination_rules.yaml  # Ordered rules with ordered entries
    +-- APPROVED_FINGERPRINT    # Optional pin (see coa_config.integrity)

Invariants enforced:
    - ``root.yaml`` must exist in every fragment directory; the other
      fragments are optional and default to empty.
    - Authored order of segments, codes, hierarchy sets, rules and entries
      is preserved.
    - A deterministic SHA-256 checksum is computed over all fragment data.

Failure modes:
    - ``AssemblyError`` -- missing directory or root.yaml, or any record
      that cannot be parsed into a domain object.
    - ``yaml.YAMLError`` (propagated from loader) -- invalid YAML syntax.

Audit relevance:
    ``ConfigurationSet.checksum`` is carried into ``CoaConfiguration`` and
    recorded in every ``COA_CONFIG_TRACE`` log entry.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from coa_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_hierarchy_set,
    parse_rule,
    parse_segment,
    parse_segment_code,
)
from coa_config.schema import ConfigStatus, ConfigurationSet
from coa_kernel.domain.combination_rules import DefaultBehavior
from coa_kernel.exceptions import CoaKernelError, ConfigurationError

FRAGMENT_FILES = (
    "segments.yaml",
    "segment_codes.yaml",
    "hierarchies.yaml",
    "combination_rules.yaml",
)


class AssemblyError(ConfigurationError):
    """Error during fragment assembly.

    The first fatal issue aborts assembly; field-level problems that do
    not prevent parsing are the validator's concern.
    """

    code: str = "ASSEMBLY_FAILED"


def _load_optional(fragment_dir: Path, name: str) -> dict[str, Any]:
    path = fragment_dir / name
    return load_yaml_file(path) if path.exists() else {}


def assemble_from_directory(fragment_dir: Path) -> ConfigurationSet:
    """Compose fragments from a directory into one ConfigurationSet.

    Args:
        fragment_dir: Path to the fragment directory (e.g.
            ``coa_config/sets/municipal/``).

    Raises:
        AssemblyError: If required fragments are missing or malformed.
    """
    if not fragment_dir.is_dir():
        raise AssemblyError(f"Fragment directory not found: {fragment_dir}")

    root_path = fragment_dir / "root.yaml"
    if not root_path.exists():
        raise AssemblyError(f"root.yaml not found in {fragment_dir}")
    root_data = load_yaml_file(root_path)

    fragments = {name: _load_optional(fragment_dir, name) for name in FRAGMENT_FILES}
    segments_data = fragments["segments.yaml"].get("segments", []) or []
    codes_data = fragments["segment_codes.yaml"].get("segment_codes", {}) or {}
    hierarchies_data = fragments["hierarchies.yaml"].get("hierarchy_sets", []) or []
    rules_data = fragments["combination_rules.yaml"].get("combination_rules", []) or []

    try:
        segments = tuple(parse_segment(s) for s in segments_data)
        segment_codes = tuple(
            parse_segment_code(segment_id, c)
            for segment_id, codes in codes_data.items()
            for c in (codes or [])
        )
        hierarchy_sets = tuple(parse_hierarchy_set(h) for h in hierarchies_data)
        rules = tuple(parse_rule(r) for r in rules_data)

        config_id = root_data["config_id"]
        status = ConfigStatus(root_data.get("status", ConfigStatus.DRAFT.value))
        default_behavior = DefaultBehavior(
            root_data.get("default_behavior", DefaultBehavior.NOT_ALLOWED.value)
        )
        version = int(root_data.get("version", 1))
    except (KeyError, ValueError, TypeError, CoaKernelError) as exc:
        raise AssemblyError(f"Cannot assemble {fragment_dir}: {exc!r}") from exc

    checksum = compute_checksum({
        "root": root_data,
        "segments": segments_data,
        "segment_codes": codes_data,
        "hierarchy_sets": hierarchies_data,
        "combination_rules": rules_data,
    })

    # INVARIANT: checksum must be a non-empty SHA-256 hex digest.
    assert checksum and len(checksum) == 64, (
        f"Checksum must be a 64-char SHA-256 hex digest, got {checksum!r}"
    )

    return ConfigurationSet(
        config_id=config_id,
        name=root_data.get("name", config_id),
        version=version,
        status=status,
        default_behavior=default_behavior,
        checksum=checksum,
        segments=segments,
        segment_codes=segment_codes,
        hierarchy_sets=hierarchy_sets,
        rules=rules,
        description=root_data.get("description"),
    )
