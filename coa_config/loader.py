"""
Configuration Loader (``coa_config.loader``).

Responsibility
--------------
Loads individual YAML fragment files and parses their records into
kernel domain value objects (``Segment``, ``SegmentCode``,
``HierarchySet``, ``CombinationRule``).  This is **build/test tooling
only**; the single public entry point for runtime configuration is
``coa_config.get_active_configuration()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Consumed by
``coa_config.assembler`` during configuration set assembly.  Imports the
kernel domain only.

Invariants enforced
-------------------
* All parse errors raise ``ValueError``, ``KeyError`` or a kernel
  ``DomainValidationError`` / ``InvalidCriterionError`` with a descriptive
  message; no silent defaults for required fields.
* Code values are always strings.  YAML scalars such as ``101`` are
  coerced so that ``"101"`` and ``101`` name the same code.
* ``compute_checksum`` is deterministic (canonical JSON + SHA-256).

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid date  -> ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from coa_kernel.domain.combination_rules import (
    CombinationRule,
    EntryBehavior,
    MappingEntry,
    RuleStatus,
    criterion_from_dict,
)
from coa_kernel.domain.hierarchy import (
    Hierarchy,
    HierarchySet,
    HierarchySetStatus,
    build_nodes,
)
from coa_kernel.domain.segments import Segment, SegmentCode, SegmentDataType
from coa_kernel.utils.hashing import hash_payload

_CRITERION_VALUE_KEYS = (
    "codeValue", "code_value",
    "rangeStartValue", "range_start_value",
    "rangeEndValue", "range_end_value",
    "hierarchyNodeId", "hierarchy_node_id",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """
    Parse a date from YAML (string, date or datetime).

    Raises:
        ValueError: if ``value`` is not a valid date representation.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_optional_date(value: Any) -> date | None:
    return None if value in (None, "") else parse_date(value)


def parse_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise ValueError(f"Cannot parse datetime from {value!r}")


def as_code(value: Any) -> str:
    """Code values are strings; YAML may have typed them as numbers."""
    if value is None:
        raise ValueError("code value is required")
    return str(value)


def parse_segment(data: Mapping[str, Any]) -> Segment:
    """Parse a ``Segment`` from one record of ``segments.yaml``."""
    max_length = data.get("max_length")
    return Segment(
        segment_id=data["id"],
        display_name=data.get("display_name", data["id"]),
        segment_type=data.get("segment_type", data.get("display_name", data["id"])),
        is_active=bool(data.get("is_active", True)),
        is_core=bool(data.get("is_core", False)),
        is_mandatory_for_coding=bool(data.get("is_mandatory_for_coding", False)),
        separator=data.get("separator", "-"),
        validation_pattern=data.get("validation_pattern"),
        default_code=as_code(data["default_code"]) if data.get("default_code") is not None else None,
        valid_from=parse_optional_date(data.get("valid_from")),
        valid_to=parse_optional_date(data.get("valid_to")),
        data_type=SegmentDataType(data.get("data_type", SegmentDataType.ALPHANUMERIC.value)),
        max_length=int(max_length) if max_length is not None else None,
        is_custom=bool(data.get("is_custom", False)),
    )


def parse_segment_code(segment_id: str, data: Mapping[str, Any]) -> SegmentCode:
    """Parse a ``SegmentCode`` from one record under ``segment_codes.<segment_id>``."""
    parent = data.get("default_parent_code")
    return SegmentCode(
        segment_id=segment_id,
        code=as_code(data["code"]),
        description=data.get("description", ""),
        is_active=bool(data.get("is_active", True)),
        valid_from=parse_optional_date(data.get("valid_from")),
        valid_to=parse_optional_date(data.get("valid_to")),
        summary_indicator=bool(data.get("summary_indicator", False)),
        available_for_transaction_coding=bool(
            data.get("available_for_transaction_coding", True)
        ),
        available_for_budgeting=bool(data.get("available_for_budgeting", True)),
        default_parent_code=as_code(parent) if parent is not None else None,
        code_id=data.get("id"),
    )


def _normalise_tree(tree: Any) -> list[dict]:
    """Coerce node codes to strings throughout an authored tree."""
    normalised: list[dict] = []
    for item in tree or []:
        node = dict(item)
        if node.get("code") is not None:
            node["code"] = as_code(node["code"])
        node["children"] = _normalise_tree(node.get("children"))
        normalised.append(node)
    return normalised


def parse_hierarchy_set(data: Mapping[str, Any]) -> HierarchySet:
    """Parse a ``HierarchySet`` with its per-segment trees.

    Each hierarchy is ``{segment_id, id?, description?, tree: [...]}``;
    the hierarchy id defaults to ``<set id>:<segment id>``.
    """
    set_id = data["id"]
    hierarchies = []
    for h in data.get("hierarchies", []):
        hierarchy_id = h.get("id") or f"{set_id}:{h['segment_id']}"
        hierarchies.append(
            Hierarchy(
                hierarchy_id=hierarchy_id,
                segment_id=h["segment_id"],
                nodes=build_nodes(hierarchy_id, _normalise_tree(h.get("tree"))),
                description=h.get("description"),
            )
        )
    return HierarchySet(
        set_id=set_id,
        name=data.get("name", set_id),
        status=HierarchySetStatus(data.get("status", HierarchySetStatus.ACTIVE.value)),
        valid_from=parse_optional_date(data.get("valid_from")),
        valid_to=parse_optional_date(data.get("valid_to")),
        hierarchies=tuple(hierarchies),
        description=data.get("description"),
        last_modified_date=parse_datetime(data.get("last_modified_date")),
        last_modified_by=data.get("last_modified_by"),
    )


def normalise_criterion(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of an authored criterion with value fields coerced to strings."""
    criterion = dict(data)
    for key in _CRITERION_VALUE_KEYS:
        if criterion.get(key) is not None:
            criterion[key] = as_code(criterion[key])
    return criterion


def parse_mapping_entry(data: Mapping[str, Any]) -> MappingEntry:
    return MappingEntry(
        entry_id=str(data["id"]),
        behavior=EntryBehavior(data["behavior"]),
        segment_a_criterion=criterion_from_dict(
            normalise_criterion(data["segment_a_criterion"])
        ),
        segment_b_criterion=criterion_from_dict(
            normalise_criterion(data["segment_b_criterion"])
        ),
    )


def parse_rule(data: Mapping[str, Any]) -> CombinationRule:
    """
    Parse a ``CombinationRule`` with its ordered mapping entries.

    Raises:
        KeyError: if required keys are missing.
        InvalidCriterionError: if a criterion is malformed.
        InvalidRuleError: if the rule pairs a segment with itself.
    """
    return CombinationRule(
        rule_id=str(data["id"]),
        name=data.get("name", str(data["id"])),
        status=RuleStatus(data.get("status", RuleStatus.ACTIVE.value)),
        segment_a_id=data["segment_a_id"],
        segment_b_id=data["segment_b_id"],
        mapping_entries=tuple(
            parse_mapping_entry(e) for e in data.get("mapping_entries", [])
        ),
        description=data.get("description"),
        last_modified_date=parse_datetime(data.get("last_modified_date")),
        last_modified_by=data.get("last_modified_by"),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of the canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    return hash_payload(data)
