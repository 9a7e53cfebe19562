"""
Configuration Validator (``coa_config.validator``).

Responsibility
--------------
Validates an assembled ``ConfigurationSet`` before it is turned into
runtime snapshots, so that referential defects are found at load time
rather than surfacing as silent non-matches during evaluation.

Architecture position
---------------------
**Config layer** -- load-time validation.  Called by
``coa_config.get_active_configuration()`` after assembly.

Invariants enforced
-------------------
* Segment ids, hierarchy set ids and rule ids are unique.
* Every segment code belongs to a declared segment.
* Every rule references two declared segments.
* Entry ids are unique within a rule.
* Every HIERARCHY_NODE criterion names a node of a hierarchy over the
  rule's segment for that side.
* Hierarchy child references resolve within their hierarchy.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``)  -> the configuration MUST
  NOT be used.
* Warnings (``ConfigValidationResult.warnings``)  -> usable, but should
  be reviewed: CODE criteria naming unknown codes, duplicate code values,
  hierarchy nodes naming unknown codes, and hierarchy cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from coa_config.schema import ConfigurationSet
from coa_kernel.domain.combination_rules import (
    CodeCriterion,
    CombinationRule,
    HierarchyNodeCriterion,
)
from coa_kernel.domain.snapshots import HierarchyIndex


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: ConfigurationSet) -> ConfigValidationResult:
    """Validate a configuration set.  Never raises."""
    result = ConfigValidationResult()

    _validate_segments(config, result)
    _validate_segment_codes(config, result)
    _validate_hierarchies(config, result)
    _validate_rules(config, result)

    return result


def _validate_segments(config: ConfigurationSet, result: ConfigValidationResult) -> None:
    seen: set[str] = set()
    for segment in config.segments:
        if segment.segment_id in seen:
            result.add_error(f"Duplicate segment id: {segment.segment_id}")
        seen.add(segment.segment_id)


def _validate_segment_codes(config: ConfigurationSet, result: ConfigValidationResult) -> None:
    segment_ids = {s.segment_id for s in config.segments}
    seen: set[tuple[str, str]] = set()
    for code in config.segment_codes:
        if code.segment_id not in segment_ids:
            result.add_error(
                f"Segment code {code.code!r} references unknown segment {code.segment_id!r}"
            )
        if code.key in seen:
            result.add_warning(
                f"Duplicate code {code.code!r} in segment {code.segment_id!r}; "
                f"the first definition is used"
            )
        seen.add(code.key)


def _validate_hierarchies(config: ConfigurationSet, result: ConfigValidationResult) -> None:
    segment_ids = {s.segment_id for s in config.segments}
    code_keys = {c.key for c in config.segment_codes}
    set_ids: set[str] = set()

    for hierarchy_set in config.hierarchy_sets:
        if hierarchy_set.set_id in set_ids:
            result.add_error(f"Duplicate hierarchy set id: {hierarchy_set.set_id}")
        set_ids.add(hierarchy_set.set_id)

        for hierarchy in hierarchy_set.hierarchies:
            where = f"Hierarchy {hierarchy.hierarchy_id!r}"
            if hierarchy.segment_id not in segment_ids:
                result.add_error(f"{where} references unknown segment {hierarchy.segment_id!r}")

            node_ids: set[str] = set()
            for node in hierarchy.nodes:
                if node.node_id in node_ids:
                    result.add_error(f"{where}: duplicate node id {node.node_id!r}")
                node_ids.add(node.node_id)
                if (
                    node.segment_code is not None
                    and (hierarchy.segment_id, node.segment_code) not in code_keys
                ):
                    result.add_warning(
                        f"{where}: node {node.node_id!r} references unknown code "
                        f"{node.segment_code!r}"
                    )
            for node in hierarchy.nodes:
                for child_id in node.children:
                    if child_id not in node_ids:
                        result.add_error(
                            f"{where}: node {node.node_id!r} has unknown child {child_id!r}"
                        )

        cycles = HierarchyIndex(hierarchy_set.hierarchies).find_cycles()
        if cycles:
            result.add_warning(
                f"Hierarchy set {hierarchy_set.set_id!r} contains a cycle through "
                f"{', '.join(cycles)}; affected criteria will not match"
            )


def _hierarchy_nodes_by_segment(config: ConfigurationSet) -> dict[str, set[str]]:
    nodes: dict[str, set[str]] = {}
    for hierarchy_set in config.hierarchy_sets:
        for hierarchy in hierarchy_set.hierarchies:
            nodes.setdefault(hierarchy.segment_id, set()).update(
                n.node_id for n in hierarchy.nodes
            )
    return nodes


def _validate_rules(config: ConfigurationSet, result: ConfigValidationResult) -> None:
    segment_ids = {s.segment_id for s in config.segments}
    code_keys = {c.key for c in config.segment_codes}
    nodes_by_segment = _hierarchy_nodes_by_segment(config)
    rule_ids: set[str] = set()

    for rule in config.rules:
        if rule.rule_id in rule_ids:
            result.add_error(f"Duplicate combination rule id: {rule.rule_id}")
        rule_ids.add(rule.rule_id)

        for segment_id in (rule.segment_a_id, rule.segment_b_id):
            if segment_id not in segment_ids:
                result.add_error(
                    f"Rule {rule.rule_id!r} references unknown segment {segment_id!r}"
                )

        _validate_entries(rule, code_keys, nodes_by_segment, result)


def _validate_entries(
    rule: CombinationRule,
    code_keys: set[tuple[str, str]],
    nodes_by_segment: dict[str, set[str]],
    result: ConfigValidationResult,
) -> None:
    entry_ids: set[str] = set()
    for entry in rule.mapping_entries:
        where = f"Rule {rule.rule_id!r} entry {entry.entry_id!r}"
        if entry.entry_id in entry_ids:
            result.add_error(f"{where}: duplicate entry id")
        entry_ids.add(entry.entry_id)

        sides = (
            ("segment A", rule.segment_a_id, entry.segment_a_criterion),
            ("segment B", rule.segment_b_id, entry.segment_b_criterion),
        )
        for label, segment_id, criterion in sides:
            if isinstance(criterion, CodeCriterion):
                if (segment_id, criterion.code_value) not in code_keys:
                    result.add_warning(
                        f"{where}: {label} code {criterion.code_value!r} is not defined "
                        f"for segment {segment_id!r}"
                    )
            elif isinstance(criterion, HierarchyNodeCriterion):
                if criterion.hierarchy_node_id not in nodes_by_segment.get(segment_id, set()):
                    result.add_error(
                        f"{where}: {label} hierarchy node {criterion.hierarchy_node_id!r} "
                        f"is not in any hierarchy over segment {segment_id!r}"
                    )
