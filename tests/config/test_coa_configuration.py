"""
Tests for chart-of-accounts configuration loading.

Covers:
- get_active_configuration over the bundled municipal set
- Set selection by id and by PUBLISHED status / version
- Fingerprint pinning (approve, verify, mismatch)
- Assembly errors for missing or malformed fragments
- Loader coercion of YAML scalars to string code values
- Validator errors and warnings
"""

import shutil
from datetime import date
from pathlib import Path

import pytest
import yaml

from coa_config import (
    AssemblyError,
    ConfigIntegrityError,
    ConfigStatus,
    get_active_configuration,
)
from coa_config.assembler import assemble_from_directory
from coa_config.integrity import (
    PINFILE_NAME,
    read_pinned_fingerprint,
    verify_fingerprint_pin,
    write_pinned_fingerprint,
)
from coa_config.loader import parse_hierarchy_set, parse_rule, parse_segment_code
from coa_config.schema import ConfigurationSet
from coa_config.validator import validate_configuration
from coa_kernel.domain.combination_rules import (
    CodeCriterion,
    CombinationRule,
    DefaultBehavior,
    EntryBehavior,
    HierarchyNodeCriterion,
    MappingEntry,
    RangeCriterion,
    RuleStatus,
)
from coa_kernel.domain.hierarchy import Hierarchy, HierarchyNode, HierarchySet, HierarchySetStatus
from coa_kernel.domain.segments import Segment, SegmentCode
from coa_kernel.exceptions import ConfigurationValidationError

MUNICIPAL_DIR = Path(__file__).resolve().parents[2] / "coa_config" / "sets" / "municipal"


def copy_municipal(tmp_path: Path, name: str = "municipal") -> Path:
    target = tmp_path / "sets" / name
    shutil.copytree(MUNICIPAL_DIR, target)
    (target / PINFILE_NAME).unlink(missing_ok=True)
    return target


def rewrite_root(set_dir: Path, **changes) -> None:
    root_path = set_dir / "root.yaml"
    data = yaml.safe_load(root_path.read_text(encoding="utf-8"))
    data.update(changes)
    root_path.write_text(yaml.safe_dump(data), encoding="utf-8")


def make_config_set(segments=(), codes=(), hierarchy_sets=(), rules=()) -> ConfigurationSet:
    return ConfigurationSet(
        config_id="test",
        name="Test",
        version=1,
        status=ConfigStatus.DRAFT,
        default_behavior=DefaultBehavior.NOT_ALLOWED,
        checksum="0" * 64,
        segments=tuple(segments),
        segment_codes=tuple(codes),
        hierarchy_sets=tuple(hierarchy_sets),
        rules=tuple(rules),
    )


FUND = Segment("fund", "Fund", "Fund")
OBJECT = Segment("object", "Object", "Object")


class TestMunicipalConfiguration:

    def test_loads(self, municipal_config):
        assert municipal_config.config_id == "municipal-coa"
        assert municipal_config.default_behavior == DefaultBehavior.NOT_ALLOWED
        assert len(municipal_config.checksum) == 64

    def test_rule_order_preserved(self, municipal_config):
        assert [r.rule_id for r in municipal_config.rule_set] == ["cr-1", "cr-2", "cr-3"]
        entries = municipal_config.rule_set.get_rule("cr-1").mapping_entries
        assert [e.entry_id for e in entries] == ["map-1-1", "map-1-2"]

    def test_rule_set_version_follows_config(self, municipal_config):
        assert municipal_config.rule_set.version == municipal_config.version

    def test_codes_are_strings(self, municipal_config):
        code = municipal_config.catalog.get_segment_code("fund", "101")
        assert code is not None
        assert code.valid_from == date(2023, 1, 1)

    def test_hierarchy_set_by_date(self, municipal_config):
        assert municipal_config.hierarchy_set_on(date(2024, 6, 30)).set_id == "hset-gasb-1"
        assert municipal_config.hierarchy_set_on(date(2025, 3, 1)).set_id == "hset-budget-1"
        assert municipal_config.hierarchy_set_on(date(2023, 6, 1)) is None

    def test_hierarchy_index_cached_per_set(self, municipal_config):
        first = municipal_config.hierarchy_index(date(2024, 3, 1))
        assert municipal_config.hierarchy_index(date(2024, 9, 1)) is first
        assert first.get_hierarchy_node("fund", "102").node_id == "gasb-fund-child-102"
        assert len(municipal_config.hierarchy_index(date(2023, 1, 1)).hierarchies) == 0

    def test_config_trace_logged(self, captured_logs):
        get_active_configuration(set_id="municipal-coa")
        traces = [r for r in captured_logs() if r["message"] == "COA_CONFIG_TRACE"]
        assert traces[-1]["rule_count"] == 3
        assert traces[-1]["config_set_id"] == "municipal-coa"

    def test_assembly_is_deterministic(self):
        assert assemble_from_directory(MUNICIPAL_DIR).checksum == (
            assemble_from_directory(MUNICIPAL_DIR).checksum
        )


class TestSetSelection:

    def test_unknown_set_id(self):
        with pytest.raises(FileNotFoundError):
            get_active_configuration(set_id="no-such-set")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_configuration(config_dir=tmp_path / "absent")

    def test_published_highest_version_wins(self, tmp_path):
        old = copy_municipal(tmp_path, "a-old")
        new = copy_municipal(tmp_path, "b-new")
        draft = copy_municipal(tmp_path, "c-draft")
        rewrite_root(old, config_id="coa-old", version=1)
        rewrite_root(new, config_id="coa-new", version=2)
        rewrite_root(draft, config_id="coa-draft", version=9, status="draft")
        config = get_active_configuration(config_dir=tmp_path / "sets")
        assert config.config_id == "coa-new"

    def test_select_by_directory_name(self, tmp_path):
        copy_municipal(tmp_path, "city")
        assert get_active_configuration(config_dir=tmp_path / "sets", set_id="city").version == 1


class TestFingerprintPin:

    def test_no_pin_is_noop(self, tmp_path):
        verify_fingerprint_pin("x", "abc", tmp_path)
        assert read_pinned_fingerprint(tmp_path) is None

    def test_approved_pin_accepted(self, tmp_path):
        set_dir = copy_municipal(tmp_path)
        write_pinned_fingerprint(set_dir, assemble_from_directory(set_dir).checksum)
        assert get_active_configuration(config_dir=tmp_path / "sets").config_id == "municipal-coa"

    def test_edit_after_approval_rejected(self, tmp_path):
        set_dir = copy_municipal(tmp_path)
        write_pinned_fingerprint(set_dir, assemble_from_directory(set_dir).checksum)
        rewrite_root(set_dir, default_behavior="Allowed")
        with pytest.raises(ConfigIntegrityError) as exc_info:
            get_active_configuration(config_dir=tmp_path / "sets")
        assert exc_info.value.config_id == "municipal-coa"
        assert exc_info.value.code == "CONFIG_INTEGRITY_MISMATCH"


class TestAssemblyErrors:

    def test_missing_root(self, tmp_path):
        with pytest.raises(AssemblyError):
            assemble_from_directory(tmp_path)

    def test_bad_criterion(self, tmp_path):
        set_dir = copy_municipal(tmp_path)
        rules_path = set_dir / "combination_rules.yaml"
        data = yaml.safe_load(rules_path.read_text(encoding="utf-8"))
        data["combination_rules"][0]["mapping_entries"][0]["segment_b_criterion"] = {
            "type": "RANGE", "rangeStartValue": "6199", "rangeEndValue": "6000",
        }
        rules_path.write_text(yaml.safe_dump(data), encoding="utf-8")
        with pytest.raises(AssemblyError):
            assemble_from_directory(set_dir)

    def test_unknown_default_behavior(self, tmp_path):
        set_dir = copy_municipal(tmp_path)
        rewrite_root(set_dir, default_behavior="Maybe")
        with pytest.raises(AssemblyError):
            assemble_from_directory(set_dir)

    def test_invalid_set_refused(self, tmp_path):
        set_dir = copy_municipal(tmp_path)
        rules_path = set_dir / "combination_rules.yaml"
        data = yaml.safe_load(rules_path.read_text(encoding="utf-8"))
        data["combination_rules"][0]["segment_a_id"] = "nonexistent"
        rules_path.write_text(yaml.safe_dump(data), encoding="utf-8")
        with pytest.raises(ConfigurationValidationError) as exc_info:
            get_active_configuration(config_dir=tmp_path / "sets")
        assert any("nonexistent" in e for e in exc_info.value.errors)


class TestLoader:

    def test_numeric_scalars_coerced(self):
        rule = parse_rule({
            "id": 7,
            "segment_a_id": "fund",
            "segment_b_id": "object",
            "mapping_entries": [{
                "id": 1,
                "behavior": "Include",
                "segment_a_criterion": {"type": "CODE", "codeValue": 101},
                "segment_b_criterion": {"type": "RANGE", "rangeStartValue": 6000, "rangeEndValue": 6199},
            }],
        })
        assert rule.rule_id == "7"
        assert rule.status == RuleStatus.ACTIVE
        entry = rule.mapping_entries[0]
        assert entry.segment_a_criterion == CodeCriterion("101")
        assert entry.segment_b_criterion == RangeCriterion("6000", "6199")

    def test_segment_code_fields(self):
        code = parse_segment_code("fund", {"code": 100, "valid_from": "2023-01-01", "summary_indicator": True})
        assert code.code == "100"
        assert code.valid_from == date(2023, 1, 1)
        assert code.summary_indicator

    def test_hierarchy_ids_default_from_set(self):
        hierarchy_set = parse_hierarchy_set({
            "id": "hs",
            "valid_from": "2024-01-01",
            "hierarchies": [{"segment_id": "fund", "tree": [{"id": "n1", "code": 100}]}],
        })
        hierarchy = hierarchy_set.hierarchies[0]
        assert hierarchy.hierarchy_id == "hs:fund"
        assert hierarchy.nodes[0].segment_code == "100"
        assert hierarchy_set.status == HierarchySetStatus.ACTIVE


class TestValidator:

    def test_clean_configuration(self):
        result = validate_configuration(make_config_set(
            segments=[FUND, OBJECT],
            codes=[SegmentCode("fund", "101"), SegmentCode("object", "6100")],
            rules=[CombinationRule(
                "r1", "R1", RuleStatus.ACTIVE, "fund", "object",
                (MappingEntry("e1", EntryBehavior.INCLUDE, CodeCriterion("101"), CodeCriterion("6100")),),
            )],
        ))
        assert result.is_valid
        assert result.warnings == []

    def test_duplicate_ids_are_errors(self):
        rule = CombinationRule("r1", "R1", RuleStatus.ACTIVE, "fund", "object")
        result = validate_configuration(make_config_set(segments=[FUND, FUND, OBJECT], rules=[rule, rule]))
        assert any("Duplicate segment id" in e for e in result.errors)
        assert any("Duplicate combination rule id" in e for e in result.errors)

    def test_code_for_unknown_segment(self):
        result = validate_configuration(make_config_set(segments=[FUND], codes=[SegmentCode("object", "6100")]))
        assert not result.is_valid

    def test_duplicate_code_is_warning(self):
        result = validate_configuration(make_config_set(
            segments=[FUND], codes=[SegmentCode("fund", "101"), SegmentCode("fund", "101")],
        ))
        assert result.is_valid
        assert any("Duplicate code" in w for w in result.warnings)

    def test_duplicate_entry_id(self):
        entry = MappingEntry("e1", EntryBehavior.INCLUDE, CodeCriterion("101"), CodeCriterion("6100"))
        rule = CombinationRule("r1", "R1", RuleStatus.ACTIVE, "fund", "object", (entry, entry))
        result = validate_configuration(make_config_set(segments=[FUND, OBJECT], rules=[rule]))
        assert any("duplicate entry id" in e for e in result.errors)

    def test_unknown_code_criterion_is_warning(self):
        rule = CombinationRule(
            "r1", "R1", RuleStatus.ACTIVE, "fund", "object",
            (MappingEntry("e1", EntryBehavior.INCLUDE, CodeCriterion("999"), RangeCriterion("1", "2")),),
        )
        result = validate_configuration(make_config_set(segments=[FUND, OBJECT], rules=[rule]))
        assert result.is_valid
        assert any("'999'" in w for w in result.warnings)

    def test_dangling_hierarchy_node_is_error(self):
        rule = CombinationRule(
            "r1", "R1", RuleStatus.ACTIVE, "fund", "object",
            (MappingEntry("e1", EntryBehavior.INCLUDE, HierarchyNodeCriterion("ghost"), CodeCriterion("6100")),),
        )
        result = validate_configuration(make_config_set(segments=[FUND, OBJECT], rules=[rule]))
        assert any("'ghost'" in e for e in result.errors)

    def test_hierarchy_cycle_and_bad_child(self):
        nodes = (
            HierarchyNode("a", "h1", None, children=("b",)),
            HierarchyNode("b", "h1", None, children=("a", "zz")),
        )
        hierarchy_set = HierarchySet(
            set_id="hs", name="HS", status=HierarchySetStatus.ACTIVE,
            valid_from=date(2024, 1, 1), valid_to=None,
            hierarchies=(Hierarchy("h1", "fund", nodes),),
        )
        result = validate_configuration(make_config_set(segments=[FUND], hierarchy_sets=[hierarchy_set]))
        assert any("unknown child 'zz'" in e for e in result.errors)
        assert any("cycle" in w for w in result.warnings)
