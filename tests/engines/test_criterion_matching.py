"""
Tests for matching one code against one criterion.

Covers:
- CODE exact, case-sensitive matching
- RANGE inclusivity and the numeric/string ordering
- HIERARCHY_NODE self and descendant matching, unresolved nodes, cycles
- Catalog-backed UNKNOWN_CODE / INACTIVE_CODE outcomes
"""

from datetime import date

import pytest

from coa_engines.criterion import MatchOutcome, match_criterion, matches
from coa_kernel.domain.combination_rules import (
    CodeCriterion,
    HierarchyNodeCriterion,
    RangeCriterion,
    WarningCode,
)
from coa_kernel.domain.hierarchy import Hierarchy, HierarchyNode
from coa_kernel.domain.ordering import compare_code_values, value_in_range
from coa_kernel.domain.segments import SegmentCode
from coa_kernel.domain.snapshots import CatalogSnapshot, HierarchyIndex


def make_department_index(extra_edges=None) -> HierarchyIndex:
    """FIN -> FIN-AP -> FIN-AP-1, plus HR as a separate root."""
    edges = {"FIN": ("FIN-AP",), "FIN-AP": ("FIN-AP-1",), "FIN-AP-1": (), "HR": ()}
    edges.update(extra_edges or {})
    nodes = tuple(
        HierarchyNode(node_id=f"n-{code}", hierarchy_id="dept", segment_code=code,
                      children=tuple(f"n-{c}" for c in children))
        for code, children in edges.items()
    )
    return HierarchyIndex([Hierarchy("dept", "department", nodes)])


class TestCodeCriterion:

    def test_exact_match(self):
        assert matches(CodeCriterion("101"), "101")

    def test_case_sensitive(self):
        assert not matches(CodeCriterion("fin"), "FIN")

    def test_no_numeric_coercion(self):
        assert not matches(CodeCriterion("0101"), "101")


class TestRangeCriterion:

    @pytest.mark.parametrize("code,expected", [
        ("6000", True), ("6199", True), ("6100", True), ("5999", False), ("6200", False),
    ])
    def test_inclusive_bounds(self, code, expected):
        assert matches(RangeCriterion("6000", "6199"), code) is expected

    def test_numeric_ordering_for_unequal_lengths(self):
        assert matches(RangeCriterion("600", "700"), "0610")
        assert not matches(RangeCriterion("600", "700"), "6100")

    def test_string_ordering_for_alphanumeric_codes(self):
        assert matches(RangeCriterion("FIN-A", "FIN-Z"), "FIN-BUD")
        assert not matches(RangeCriterion("FIN-A", "FIN-Z"), "HR")

    def test_mixed_triple_uses_string_order(self):
        assert value_in_range("61A", "6000", "6199") is ("6000" <= "61A" <= "6199")

    def test_compare_code_values(self):
        assert compare_code_values("9", "10") == -1
        assert compare_code_values("010", "10") == 0
        assert compare_code_values("B", "A") == 1


class TestHierarchyNodeCriterion:

    def setup_method(self):
        self.index = make_department_index()

    def _match(self, criterion, code, hierarchy=None):
        return match_criterion(
            criterion, code, segment_id="department",
            hierarchy=self.index if hierarchy is None else hierarchy,
        )

    def test_node_itself_matches(self):
        assert self._match(HierarchyNodeCriterion("n-FIN"), "FIN").matched

    def test_descendant_matches_with_children(self):
        assert self._match(HierarchyNodeCriterion("n-FIN", include_children=True), "FIN-AP-1").matched

    def test_descendant_does_not_match_without_children(self):
        result = self._match(HierarchyNodeCriterion("n-FIN", include_children=False), "FIN-AP-1")
        assert result.outcome == MatchOutcome.NO_MATCH

    def test_sibling_root_does_not_match(self):
        result = self._match(HierarchyNodeCriterion("n-FIN", include_children=True), "HR")
        assert result.outcome == MatchOutcome.NO_MATCH

    def test_ancestor_does_not_match(self):
        result = self._match(HierarchyNodeCriterion("n-FIN-AP", include_children=True), "FIN")
        assert result.outcome == MatchOutcome.NO_MATCH

    def test_code_without_node_is_unknown(self):
        result = self._match(HierarchyNodeCriterion("n-FIN", include_children=True), "IT")
        assert result.outcome == MatchOutcome.UNKNOWN_NODE
        assert result.outcome.is_unknown
        assert not result.matched

    def test_missing_target_node_warns(self):
        result = self._match(HierarchyNodeCriterion("n-GONE", include_children=True), "FIN")
        assert result.outcome == MatchOutcome.UNKNOWN_NODE
        assert [w.code for w in result.warnings] == [WarningCode.MALFORMED_CRITERION]
        assert result.warnings[0].node_id == "n-GONE"

    def test_no_hierarchy_is_unknown(self):
        result = match_criterion(HierarchyNodeCriterion("n-FIN"), "FIN", segment_id="department")
        assert result.outcome == MatchOutcome.UNKNOWN_NODE

    def test_cycle_is_non_match_with_warning(self):
        index = make_department_index({"FIN-AP-1": ("FIN",)})
        result = self._match(HierarchyNodeCriterion("n-FIN", include_children=True), "FIN-AP", index)
        assert result.outcome == MatchOutcome.CYCLE
        assert not result.matched
        assert [w.code for w in result.warnings] == [WarningCode.HIERARCHY_CYCLE]

    def test_cycle_elsewhere_does_not_affect_clean_subtree(self):
        index = make_department_index({"HR": ("HR-1",), "HR-1": ("HR",)})
        result = self._match(HierarchyNodeCriterion("n-FIN", include_children=True), "FIN-AP-1", index)
        assert result.matched
        assert result.warnings == ()

    def test_boolean_contract_with_positional_hierarchy(self):
        assert matches(
            HierarchyNodeCriterion("n-FIN", include_children=True), "FIN-AP",
            self.index, segment_id="department",
        )


class TestCatalogOutcomes:
    """A catalog turns unknown and inactive codes into distinct non-matches."""

    def setup_method(self):
        self.catalog = CatalogSnapshot(codes=[
            SegmentCode("fund", "101", valid_from=date(2020, 1, 1)),
            SegmentCode("fund", "102", valid_from=date(2020, 1, 1), is_active=False),
        ])

    def test_known_valid_code_matches(self):
        result = match_criterion(CodeCriterion("101"), "101", segment_id="fund",
                                 catalog=self.catalog, on_date=date(2024, 1, 1))
        assert result.outcome == MatchOutcome.MATCH

    def test_unknown_code(self):
        result = match_criterion(RangeCriterion("100", "199"), "150", segment_id="fund",
                                 catalog=self.catalog, on_date=date(2024, 1, 1))
        assert result.outcome == MatchOutcome.UNKNOWN_CODE
        assert not result.matched

    def test_inactive_code(self):
        result = match_criterion(CodeCriterion("102"), "102", segment_id="fund",
                                 catalog=self.catalog, on_date=date(2024, 1, 1))
        assert result.outcome == MatchOutcome.INACTIVE_CODE
        assert not result.matched

    def test_without_date_only_existence_checked(self):
        result = match_criterion(CodeCriterion("102"), "102", segment_id="fund", catalog=self.catalog)
        assert result.outcome == MatchOutcome.MATCH

    def test_out_of_window_code(self):
        result = match_criterion(CodeCriterion("101"), "101", segment_id="fund",
                                 catalog=self.catalog, on_date=date(2019, 12, 31))
        assert result.outcome == MatchOutcome.INACTIVE_CODE
