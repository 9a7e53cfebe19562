"""
Property-based tests for combination rule evaluation.

Properties checked over generated inputs:
- Determinism: evaluating the same inputs twice gives the same decision
- Default fallback: with no active rules the default always decides
- First match: the decision equals the behavior of the first entry,
  in rule then entry order, whose two CODE/RANGE criteria match
- Range consistency: numeric ranges agree with integer comparison
- Walk termination: descendant walks over arbitrary graphs (cycles
  included) finish and never report the start node as a descendant
"""

from datetime import date

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from coa_engines.criterion import matches
from coa_engines.evaluator import evaluate
from coa_kernel.domain.combination_rules import (
    CodeCriterion,
    CombinationRule,
    Decision,
    DefaultBehavior,
    EntryBehavior,
    MappingEntry,
    RangeCriterion,
    RuleStatus,
)
from coa_kernel.domain.hierarchy import Hierarchy, HierarchyNode
from coa_kernel.domain.ordering import compare_code_values, value_in_range
from coa_kernel.domain.snapshots import HierarchyIndex

ON = date(2024, 6, 30)
SEGMENTS = ("fund", "object", "department")

codes = st.sampled_from(["100", "101", "102", "6000", "6100", "6199", "6200", "FIN", "PD"])
numeric_codes = st.integers(min_value=0, max_value=99999).map(str)
default_behaviors = st.sampled_from(list(DefaultBehavior))

SUPPRESSED = [HealthCheck.too_slow, HealthCheck.function_scoped_fixture]


@st.composite
def criteria(draw):
    if draw(st.booleans()):
        return CodeCriterion(draw(codes))
    low, high = sorted([draw(numeric_codes), draw(numeric_codes)], key=int)
    return RangeCriterion(low, high)


@st.composite
def rules(draw, index):
    segment_a, segment_b = draw(
        st.sampled_from([(a, b) for a in SEGMENTS for b in SEGMENTS if a != b])
    )
    entries = tuple(
        MappingEntry(
            f"r{index}-e{n}",
            draw(st.sampled_from(list(EntryBehavior))),
            draw(criteria()),
            draw(criteria()),
        )
        for n in range(draw(st.integers(min_value=0, max_value=4)))
    )
    status = draw(st.sampled_from(list(RuleStatus)))
    return CombinationRule(f"r{index}", f"Rule {index}", status, segment_a, segment_b, entries)


@st.composite
def rule_lists(draw):
    count = draw(st.integers(min_value=0, max_value=5))
    return [draw(rules(index)) for index in range(count)]


def reference_decision(rule_list, segment_a, code_a, segment_b, code_b, default):
    for rule in rule_list:
        if not rule.is_active or (rule.segment_a_id, rule.segment_b_id) != (segment_a, segment_b):
            continue
        for entry in rule.mapping_entries:
            if matches(entry.segment_a_criterion, code_a) and matches(entry.segment_b_criterion, code_b):
                return Decision.ALLOWED if entry.behavior == EntryBehavior.INCLUDE else Decision.DENIED
    return default.to_decision()


class TestEvaluationProperties:

    @given(
        rule_list=rule_lists(),
        pair=st.sampled_from([("fund", "object"), ("fund", "department"), ("object", "fund")]),
        code_a=codes,
        code_b=codes,
        default=default_behaviors,
    )
    @settings(max_examples=200, suppress_health_check=SUPPRESSED)
    def test_first_match_and_determinism(self, rule_list, pair, code_a, code_b, default):
        kwargs = dict(
            on_date=ON,
            segment_a_id=pair[0],
            code_a=code_a,
            segment_b_id=pair[1],
            code_b=code_b,
            rules=rule_list,
            default_behavior=default,
        )
        first = evaluate(**kwargs)
        assert evaluate(**kwargs) == first
        assert first.decision == reference_decision(rule_list, pair[0], code_a, pair[1], code_b, default)
        assert first.used_default == (first.matched_entry_id is None)

    @given(
        rule_list=rule_lists(),
        code_a=codes,
        code_b=codes,
        default=default_behaviors,
    )
    @settings(suppress_health_check=SUPPRESSED)
    def test_inactive_rules_never_decide(self, rule_list, code_a, code_b, default):
        inactive = [
            CombinationRule(r.rule_id, r.name, RuleStatus.INACTIVE, r.segment_a_id,
                            r.segment_b_id, r.mapping_entries)
            for r in rule_list
        ]
        decision = evaluate(
            on_date=ON, segment_a_id="fund", code_a=code_a, segment_b_id="object",
            code_b=code_b, rules=inactive, default_behavior=default,
        )
        assert decision.used_default
        assert decision.decision == default.to_decision()


class TestOrderingProperties:

    @given(value=numeric_codes, start=numeric_codes, end=numeric_codes)
    @settings(suppress_health_check=SUPPRESSED)
    def test_numeric_range_matches_integers(self, value, start, end):
        assert value_in_range(value, start, end) == (int(start) <= int(value) <= int(end))

    @given(left=st.text(min_size=1, max_size=6), right=st.text(min_size=1, max_size=6))
    @settings(suppress_health_check=SUPPRESSED)
    def test_compare_is_antisymmetric(self, left, right):
        assert compare_code_values(left, right) == -compare_code_values(right, left)

    @given(value=st.text(min_size=1, max_size=6))
    @settings(suppress_health_check=SUPPRESSED)
    def test_range_bounds_inclusive(self, value):
        assert value_in_range(value, value, value)


@st.composite
def graphs(draw):
    size = draw(st.integers(min_value=1, max_value=12))
    ids = [f"n{i}" for i in range(size)]
    return {
        node_id: tuple(draw(st.lists(st.sampled_from(ids), max_size=4, unique=True)))
        for node_id in ids
    }


class TestHierarchyWalkProperties:

    @given(edges=graphs())
    @settings(max_examples=200, suppress_health_check=SUPPRESSED)
    def test_walk_terminates_and_excludes_start(self, edges):
        nodes = tuple(HierarchyNode(n, "h", n, children=c) for n, c in edges.items())
        index = HierarchyIndex([Hierarchy("h", "department", nodes)])
        for start in edges:
            walk = index.walk_descendants(start)
            assert start not in walk.node_ids
            assert walk.node_ids <= set(edges)

    @given(edges=graphs())
    @settings(suppress_health_check=SUPPRESSED)
    def test_acyclic_reachability(self, edges):
        # Keep only forward edges so the graph is a DAG.
        dag = {n: tuple(c for c in children if int(c[1:]) > int(n[1:])) for n, children in edges.items()}
        nodes = tuple(HierarchyNode(n, "h", n, children=c) for n, c in dag.items())
        index = HierarchyIndex([Hierarchy("h", "department", nodes)])

        def reachable(start):
            seen, stack = set(), list(dag[start])
            while stack:
                node = stack.pop()
                if node not in seen:
                    seen.add(node)
                    stack.extend(dag[node])
            return seen

        for start in dag:
            walk = index.walk_descendants(start)
            assert not walk.cycle_detected
            assert walk.node_ids == reachable(start)
