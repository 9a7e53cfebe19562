"""
Tests for CombinationService over the municipal configuration.

Covers:
- Evaluation scenarios across fund/object and fund/department rules
- Hierarchy set resolution by evaluation date
- Decision memoization and invalidation on publish / default change
- Explanation, projection, listing and coding validation
- CatalogError for catalog-dependent operations without a catalog
"""

from datetime import date, datetime

import pytest

from coa_kernel.domain.combination_rules import (
    CodeCriterion,
    CombinationRule,
    Decision,
    DefaultBehavior,
    EffectiveStatus,
    EntryBehavior,
    MappingEntry,
    RuleStatus,
    WarningCode,
)
from coa_engines.evaluator import evaluate
from coa_kernel.exceptions import CatalogError
from coa_services import CombinationService, RuleSetRegistry, combination_service

MID_2024 = date(2024, 6, 30)


class TestMunicipalScenarios:

    @pytest.mark.parametrize(
        "segment_b,code_a,code_b,decision,entry_id",
        [
            ("object", "101", "6100", Decision.ALLOWED, "map-1-1"),
            ("object", "101", "6200", Decision.DENIED, None),
            ("object", "102", "6200", Decision.ALLOWED, "map-1-2"),
            ("department", "102", "PD", Decision.DENIED, "map-3-1"),
            ("department", "101", "FIN-ACC", Decision.ALLOWED, "map-3-2"),
            ("department", "101", "PD", Decision.DENIED, None),
        ],
    )
    def test_mid_2024(self, municipal_service, segment_b, code_a, code_b, decision, entry_id):
        result = municipal_service.evaluate(MID_2024, "fund", code_a, segment_b, code_b)
        assert result.decision == decision
        assert result.matched_entry_id == entry_id

    def test_reporting_hierarchy_out_of_force(self, municipal_service):
        result = municipal_service.evaluate(date(2025, 3, 1), "fund", "101", "department", "FIN-ACC")
        assert result.decision == Decision.DENIED
        assert result.used_default
        assert WarningCode.MALFORMED_CRITERION in {w.code for w in result.warnings}

    def test_reversed_pair_uses_default(self, municipal_service):
        assert municipal_service.evaluate(MID_2024, "object", "6100", "fund", "101").used_default

    def test_unknown_code_denied(self, municipal_service):
        assert municipal_service.evaluate(MID_2024, "fund", "999", "object", "6100").used_default

    def test_hierarchy_on(self, municipal_service):
        assert municipal_service.hierarchy_on(MID_2024).get_node("gasb-fund-root-gov") is not None
        assert municipal_service.hierarchy_on(date(2025, 3, 1)).get_node("gasb-fund-root-gov") is None


class TestMemoization:

    def test_repeat_is_cache_hit(self, municipal_service):
        first = municipal_service.evaluate(MID_2024, "fund", "101", "object", "6100")
        second = municipal_service.evaluate(MID_2024, "fund", "101", "object", "6100")
        assert first is second
        info = municipal_service.cache_info()
        assert (info.hits, info.misses, info.size) == (1, 1, 1)

    def test_publish_invalidates(self, municipal_service):
        before = municipal_service.evaluate(MID_2024, "fund", "101", "object", "6200")
        assert before.decision == Decision.DENIED

        registry = municipal_service.registry
        rule = CombinationRule(
            "cr-new", "Utilities", RuleStatus.ACTIVE, "fund", "object",
            (MappingEntry("map-n", EntryBehavior.INCLUDE, CodeCriterion("101"), CodeCriterion("6200")),),
        )
        registry.add_rule(rule)

        after = municipal_service.evaluate(MID_2024, "fund", "101", "object", "6200")
        assert after.decision == Decision.ALLOWED
        assert after.matched_rule_id == "cr-new"

    def test_default_change_clears_cache(self, municipal_service, captured_logs):
        municipal_service.evaluate(MID_2024, "fund", "101", "object", "6200")
        municipal_service.set_default_behavior(DefaultBehavior.ALLOWED)
        assert municipal_service.cache_info().size == 0
        assert municipal_service.evaluate(MID_2024, "fund", "101", "object", "6200").is_allowed
        assert any(r["message"] == "default_behavior_changed" for r in captured_logs())

    def test_default_change_during_evaluation_not_served_later(self, municipal_service, monkeypatch):
        calls = []

        def evaluate_then_change_default(**kwargs):
            if not calls:
                municipal_service.set_default_behavior(DefaultBehavior.ALLOWED)
            calls.append(kwargs["default_behavior"])
            return evaluate(**kwargs)

        monkeypatch.setattr(combination_service, "evaluate", evaluate_then_change_default)

        first = municipal_service.evaluate(MID_2024, "fund", "101", "object", "6200")
        after = municipal_service.evaluate(MID_2024, "fund", "101", "object", "6200")

        assert first.decision == Decision.DENIED
        assert municipal_service.default_behavior == DefaultBehavior.ALLOWED
        assert after.decision == Decision.ALLOWED
        assert calls == [DefaultBehavior.NOT_ALLOWED, DefaultBehavior.ALLOWED]

    def test_reference_swap_during_evaluation_not_served_later(
        self, municipal_service, municipal_config, monkeypatch
    ):
        calls = []

        def evaluate_then_swap(**kwargs):
            if not calls:
                municipal_service.replace_reference_data(
                    None, hierarchy_for=municipal_config.hierarchy_index
                )
            calls.append(kwargs["catalog"])
            return evaluate(**kwargs)

        monkeypatch.setattr(combination_service, "evaluate", evaluate_then_swap)

        first = municipal_service.evaluate(MID_2024, "fund", "101", "object", "6100")
        after = municipal_service.evaluate(MID_2024, "fund", "101", "object", "6100")

        assert after is not first
        assert calls == [municipal_config.catalog, None]
        assert municipal_service.cache_info().hits == 0

    def test_time_of_day_shares_entry(self, municipal_service):
        municipal_service.evaluate(datetime(2024, 6, 30, 8, 0), "fund", "101", "object", "6100")
        municipal_service.evaluate(datetime(2024, 6, 30, 17, 0), "fund", "101", "object", "6100")
        assert municipal_service.cache_info().size == 1

    def test_bounded_lru(self, municipal_config):
        service = CombinationService.from_configuration(municipal_config, cache_size=2)
        for code in ("6100", "6200", "5100"):
            service.evaluate(MID_2024, "fund", "101", "object", code)
        assert service.cache_info().size == 2

    def test_cache_disabled(self, municipal_config):
        service = CombinationService.from_configuration(municipal_config, cache_size=0)
        service.evaluate(MID_2024, "fund", "101", "object", "6100")
        service.evaluate(MID_2024, "fund", "101", "object", "6100")
        assert service.cache_info().size == 0
        assert service.cache_info().hits == 0


class TestReporting:

    def test_explain(self, municipal_service):
        explanation = municipal_service.explain(MID_2024, "fund", "102", "department", "PD")
        assert explanation.matched_rule_name == "Fund/Department Reporting Structure"
        assert explanation.matched_behavior == EntryBehavior.EXCLUDE
        assert explanation.decision.matched_entry_id == "map-3-1"

    def test_explain_reuses_memoized_decision(self, municipal_service):
        decision = municipal_service.evaluate(MID_2024, "fund", "101", "object", "6100")
        assert municipal_service.explain(MID_2024, "fund", "101", "object", "6100").decision is decision

    def test_project_2024(self, municipal_service):
        rows = {r.entry_id: r.status for r in municipal_service.project(MID_2024)}
        assert rows == {
            "map-1-1": EffectiveStatus.UNKNOWN,
            "map-1-2": EffectiveStatus.EFFECTIVE,
            "map-3-2": EffectiveStatus.UNKNOWN,
        }

    def test_project_before_codes_exist(self, municipal_service):
        rows = {r.entry_id: r.status for r in municipal_service.project(date(2022, 12, 31))}
        assert rows["map-1-2"] == EffectiveStatus.BOTH_CODES_INACTIVE

    def test_list_valid_combinations(self, municipal_service):
        rows = municipal_service.list_valid_combinations(MID_2024)
        assert [r.entry.entry_id for r in rows] == ["map-1-1", "map-1-2", "map-3-2"]
        assert rows[1].cells["project"] == "Any Valid Code"

    def test_validate_coding(self, municipal_service):
        result = municipal_service.validate_coding(
            MID_2024, {"fund": "101", "object": "6100", "department": "FIN-ACC"}
        )
        assert result.is_valid, result.issues
        assert result.account_string.startswith("101-6100-FIN-ACC")
        assert {(d.segment_a_id, d.segment_b_id) for d in result.decisions} == {
            ("fund", "object"), ("fund", "department"),
        }

    def test_validate_coding_denied_pair(self, municipal_service):
        result = municipal_service.validate_coding(
            MID_2024, {"fund": "102", "object": "6200", "department": "PD"}
        )
        assert not result.is_valid
        assert [d.segment_b_id for d in result.denied] == ["department"]


class TestWithoutCatalog:

    def test_evaluate_works(self):
        service = CombinationService(RuleSetRegistry())
        assert service.evaluate(MID_2024, "fund", "101", "object", "6100").decision == Decision.DENIED

    @pytest.mark.parametrize("operation", ["project", "list_valid_combinations"])
    def test_catalog_required(self, operation):
        service = CombinationService(RuleSetRegistry())
        with pytest.raises(CatalogError):
            getattr(service, operation)(MID_2024)

    def test_validate_coding_requires_catalog(self):
        with pytest.raises(CatalogError):
            CombinationService(RuleSetRegistry()).validate_coding(MID_2024, {"fund": "101"})
