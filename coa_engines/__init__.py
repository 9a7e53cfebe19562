"""
Module: coa_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    combination rule engines.  This is the canonical import surface for
    higher layers (coa_services, scripts).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import coa_kernel.domain (and sibling engine modules).
    MUST NOT import coa_services, coa_config or coa_kernel.db.

Invariants enforced:
    - Purity: engines never read the clock.  The evaluation date is always
      an explicit parameter.
    - Determinism: identical inputs always produce identical outputs.
    - Totality: evaluation and projection never raise for well-typed
      inputs; defects surface as ConfigurationWarning records.

Audit relevance:
    Evaluation and projection are traced via ``@traced_engine`` (see
    ``coa_engines.tracer``), emitting COA_ENGINE_TRACE log records with the
    engine name, version, input fingerprint and duration.

Usage:
    from coa_engines import evaluate_combination, project_effective_entries
    from coa_engines.account_coding import validate_account_coding
"""

from coa_kernel.logging_config import get_logger

logger = get_logger("engines")

from coa_engines.account_coding import (
    CodingIssue,
    CodingIssueKind,
    CodingValidation,
    PairDecision,
    compose_account_string,
    validate_account_coding,
)
from coa_engines.criterion import (
    CriterionMatch,
    MatchOutcome,
    match_criterion,
    matches,
)
from coa_engines.evaluator import applicable_rules, evaluate
from coa_engines.explainer import (
    ANY_VALID_CODE,
    CombinationExplanation,
    ValidCombinationRow,
    classify_entry,
    evaluate_combination,
    explain_decision,
    list_valid_combinations,
    project_effective_entries,
)
from coa_engines.temporal import CodeStatus, code_status, is_code_valid_on
from coa_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # account_coding
    "CodingIssue",
    "CodingIssueKind",
    "CodingValidation",
    "PairDecision",
    "compose_account_string",
    "validate_account_coding",
    # criterion
    "CriterionMatch",
    "MatchOutcome",
    "match_criterion",
    "matches",
    # evaluator
    "applicable_rules",
    "evaluate",
    # explainer
    "ANY_VALID_CODE",
    "CombinationExplanation",
    "ValidCombinationRow",
    "classify_entry",
    "evaluate_combination",
    "explain_decision",
    "list_valid_combinations",
    "project_effective_entries",
    # temporal
    "CodeStatus",
    "code_status",
    "is_code_valid_on",
    # tracer
    "compute_input_fingerprint",
    "traced_engine",
]

logger.debug("engines_package_loaded", extra={"export_count": len(__all__)})
