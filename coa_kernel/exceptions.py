"""
Typed Exception Hierarchy for the COA Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (authoring screens, configuration tooling, API layers)
must distinguish "this rule is malformed" from "that segment does not exist"
without parsing message strings.  Every exception therefore:

  1. Has its own class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (not just a message string)

Evaluation is NOT an error path.  ``evaluate`` and ``project_effective_entries``
never raise for well-typed inputs: unknown codes, unresolvable hierarchy nodes
and hierarchy cycles are reported as non-matches and ConfigurationWarnings.
The exceptions below are raised at construction, load and publish time.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CoaKernelError (base)
    |
    +-- DomainValidationError
    |   +-- InvalidValidityWindowError
    |   +-- InvalidSegmentError
    |   +-- InvalidRuleError
    |
    +-- CriterionError
    |   +-- InvalidCriterionError
    |
    +-- CatalogError
    |   +-- SegmentNotFoundError
    |   +-- SegmentCodeNotFoundError
    |
    +-- RuleSetError
    |   +-- RuleNotFoundError
    |   +-- DuplicateRuleError
    |   +-- StaleRuleSetError
    |
    +-- ConfigurationError
        +-- ConfigurationValidationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Domain          | INVALID_VALIDITY_WINDOW     | valid_from is after valid_to
                | INVALID_SEGMENT             | Bad separator / pattern / length
                | INVALID_RULE                | Rule pairs a segment with itself
----------------|-----------------------------|-----------------------------------------
Criterion       | INVALID_CRITERION           | Missing field or reversed range
----------------|-----------------------------|-----------------------------------------
Catalog         | SEGMENT_NOT_FOUND           | Segment id not in the catalog
                | SEGMENT_CODE_NOT_FOUND      | Code value not in the segment
----------------|-----------------------------|-----------------------------------------
Rule set        | RULE_NOT_FOUND              | Rule id not in the published set
                | DUPLICATE_RULE              | Rule id already published
                | STALE_RULE_SET              | Publish against an old version
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_INVALID       | YAML set failed validation
"""


class CoaKernelError(Exception):
    """
    Base exception for all COA kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COA_KERNEL_ERROR"


# Domain construction exceptions


class DomainValidationError(CoaKernelError):
    """Base exception for value objects rejected at construction time."""

    code: str = "DOMAIN_VALIDATION_ERROR"


class InvalidValidityWindowError(DomainValidationError):
    """A validity window ends before it starts."""

    code: str = "INVALID_VALIDITY_WINDOW"

    def __init__(self, entity: str, valid_from, valid_to):
        self.entity = entity
        self.valid_from = valid_from
        self.valid_to = valid_to
        super().__init__(
            f"Invalid validity window for {entity}: "
            f"valid_from {valid_from} is after valid_to {valid_to}"
        )


class InvalidSegmentError(DomainValidationError):
    """Segment definition is structurally invalid."""

    code: str = "INVALID_SEGMENT"

    def __init__(self, segment_id: str, reason: str):
        self.segment_id = segment_id
        self.reason = reason
        super().__init__(f"Invalid segment {segment_id!r}: {reason}")


class InvalidRuleError(DomainValidationError):
    """Combination rule definition is structurally invalid."""

    code: str = "INVALID_RULE"

    def __init__(self, rule_id: str, reason: str):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"Invalid combination rule {rule_id!r}: {reason}")


# Criterion exceptions


class CriterionError(CoaKernelError):
    """Base exception for criterion errors."""

    code: str = "CRITERION_ERROR"


class InvalidCriterionError(CriterionError):
    """
    Criterion is missing a field required by its type, or carries a
    reversed range.
    """

    code: str = "INVALID_CRITERION"

    def __init__(self, criterion_type: str, reason: str):
        self.criterion_type = criterion_type
        self.reason = reason
        super().__init__(f"Invalid {criterion_type} criterion: {reason}")


# Catalog exceptions


class CatalogError(CoaKernelError):
    """Base exception for segment catalog lookups."""

    code: str = "CATALOG_ERROR"


class SegmentNotFoundError(CatalogError):
    """Segment id is not present in the catalog."""

    code: str = "SEGMENT_NOT_FOUND"

    def __init__(self, segment_id: str):
        self.segment_id = segment_id
        super().__init__(f"Segment not found: {segment_id}")


class SegmentCodeNotFoundError(CatalogError):
    """Code value is not present in the segment's code list."""

    code: str = "SEGMENT_CODE_NOT_FOUND"

    def __init__(self, segment_id: str, code_value: str):
        self.segment_id = segment_id
        self.code_value = code_value
        super().__init__(f"Segment code not found: {segment_id}:{code_value}")


# Rule set exceptions


class RuleSetError(CoaKernelError):
    """Base exception for rule set publication errors."""

    code: str = "RULE_SET_ERROR"


class RuleNotFoundError(RuleSetError):
    """Rule id is not present in the published rule set."""

    code: str = "RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Combination rule not found: {rule_id}")


class DuplicateRuleError(RuleSetError):
    """Rule id is already present in the published rule set."""

    code: str = "DUPLICATE_RULE"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Combination rule already exists: {rule_id}")


class StaleRuleSetError(RuleSetError):
    """
    A publish was attempted against a rule set version that is no longer
    current.  The writer must re-read and re-apply its edit.
    """

    code: str = "STALE_RULE_SET"

    def __init__(self, expected_version: int, current_version: int):
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Rule set version conflict: expected {expected_version}, "
            f"current is {current_version}"
        )


# Configuration exceptions


class ConfigurationError(CoaKernelError):
    """Base exception for configuration set errors."""

    code: str = "CONFIGURATION_ERROR"


class ConfigurationValidationError(ConfigurationError):
    """Configuration set failed validation and must not be used."""

    code: str = "CONFIGURATION_INVALID"

    def __init__(self, config_id: str, errors: list[str]):
        self.config_id = config_id
        self.errors = list(errors)
        super().__init__(
            f"Configuration {config_id!r} failed validation:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )
