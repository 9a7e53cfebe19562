"""
Services -- imperative shell over the combination engines and the store.
"""

from coa_services.catalog_store import CatalogStore
from coa_services.combination_service import CacheInfo, CombinationService
from coa_services.rule_set_registry import RuleSetRegistry

__all__ = [
    "CacheInfo",
    "CatalogStore",
    "CombinationService",
    "RuleSetRegistry",
]
