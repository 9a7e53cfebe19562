"""Read-only selectors over the stored chart of accounts."""

from coa_kernel.selectors.base import BaseSelector
from coa_kernel.selectors.catalog_selector import CatalogSelector

__all__ = ["BaseSelector", "CatalogSelector"]
