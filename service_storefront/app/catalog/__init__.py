"""
Catalog package: products and categories.
"""

from .service import CatalogService

__all__ = ["CatalogService"]
