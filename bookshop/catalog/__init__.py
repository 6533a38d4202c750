"""
Book catalog for Bookshop.
"""

from bookshop.catalog.service import CatalogService, to_price

__all__ = [
    "CatalogService",
    "to_price",
]
