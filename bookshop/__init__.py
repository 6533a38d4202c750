"""
Bookshop

Bookstore backend: accounts and sessions, profiles, and a tagged,
searchable book catalog.
"""

__version__ = "1.0.0"
