"""
Account management for Bookshop.
"""

from bookshop.accounts.service import ProfileService, UserService

__all__ = [
    "ProfileService",
    "UserService",
]
