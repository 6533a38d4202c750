"""
Authentication for Bookshop.

Accounts, session tokens and password reset codes.
"""

from bookshop.auth.service import (
    AuthService,
    AuthResult,
    FORGOT_PASSWORD_MESSAGE,
)

__all__ = [
    "AuthService",
    "AuthResult",
    "FORGOT_PASSWORD_MESSAGE",
]
