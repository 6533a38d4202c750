"""
API Routes for Bookshop

Route modules:
- auth: Registration, login, logout and password reset
- profile: The signed-in account
- my_books: Owner-scoped book management
- books: Public catalog
- users: Generic user management
"""

from bookshop.api.routes.auth import router as auth_router
from bookshop.api.routes.profile import router as profile_router
from bookshop.api.routes.my_books import router as my_books_router
from bookshop.api.routes.books import router as books_router
from bookshop.api.routes.users import router as users_router

__all__ = [
    "auth_router",
    "profile_router",
    "my_books_router",
    "books_router",
    "users_router",
]
