"""
Storage Module for Bookshop

- Relational models (accounts, books, authors, categories, tags)
- Repositories over an async SQLAlchemy session
- Redis-backed session store for tokens and one-time passwords
"""

from bookshop.storage.models import (
    Base,
    User,
    Author,
    Category,
    Tag,
    Book,
    book_tags,
)
from bookshop.storage.user_repository import (
    UserRepository,
    AccountRecord,
)
from bookshop.storage.book_repository import (
    BookRepository,
    BookFilters,
    BookRecord,
    BookPage,
)
from bookshop.storage.session_store import SessionStore

__all__ = [
    # Models
    "Base",
    "User",
    "Author",
    "Category",
    "Tag",
    "Book",
    "book_tags",
    # Repositories
    "UserRepository",
    "AccountRecord",
    "BookRepository",
    "BookFilters",
    "BookRecord",
    "BookPage",
    # Session store
    "SessionStore",
]
