"""
Catalog Service

Book management scoped to the owning account, plus public discovery.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookshop.errors import DuplicateTitleError, NotFoundError, NotFoundOrForbiddenError
from bookshop.storage.book_repository import (
    BookFilters,
    BookPage,
    BookRecord,
    BookRepository,
)
from bookshop.storage.models import Author, Category
from bookshop.storage.user_repository import UserRepository

CENTS = Decimal("0.01")

# Plain columns an owner may change directly
_EDITABLE_COLUMNS = ("title", "description", "price", "thumbnail")


def to_price(value: Any) -> Decimal:
    """Fixed two-decimal price."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


class CatalogService:
    """Service for creating, editing and finding books."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.books = BookRepository(session)
        self.users = UserRepository(session)

    async def create_book(
        self,
        owner_id: int,
        title: str,
        description: str,
        price: Any,
        category: str,
        author: str,
        thumbnail: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> BookRecord:
        """
        Create a book owned by ``owner_id``.

        Author, category and tags are resolved by name and created when
        new. On a title clash the whole unit of work is rolled back, so no
        freshly created author/category/tag rows are left behind.

        Raises:
            NotFoundError: Owner account does not exist
            DuplicateTitleError: Title already used by any book
        """
        if await self.users.get_model(owner_id) is None:
            raise NotFoundError("User")

        category_row = await self.books.get_or_create(Category, category)
        author_row = await self.books.get_or_create(Author, author)

        try:
            book = await self.books.add_book(
                title=title,
                description=description,
                price=to_price(price),
                thumbnail=thumbnail,
                author_id=author_row.id,
                category_id=category_row.id,
                creator_id=owner_id,
            )
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateTitleError()

        tag_names = await self.books.attach_tags(book.id, tags)
        await self.session.commit()

        logger.info(f"Account {owner_id} created book {book.id}: '{book.title}'")

        return BookRecord.from_model(book, author_row.name, category_row.name, tag_names)

    async def update_book(
        self,
        owner_id: int,
        book_id: int,
        changes: dict[str, Any],
    ) -> BookRecord:
        """
        Apply a partial update to an owned book.

        Args:
            owner_id: Requesting account
            book_id: Book to update
            changes: Only the supplied fields. ``tags`` absent keeps the
                current tags, ``[]`` clears them, anything else replaces
                the whole set.

        Raises:
            NotFoundOrForbiddenError: Book missing or owned by someone else
            DuplicateTitleError: New title used by another book
        """
        book = await self.books.get_owned(book_id, owner_id)
        if book is None:
            raise NotFoundOrForbiddenError("edit")

        updates: dict[str, Any] = {}

        if changes.get("category") is not None:
            updates["category_id"] = (await self.books.get_or_create(Category, changes["category"])).id
        if changes.get("author") is not None:
            updates["author_id"] = (await self.books.get_or_create(Author, changes["author"])).id

        for column in _EDITABLE_COLUMNS:
            if column not in changes:
                continue
            value = changes[column]
            if value is None and column != "thumbnail":
                # Only the thumbnail is nullable
                continue
            updates[column] = to_price(value) if column == "price" else value

        if updates or "tags" in changes:
            try:
                await self.books.apply_changes(book, **updates)
            except IntegrityError:
                await self.session.rollback()
                raise DuplicateTitleError()

        if changes.get("tags") is not None:
            await self.books.replace_tags(book.id, changes["tags"])

        await self.session.commit()
        logger.info(f"Account {owner_id} updated book {book_id}: {sorted(changes)}")

        return await self.books.get_detail(book_id)

    async def delete_book(self, owner_id: int, book_id: int) -> str:
        """
        Delete an owned book and its tag links.

        Raises:
            NotFoundOrForbiddenError: Book missing or owned by someone else
        """
        book = await self.books.get_owned(book_id, owner_id)
        if book is None:
            raise NotFoundOrForbiddenError("delete")

        await self.books.delete_book(book.id)
        await self.session.commit()

        logger.info(f"Account {owner_id} deleted book {book_id}")
        return "Book deleted successfully"

    async def list_public_books(self, filters: BookFilters) -> BookPage:
        """Everyone's books."""
        return await self.books.list_books(filters)

    async def list_owned_books(self, owner_id: int, filters: BookFilters) -> BookPage:
        """Books created by ``owner_id``."""
        return await self.books.list_books(filters, owner_id=owner_id)

    async def get_book_details(self, book_id: int) -> Optional[BookRecord]:
        """Single book, or None when the id does not exist."""
        return await self.books.get_detail(book_id)
