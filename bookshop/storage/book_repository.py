"""
Book Repository

Relational access for the catalog:
- Books, with their author, category and creator
- Reference tables (authors, categories, tags) resolved by unique name
- The book <-> tag join table
- Filtered, sorted, paginated listings

Design Decisions:
1. Reference rows are "get or create" by exact trimmed name. The insert is
   an ``ON CONFLICT DO NOTHING`` followed by a re-read, so two requests
   racing on the same new name converge on one row.
2. Counts reuse the exact join and predicate of the page query, keeping
   ``total_pages`` consistent with what a page returns.
3. Tags for a page are fetched in one batched query; their order is not
   significant.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Type, Union

from loguru import logger
from sqlalchemy import delete, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Author, Book, Category, Tag, book_tags, utcnow

ReferenceModel = Type[Union[Author, Category, Tag]]

# Dialects with a native "insert, ignore duplicates" statement
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class BookFilters:
    """Listing filters, already validated by the API layer."""

    page: int = 1
    limit: int = 10
    title: str = ""
    category: str = ""
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    sort_order: str = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class BookRecord:
    """Book with its reference names resolved."""

    id: int
    title: str
    description: str
    price: Decimal
    thumbnail: Optional[str]
    author: Optional[str]
    category: Optional[str]
    creator_id: int
    tags: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(
        cls,
        model: Book,
        author: Optional[str],
        category: Optional[str],
        tags: list[str],
    ) -> "BookRecord":
        return cls(
            id=model.id,
            title=model.title,
            description=model.description,
            price=model.price,
            thumbnail=model.thumbnail,
            author=author,
            category=category,
            creator_id=model.creator_id,
            tags=tags,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


@dataclass
class BookPage:
    """One page of a listing plus the size of the whole result."""

    items: list[BookRecord]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def normalize_tag_names(names: Optional[list[str]]) -> list[str]:
    """Trim, drop empties and collapse repeats, keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in names or []:
        trimmed = name.strip()
        if trimmed:
            seen.setdefault(trimmed, None)
    return list(seen)


class BookRepository:
    """
    Catalog queries bound to one ``AsyncSession``.

    The repository flushes but never commits; the calling service owns the
    unit of work.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Reference entities
    # ------------------------------------------------------------------

    async def _find_by_name(self, model: ReferenceModel, name: str):
        stmt = select(model).where(model.name == name).limit(1)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_or_create(self, model: ReferenceModel, name: str):
        """
        Resolve a reference entity by exact trimmed name, creating it on
        first use.

        Args:
            model: Author, Category or Tag
            name: Raw name; surrounding whitespace is ignored

        Returns:
            The existing or newly inserted row
        """
        name = name.strip()
        entity = await self._find_by_name(model, name)
        if entity is not None:
            return entity

        dialect = self.session.get_bind().dialect.name
        dialect_insert = _UPSERT_INSERTS.get(dialect)
        if dialect_insert is not None:
            stmt = (
                dialect_insert(model)
                .values(name=name)
                .on_conflict_do_nothing(index_elements=["name"])
            )
            await self.session.execute(stmt)
        else:
            try:
                async with self.session.begin_nested():
                    self.session.add(model(name=name))
            except IntegrityError:
                logger.debug(f"{model.__tablename__}: '{name}' created concurrently, re-reading")

        entity = await self._find_by_name(model, name)
        if entity is None:
            raise RuntimeError(f"{model.__tablename__}: '{name}' vanished after insert")
        return entity

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    async def add_book(self, **values) -> Book:
        """Insert and flush. Raises IntegrityError on a duplicate title."""
        book = Book(**values)
        self.session.add(book)
        await self.session.flush()
        return book

    async def get_owned(self, book_id: int, owner_id: int) -> Optional[Book]:
        stmt = (
            select(Book)
            .where(Book.id == book_id, Book.creator_id == owner_id)
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def apply_changes(self, book: Book, **changes) -> Book:
        """Set the given columns, bump ``updated_at`` and flush."""
        for key, value in changes.items():
            setattr(book, key, value)
        book.updated_at = utcnow()
        await self.session.flush()
        return book

    async def delete_book(self, book_id: int) -> None:
        # Join rows first; the book row is referenced by them.
        await self.clear_tags(book_id)
        await self.session.execute(delete(Book).where(Book.id == book_id))
        await self.session.flush()

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    async def attach_tags(self, book_id: int, names: Optional[list[str]]) -> list[str]:
        """
        Link tags to a book, creating missing ones.

        Returns:
            Names actually linked (trimmed, de-duplicated)
        """
        tag_names = normalize_tag_names(names)
        if not tag_names:
            return []

        tags = [await self.get_or_create(Tag, name) for name in tag_names]
        await self.session.execute(
            insert(book_tags),
            [{"book_id": book_id, "tag_id": tag.id} for tag in tags],
        )
        return [tag.name for tag in tags]

    async def clear_tags(self, book_id: int) -> None:
        await self.session.execute(delete(book_tags).where(book_tags.c.book_id == book_id))

    async def replace_tags(self, book_id: int, names: list[str]) -> list[str]:
        await self.clear_tags(book_id)
        return await self.attach_tags(book_id, names)

    async def tag_names_for(self, book_ids: list[int]) -> dict[int, list[str]]:
        """Map each book id to its tag names."""
        names: dict[int, list[str]] = {book_id: [] for book_id in book_ids}
        if not book_ids:
            return names

        stmt = (
            select(book_tags.c.book_id, Tag.name)
            .select_from(book_tags)
            .join(Tag, Tag.id == book_tags.c.tag_id)
            .where(book_tags.c.book_id.in_(book_ids))
        )
        for book_id, tag_name in (await self.session.execute(stmt)).all():
            names[book_id].append(tag_name)
        return names

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _detail_query(self):
        return (
            select(
                Book,
                Author.name.label("author_name"),
                Category.name.label("category_name"),
            )
            .join(Author, Book.author_id == Author.id)
            .join(Category, Book.category_id == Category.id)
        )

    async def get_detail(self, book_id: int) -> Optional[BookRecord]:
        """Book with author, category and tag names, or None."""
        stmt = self._detail_query().where(Book.id == book_id).limit(1)
        row = (await self.session.execute(stmt)).first()
        if row is None:
            return None

        book, author_name, category_name = row
        tags = await self.tag_names_for([book.id])
        return BookRecord.from_model(book, author_name, category_name, tags[book.id])

    def _conditions(self, filters: BookFilters, owner_id: Optional[int]) -> list:
        conditions = []
        if owner_id is not None:
            conditions.append(Book.creator_id == owner_id)

        title = filters.title.strip()
        if title:
            conditions.append(Book.title.icontains(title, autoescape=True))

        category = filters.category.strip()
        if category:
            conditions.append(Category.name.icontains(category, autoescape=True))

        if filters.min_price is not None:
            conditions.append(Book.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Book.price <= filters.max_price)
        return conditions

    async def list_books(
        self,
        filters: BookFilters,
        owner_id: Optional[int] = None,
    ) -> BookPage:
        """
        List books with filtering, title sorting and pagination.

        Args:
            filters: Title/category/price filters, page and sort order
            owner_id: Restrict to books created by this account

        Returns:
            BookPage with the requested slice and the filtered total
        """
        conditions = self._conditions(filters, owner_id)

        count_stmt = (
            select(func.count(Book.id))
            .select_from(Book)
            .join(Category, Book.category_id == Category.id)
            .where(*conditions)
        )
        total = (await self.session.execute(count_stmt)).scalar_one()

        order = Book.title.desc() if filters.sort_order == "desc" else Book.title.asc()
        page_stmt = (
            self._detail_query()
            .where(*conditions)
            .order_by(order, Book.id.asc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        rows = (await self.session.execute(page_stmt)).all()

        tags = await self.tag_names_for([row[0].id for row in rows])
        items = [
            BookRecord.from_model(book, author_name, category_name, tags[book.id])
            for book, author_name, category_name in rows
        ]

        return BookPage(items=items, page=filters.page, limit=filters.limit, total=total)

    async def count_rows(self, model) -> int:
        """Row count of a table, for diagnostics and tests."""
        return (await self.session.execute(select(func.count()).select_from(model))).scalar_one()
