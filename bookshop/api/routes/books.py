"""
Public Book Routes

Catalog discovery: filtered, paginated listing of every account's books
and single book details.
"""

from decimal import Decimal
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Path, Query

from bookshop.api.dependencies import get_catalog_service
from bookshop.api.schemas import (
    BookListQuery,
    BookResponse,
    DataResponse,
    ErrorResponse,
    PageResponse,
    Pagination,
    SortOrder,
)
from bookshop.catalog.service import CatalogService
from bookshop.errors import NotFoundError
from bookshop.storage.book_repository import BookFilters, BookPage

router = APIRouter(prefix="/books", tags=["books"])


# =============================================================================
# Dependencies
# =============================================================================

def book_filters(default_sort: SortOrder) -> Callable[..., BookFilters]:
    """
    Build a dependency that reads listing filters from the query string.

    Args:
        default_sort: Title order when ``sort_order`` is not given.
    """

    def dependency(
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(10, ge=1, le=100, description="Items per page"),
        title: str = Query("", description="Case-insensitive title substring"),
        category: str = Query("", description="Case-insensitive category substring"),
        min_price: Optional[Decimal] = Query(None, ge=0),
        max_price: Optional[Decimal] = Query(None, ge=0),
        sort_order: SortOrder = Query(default_sort, description="Title order"),
    ) -> BookFilters:
        query = BookListQuery(
            page=page,
            limit=limit,
            title=title,
            category=category,
            min_price=min_price,
            max_price=max_price,
            sort_order=sort_order,
        )
        return BookFilters(
            page=query.page,
            limit=query.limit,
            title=query.title,
            category=query.category,
            min_price=query.min_price,
            max_price=query.max_price,
            sort_order=query.sort_order.value,
        )

    return dependency


def page_response(page: BookPage) -> PageResponse[BookResponse]:
    """Wrap a page of books in the list envelope."""
    return PageResponse[BookResponse](
        data=[BookResponse.model_validate(book) for book in page.items],
        pagination=Pagination.model_validate(page),
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.get(
    "",
    response_model=PageResponse[BookResponse],
    responses={400: {"model": ErrorResponse, "description": "Invalid filters"}},
)
async def list_books(
    filters: BookFilters = Depends(book_filters(SortOrder.DESC)),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """List all books with filtering and pagination."""
    return page_response(await catalog.list_public_books(filters))


@router.get(
    "/{book_id}",
    response_model=DataResponse[BookResponse],
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
)
async def get_book(
    book_id: int = Path(..., ge=1),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Get a book by ID with author, category and tags."""
    book = await catalog.get_book_details(book_id)
    if book is None:
        raise NotFoundError("Book")
    return DataResponse[BookResponse](data=BookResponse.model_validate(book))
