"""
My Books Routes

Books owned by the signed-in account: create, list, update, delete.
"""

from fastapi import APIRouter, Depends, Path, status

from bookshop.api.dependencies import get_catalog_service, get_current_account_id
from bookshop.api.routes.books import book_filters, page_response
from bookshop.api.schemas import (
    BookCreateRequest,
    BookResponse,
    BookUpdateRequest,
    DataResponse,
    ErrorResponse,
    MessageResponse,
    PageResponse,
    SortOrder,
)
from bookshop.catalog.service import CatalogService
from bookshop.storage.book_repository import BookFilters

router = APIRouter(prefix="/my-books", tags=["my-books"])

_NOT_OWNED = {"model": ErrorResponse, "description": "Book not found or not owned by you"}


@router.post(
    "",
    response_model=DataResponse[BookResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid book data"},
        409: {"model": ErrorResponse, "description": "A book with this title already exists"},
    },
)
async def create_book(
    request: BookCreateRequest,
    account_id: int = Depends(get_current_account_id),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """
    Create a book owned by the current account.

    Author, category and tags are matched by exact name and created when new.
    """
    book = await catalog.create_book(
        owner_id=account_id,
        title=request.title,
        description=request.description,
        price=request.price,
        category=request.category,
        author=request.author,
        thumbnail=request.thumbnail,
        tags=request.tags,
    )
    return DataResponse[BookResponse](data=BookResponse.model_validate(book))


@router.get("", response_model=PageResponse[BookResponse])
async def list_my_books(
    filters: BookFilters = Depends(book_filters(SortOrder.ASC)),
    account_id: int = Depends(get_current_account_id),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Own books, same filters as the public listing."""
    return page_response(await catalog.list_owned_books(account_id, filters))


@router.patch(
    "/{book_id}",
    response_model=DataResponse[BookResponse],
    responses={
        404: _NOT_OWNED,
        409: {"model": ErrorResponse, "description": "A book with this title already exists"},
    },
)
async def update_book(
    request: BookUpdateRequest,
    book_id: int = Path(..., ge=1),
    account_id: int = Depends(get_current_account_id),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """
    Partially update an owned book.

    ``tags`` omitted keeps the current tags, ``[]`` clears them, a
    non-empty list replaces them.
    """
    changes = request.model_dump(exclude_unset=True)
    book = await catalog.update_book(account_id, book_id, changes)
    return DataResponse[BookResponse](data=BookResponse.model_validate(book))


@router.delete(
    "/{book_id}",
    response_model=MessageResponse,
    responses={404: _NOT_OWNED},
)
async def delete_book(
    book_id: int = Path(..., ge=1),
    account_id: int = Depends(get_current_account_id),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return MessageResponse(message=await catalog.delete_book(account_id, book_id))
