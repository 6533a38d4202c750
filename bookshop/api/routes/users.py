"""
User Management Routes

Plain create/read/update/delete of accounts by id.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import EmailStr

from bookshop.accounts.service import UserService
from bookshop.api.dependencies import get_user_service
from bookshop.api.schemas import (
    AccountResponse,
    DataResponse,
    ErrorResponse,
    UserCreateRequest,
    UserUpdateRequest,
)
from bookshop.errors import NotFoundError

router = APIRouter(prefix="/users", tags=["users"])

_NOT_FOUND = {"model": ErrorResponse, "description": "User not found"}
_CONFLICT = {"model": ErrorResponse, "description": "Email or username already exists"}


@router.post(
    "",
    response_model=DataResponse[AccountResponse],
    status_code=status.HTTP_201_CREATED,
    responses={409: _CONFLICT},
)
async def create_user(
    request: UserCreateRequest,
    users: UserService = Depends(get_user_service),
):
    user = await users.create_user(request.username, request.email, request.password)
    return DataResponse[AccountResponse](data=AccountResponse.model_validate(user))


@router.get("", response_model=DataResponse[list[AccountResponse]])
async def list_users(
    email: Optional[EmailStr] = Query(None, description="Only the account with this email"),
    users: UserService = Depends(get_user_service),
):
    if email is not None:
        user = await users.get_user_by_email(email)
        records = [user] if user is not None else []
    else:
        records = await users.list_users()
    return DataResponse[list[AccountResponse]](
        data=[AccountResponse.model_validate(user) for user in records]
    )


@router.get(
    "/{user_id}",
    response_model=DataResponse[AccountResponse],
    responses={404: _NOT_FOUND},
)
async def get_user(
    user_id: int = Path(..., ge=1),
    users: UserService = Depends(get_user_service),
):
    user = await users.get_user(user_id)
    if user is None:
        raise NotFoundError("User")
    return DataResponse[AccountResponse](data=AccountResponse.model_validate(user))


@router.put(
    "/{user_id}",
    response_model=DataResponse[AccountResponse],
    responses={404: _NOT_FOUND, 409: _CONFLICT},
)
async def update_user(
    request: UserUpdateRequest,
    user_id: int = Path(..., ge=1),
    users: UserService = Depends(get_user_service),
):
    user = await users.update_user(
        user_id,
        username=request.username,
        email=request.email,
        password=request.password,
    )
    if user is None:
        raise NotFoundError("User")
    return DataResponse[AccountResponse](data=AccountResponse.model_validate(user))


@router.delete(
    "/{user_id}",
    response_model=DataResponse[dict],
    responses={404: _NOT_FOUND, 409: {"model": ErrorResponse, "description": "User still owns books"}},
)
async def delete_user(
    user_id: int = Path(..., ge=1),
    users: UserService = Depends(get_user_service),
):
    """Delete an account. Accounts that still own books are refused."""
    deleted_id = await users.delete_user(user_id)
    if deleted_id is None:
        raise NotFoundError("User")
    return DataResponse[dict](data={"id": deleted_id})
