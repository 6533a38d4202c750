"""
Profile Routes

The signed-in account's own profile and password.
"""

from fastapi import APIRouter, Depends

from bookshop.accounts.service import ProfileService
from bookshop.api.dependencies import get_current_account_id, get_profile_service
from bookshop.api.schemas import (
    AccountResponse,
    ChangePasswordRequest,
    DataResponse,
    ErrorResponse,
    MessageResponse,
    UpdateProfileRequest,
)
from bookshop.errors import NotFoundError

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get(
    "",
    response_model=DataResponse[AccountResponse],
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
async def get_profile(
    account_id: int = Depends(get_current_account_id),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """Current account."""
    profile = await profile_service.get_profile(account_id)
    if profile is None:
        raise NotFoundError("User")
    return DataResponse[AccountResponse](data=AccountResponse.model_validate(profile))


@router.put(
    "",
    response_model=DataResponse[AccountResponse],
    responses={
        404: {"model": ErrorResponse, "description": "User not found"},
        409: {"model": ErrorResponse, "description": "Email or username already exists"},
    },
)
async def update_profile(
    request: UpdateProfileRequest,
    account_id: int = Depends(get_current_account_id),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """Change username and/or email."""
    profile = await profile_service.update_profile(
        account_id,
        username=request.username,
        email=request.email,
    )
    if profile is None:
        raise NotFoundError("User")
    return DataResponse[AccountResponse](data=AccountResponse.model_validate(profile))


@router.patch(
    "/change-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Current password is incorrect"}},
)
async def change_password(
    request: ChangePasswordRequest,
    account_id: int = Depends(get_current_account_id),
    profile_service: ProfileService = Depends(get_profile_service),
):
    message = await profile_service.change_password(
        account_id,
        request.current_password,
        request.new_password,
        request.confirm_password,
    )
    return MessageResponse(message=message)
