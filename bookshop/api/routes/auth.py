"""
Authentication Routes

Registration, login, logout and password reset.
"""

from fastapi import APIRouter, Depends, status

from bookshop.api.dependencies import get_auth_service, get_bearer_token
from bookshop.api.schemas import (
    AuthPayload,
    DataResponse,
    ErrorResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
)
from bookshop.auth.service import AuthResult, AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_payload(result: AuthResult) -> DataResponse[AuthPayload]:
    return DataResponse[AuthPayload](data=AuthPayload.model_validate(result))


@router.post(
    "/register",
    response_model=DataResponse[AuthPayload],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid registration data"},
        409: {"model": ErrorResponse, "description": "Username or email already exists"},
    },
)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Create an account and return it with a session token."""
    result = await auth_service.register(request.username, request.email, request.password)
    return _auth_payload(result)


@router.post(
    "/login",
    response_model=DataResponse[AuthPayload],
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
)
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Sign in with a username or an email."""
    result = await auth_service.login(request.username_or_email, request.password)
    return _auth_payload(result)


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse, "description": "No token provided"}},
)
async def logout(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Revoke the presented token. Already revoked tokens are fine."""
    return MessageResponse(message=await auth_service.logout(token))


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """E-mail a password reset code. The answer never reveals whether the account exists."""
    return MessageResponse(message=await auth_service.forgot_password(request.email))


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired OTP"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
)
async def reset_password(
    request: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Set a new password with a reset code."""
    message = await auth_service.reset_password(
        request.email,
        request.otp,
        request.new_password,
        request.confirm_password,
    )
    return MessageResponse(message=message)
