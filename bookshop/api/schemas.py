"""
API Schemas for Bookshop

Pydantic models for request validation and response serialization:
- Auth models
- Profile and user models
- Book models and listing filters
- Response envelopes

Design Decisions:
1. Strict validation: every input is checked here before a service runs
2. Separate Request/Response: clear distinction between inputs and outputs
3. Envelopes: every body is ``{"success": ..., "data" | "message" | "error"}``
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

T = TypeVar("T")

EMAIL_MAX_LENGTH = 100
# Largest value a NUMERIC(10, 2) column holds
MAX_PRICE = Decimal("99999999.99")


def _email_length(value: str) -> str:
    if len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"Email must be at most {EMAIL_MAX_LENGTH} characters")
    return value


Username = Annotated[str, StringConstraints(min_length=3, max_length=50)]
Password = Annotated[str, StringConstraints(min_length=6, max_length=100)]
Email = Annotated[EmailStr, AfterValidator(_email_length)]
ReferenceName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
TagName = Annotated[str, StringConstraints(min_length=1, max_length=50)]

_url_adapter = TypeAdapter(HttpUrl)
_email_adapter = TypeAdapter(EmailStr)


# =============================================================================
# Enums
# =============================================================================

class SortOrder(str, Enum):
    """Title sort direction."""
    ASC = "asc"
    DESC = "desc"


# =============================================================================
# Auth Schemas
# =============================================================================

class RegisterRequest(BaseModel):
    """Account registration."""

    username: Username
    email: Email
    password: Password

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "alice",
                "email": "alice@example.com",
                "password": "pw123456",
            }
        }
    )


class LoginRequest(BaseModel):
    """Login with a username or an email."""

    username_or_email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("username_or_email")
    @classmethod
    def check_email_or_username(cls, value: str) -> str:
        # Emails are matched in the normalized form registration stores
        try:
            return _email_adapter.validate_python(value)
        except ValidationError:
            pass
        if 3 <= len(value) <= 50:
            return value
        raise ValueError("Must be a valid email or username (3-50 characters)")


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Password reset with a one-time code."""

    email: EmailStr
    otp: str = Field(..., pattern=r"^\d{6}$")
    new_password: Password
    confirm_password: Password

    @model_validator(mode="after")
    def check_passwords_match(self) -> "ResetPasswordRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


# =============================================================================
# Profile / User Schemas
# =============================================================================

class UpdateProfileRequest(BaseModel):
    username: Optional[Username] = None
    email: Optional[Email] = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: Password
    confirm_password: Password

    @model_validator(mode="after")
    def check_passwords_match(self) -> "ChangePasswordRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class UserCreateRequest(BaseModel):
    username: Username
    email: Email
    password: Password


class UserUpdateRequest(BaseModel):
    username: Optional[Username] = None
    email: Optional[Email] = None
    password: Optional[Password] = None


class AccountResponse(BaseModel):
    """Account as returned to clients. Never includes the password hash."""

    id: int
    username: str
    email: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuthPayload(BaseModel):
    user: AccountResponse
    token: str

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Book Schemas
# =============================================================================

def _check_thumbnail(value: str) -> str:
    try:
        _url_adapter.validate_python(value)
    except ValidationError:
        raise ValueError("Thumbnail must be a valid URL")
    return value


ThumbnailUrl = Annotated[str, StringConstraints(max_length=255), AfterValidator(_check_thumbnail)]


class BookCreateRequest(BaseModel):
    """Book creation request."""

    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0, le=MAX_PRICE)
    category: ReferenceName
    author: ReferenceName
    thumbnail: Optional[ThumbnailUrl] = None
    tags: Optional[list[TagName]] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Dune",
                "description": "Desert planet, spice, politics.",
                "price": 19.99,
                "category": "Science Fiction",
                "author": "Frank Herbert",
                "thumbnail": "https://example.com/dune.jpg",
                "tags": ["classic", "space opera"],
            }
        }
    )


class BookUpdateRequest(BaseModel):
    """Book update request (partial). Omitted ``tags`` keep the current set."""

    title: Optional[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]] = None
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, gt=0, le=MAX_PRICE)
    category: Optional[ReferenceName] = None
    author: Optional[ReferenceName] = None
    thumbnail: Optional[ThumbnailUrl] = None
    tags: Optional[list[TagName]] = None


class BookListQuery(BaseModel):
    """Listing filters taken from the query string."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    title: str = ""
    category: str = ""
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    sort_order: SortOrder = SortOrder.DESC

    @field_validator("title", "category")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def check_price_range(self) -> "BookListQuery":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.max_price < self.min_price
        ):
            raise ValueError("Maximum price must be greater than or equal to minimum price")
        return self


class BookResponse(BaseModel):
    """Book response model."""

    id: int
    title: str
    description: str
    price: Decimal
    thumbnail: Optional[str] = None
    author: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    creator_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Envelopes
# =============================================================================

class DataResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class PageResponse(BaseModel, Generic[T]):
    success: bool = True
    data: list[T]
    pagination: Pagination


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Error response model."""

    success: bool = False
    error: str
    code: str
    timestamp: datetime


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, Any] = Field(default_factory=dict)
