"""
Domain errors for the Bookshop backend.

Services raise these; the API layer translates them into
``{"success": false, ...}`` responses with the attached status code.

Some errors deliberately conflate causes (``InvalidCredentialsError``,
``NotFoundOrForbiddenError``, ``UnauthorizedError``) so callers cannot test
for account or ownership existence. Keep them conflated.
"""


class BookshopException(Exception):
    """Base exception for Bookshop errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class ValidationError(BookshopException):
    """Input validation failed."""

    def __init__(self, message: str):
        super().__init__(message=message, code="VALIDATION_ERROR", status_code=400)


class ConflictError(BookshopException):
    """A uniqueness constraint was violated."""

    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message=message, code=code, status_code=409)


class DuplicateTitleError(ConflictError):
    """Book title already taken (titles are unique across all owners)."""

    def __init__(self):
        super().__init__(
            message="A book with this title already exists",
            code="DUPLICATE_TITLE",
        )


class InvalidCredentialsError(BookshopException):
    """Login failed. Unknown identifier and wrong password look the same."""

    def __init__(self):
        super().__init__(
            message="Invalid credentials",
            code="INVALID_CREDENTIALS",
            status_code=401,
        )


class InvalidOrExpiredOTPError(BookshopException):
    """No live OTP for the account, or it does not match."""

    def __init__(self):
        super().__init__(
            message="Invalid or expired OTP",
            code="INVALID_OR_EXPIRED_OTP",
            status_code=400,
        )


class IncorrectPasswordError(BookshopException):
    """Current password check failed during a password change."""

    def __init__(self):
        super().__init__(
            message="Current password is incorrect",
            code="INCORRECT_PASSWORD",
            status_code=400,
        )


class NotFoundError(BookshopException):
    """Resource not found."""

    def __init__(self, resource: str):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
        )


class NotFoundOrForbiddenError(BookshopException):
    """Owner-scoped lookup missed: absent, or owned by someone else."""

    def __init__(self, action: str = "access"):
        super().__init__(
            message=f"Book not found or you do not have permission to {action} it",
            code="NOT_FOUND_OR_FORBIDDEN",
            status_code=404,
        )


class UnauthorizedError(BookshopException):
    """Missing, malformed, expired or revoked bearer token."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message=message, code="UNAUTHORIZED", status_code=401)


class EmailDeliveryError(BookshopException):
    """Outbound e-mail could not be sent."""

    def __init__(self, message: str):
        super().__init__(message=message, code="EMAIL_DELIVERY_FAILED", status_code=502)
