from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    code: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing input. Nothing was written."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, code=code)


class PolicyViolation(AppError):
    """A business rule rejected the operation (balance, overlap, notice, ...)."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, code=code)


class RoutingFailure(AppError):
    """No approver could be resolved; needs administrative action, not applicant action."""

    NO_HIERARCHY = "NO_HIERARCHY"
    NO_APPROVER = "NO_APPROVER"
    HIERARCHY_CYCLE = "HIERARCHY_CYCLE"

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, code=code)


class StateConflict(AppError):
    """The target is no longer in the state the transition expects."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, code=code)


class AuthorizationFailure(AppError):
    """Actor lacks the role for the action, or is acting on their own request."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN, code=code)


class NotFound(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            code=exc.code,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
