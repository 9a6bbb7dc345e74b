# agency/core/errors.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("agency.errors")


class AgencyError(Exception):
    """Base class for console errors."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthFailure(AgencyError):
    """Bad credentials at sign-in. Shown inline, never fatal."""
    status_code = status.HTTP_401_UNAUTHORIZED


class IdentityUnavailable(AgencyError):
    """Identity provider could not be reached."""
    status_code = status.HTTP_502_BAD_GATEWAY


class ReadFailure(AgencyError):
    """Store read failed."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ProfileFetchFailure(ReadFailure):
    """Profile read failed. The role resolver treats it as role = None."""


class ProfileNotFound(AgencyError):
    status_code = status.HTTP_404_NOT_FOUND


class EventNotFound(AgencyError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailure(AgencyError):
    """Form-level validation error with per-field messages."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}


class WriteFailure(AgencyError):
    """Profile/event write failed. Surfaced as a transient notification, not retried."""
    status_code = status.HTTP_502_BAD_GATEWAY


def _body(exc: AgencyError) -> dict:
    body = {"detail": exc.message}
    if isinstance(exc, ValidationFailure):
        body["fields"] = exc.fields
    if isinstance(exc, WriteFailure):
        body["notify"] = True
    return body


async def _agency_error_handler(request: Request, exc: AgencyError):
    if isinstance(exc, WriteFailure):
        logger.warning("Write failed on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_body(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AgencyError, _agency_error_handler)
