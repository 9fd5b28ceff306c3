"""Domain errors raised by the account services.

Each error carries the HTTP status the route layer should answer with, so
handlers can translate them without a lookup table.
"""

from fastapi import HTTPException

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL.'


class AccountError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AccountValidationError(AccountError):
    status_code = 400


class DuplicateUsername(AccountError):
    status_code = 409


class DuplicateEmail(AccountError):
    status_code = 409


class InvalidCredentials(AccountError):
    status_code = 401


class NotFound(AccountError):
    status_code = 404


class InvalidRoleMapping(AccountError):
    status_code = 400


class InvalidResetToken(AccountError):
    status_code = 400


def to_http_exception(exc: AccountError) -> HTTPException:
    headers = {'WWW-Authenticate': 'Bearer'} if exc.status_code == 401 else None
    return HTTPException(status_code=exc.status_code, detail=exc.detail, headers=headers)
