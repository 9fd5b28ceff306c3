"""Authentication gate applied to every request.

Public paths skip the gate. Everything else needs a bearer token that
verifies, has not expired and still names an existing account with the
same role; otherwise the request is answered with 401 before any route
runs. Token problems never raise past this module.
"""

import logging

import jwt
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from school_backend.auth import jwt_handler
from school_backend.auth.dependencies import CurrentIdentity
from school_backend.core.errors import DATABASE_UNAVAILABLE_DETAIL
from school_backend.database import SessionLocal
from school_backend.models.user import UserRole
from school_backend.services.accounts import find_by_username

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({
    '/',
    '/docs',
    '/docs/oauth2-redirect',
    '/redoc',
    '/openapi.json',
})
PUBLIC_PREFIXES = (
    '/auth/login',
    '/auth/reset-password',
    '/users/register',
)


def is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    # Segment-aware: '/users/register' must not open '/users/register-with-parent'.
    return any(path == prefix or path.startswith(prefix + '/') for prefix in PUBLIC_PREFIXES)


def extract_bearer_token(authorization: str | None) -> str | None:
    scheme, credentials = get_authorization_scheme_param(authorization)
    if not authorization or scheme.lower() != 'bearer' or not credentials:
        return None
    return credentials


def authenticate_token(token: str | None, db: Session) -> CurrentIdentity | None:
    if not token:
        return None

    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        logger.debug('Rejected session token: %s', exc)
        return None

    try:
        role = UserRole(payload.get('role'))
    except ValueError:
        logger.debug('Rejected session token with unknown role %r', payload.get('role'))
        return None

    username = payload.get('sub')
    user = find_by_username(db, username) if isinstance(username, str) else None
    if user is None or user.role != role:
        logger.debug('Rejected session token for %r: account missing or role changed', username)
        return None

    return CurrentIdentity(user_id=user.id, username=user.username, role=user.role)


def _authenticate_with_new_session(session_factory, token: str | None) -> CurrentIdentity | None:
    db = session_factory()
    try:
        return authenticate_token(token, db)
    finally:
        db.close()


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={'detail': detail},
        headers={'WWW-Authenticate': 'Bearer'},
    )


async def authentication_gate(request: Request, call_next):
    if request.method == 'OPTIONS' or is_public_path(request.url.path):
        return await call_next(request)

    token = extract_bearer_token(request.headers.get('Authorization'))
    if token is None:
        return _unauthorized('Not authenticated')

    session_factory = getattr(request.app.state, 'session_factory', SessionLocal)
    try:
        identity = await run_in_threadpool(_authenticate_with_new_session, session_factory, token)
    except SQLAlchemyError:
        logger.exception('Could not load account while authenticating request.')
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={'detail': DATABASE_UNAVAILABLE_DETAIL},
        )

    if identity is None:
        return _unauthorized('Invalid or expired token')

    request.state.identity = identity
    return await call_next(request)
