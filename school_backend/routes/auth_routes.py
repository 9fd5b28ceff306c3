import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from school_backend.auth import jwt_handler
from school_backend.auth.dependencies import CurrentIdentity, get_current_identity
from school_backend.core.errors import DATABASE_UNAVAILABLE_DETAIL, AccountError, to_http_exception
from school_backend.database import get_db
from school_backend.services.accounts import authenticate_credentials
from school_backend.services.password_reset import reset_password, validate_token

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
INVALID_RESET_LINK_DETAIL = 'This password reset link is invalid or has expired.'


class LoginRequest(BaseModel):
    username: str
    password: str

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Username is required.')
        return normalized


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'


class ResetTokenStatusResponse(BaseModel):
    username: str
    expires_at: datetime


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long.')
        return value


class MessageResponse(BaseModel):
    message: str


@router.post('/login', response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = authenticate_credentials(db, data.username, data.password)
    except AccountError as exc:
        logger.info('Failed login attempt for %s', data.username)
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    token = jwt_handler.create_access_token(subject=user.username, role=user.role.value)
    return TokenResponse(access_token=token)


@router.get('/me', response_model=CurrentIdentity)
def me(identity: CurrentIdentity = Depends(get_current_identity)):
    return identity


@router.get('/reset-password', response_model=ResetTokenStatusResponse)
def check_reset_token(token: str = Query(...), db: Session = Depends(get_db)):
    reset_token = validate_token(db, token.strip())
    if reset_token is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_RESET_LINK_DETAIL)

    return ResetTokenStatusResponse(username=reset_token.user.username, expires_at=reset_token.expiry_date)


@router.post('/reset-password', response_model=MessageResponse)
def submit_password_reset(data: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        reset_password(db, data.token.strip(), data.new_password)
        db.commit()
    except AccountError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    return MessageResponse(message='Password updated. You can now sign in.')
