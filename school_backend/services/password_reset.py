import logging
import secrets
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from school_backend.auth.passwords import hash_password
from school_backend.core import config
from school_backend.core.errors import AccountValidationError, InvalidResetToken
from school_backend.models.password_reset_token import PasswordResetToken
from school_backend.models.user import User

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def issue_token(db: Session, user: User, now: datetime | None = None) -> PasswordResetToken:
    """Give ``user`` a fresh reset token, overwriting any token it already owns."""
    issued_at = now or utcnow()
    expiry_date = issued_at + timedelta(minutes=config.PASSWORD_RESET_TOKEN_MINUTES)

    reset_token = db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).first()
    if reset_token is None:
        reset_token = PasswordResetToken(user=user)
        db.add(reset_token)

    reset_token.token = secrets.token_urlsafe(TOKEN_BYTES)
    reset_token.expiry_date = expiry_date
    reset_token.used = False
    db.flush()

    logger.info('Issued password reset token for user id=%s', user.id)
    return reset_token


def validate_token(db: Session, token: str | None, now: datetime | None = None) -> PasswordResetToken | None:
    """Return the token only while it is unused and unexpired.

    Unknown, expired and used tokens all come back as ``None``.
    """
    if not token:
        return None

    reset_token = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
    if reset_token is None or not reset_token.is_valid(now or utcnow()):
        return None
    return reset_token


def consume_token(db: Session, reset_token: PasswordResetToken) -> None:
    if reset_token.used:
        return
    reset_token.used = True
    db.flush()


def reset_password(db: Session, token: str, new_password: str, now: datetime | None = None) -> User:
    if not new_password:
        raise AccountValidationError('A new password is required.')

    reset_token = validate_token(db, token, now=now)
    if reset_token is None:
        raise InvalidResetToken('This password reset link is invalid or has expired.')

    user = reset_token.user
    user.password = hash_password(new_password)
    consume_token(db, reset_token)

    logger.info('Password updated for user id=%s', user.id)
    return user


def build_reset_link(reset_token: PasswordResetToken) -> str:
    return f"{config.PASSWORD_RESET_URL}?{urlencode({'token': reset_token.token})}"
