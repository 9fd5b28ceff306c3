"""Account provisioning.

``create_account`` is the only place a new account row is added. It checks
uniqueness across every role, validates role-specific links, hashes the
password and flushes, leaving the commit to the caller so that several
accounts can be created in one transaction.
"""

import logging
import secrets

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from school_backend.auth.passwords import hash_password, verify_password
from school_backend.core.errors import (
    AccountValidationError,
    DuplicateEmail,
    DuplicateUsername,
    InvalidCredentials,
    InvalidRoleMapping,
    NotFound,
)
from school_backend.models.password_reset_token import PasswordResetToken  # noqa: F401
from school_backend.models.school_class import SchoolClass
from school_backend.models.user import ROLE_MODELS, Parent, Student, User, UserRole

logger = logging.getLogger(__name__)

USERNAME_SUFFIXES = {
    UserRole.STUDENT: 'student',
    UserRole.PARENT: 'parent',
    UserRole.TEACHER: 'prof',
    UserRole.ADMIN: 'admin',
    UserRole.CHEF: 'chef',
}
INITIAL_PASSWORD_BYTES = 9


def derive_username(name: str, role: UserRole) -> str:
    """Build the conventional username, e.g. "Maria Popescu" -> "maria.popescu.prof"."""
    parts = name.strip().lower().split()
    if not parts:
        raise AccountValidationError('A name is required to derive a username.')
    return '.'.join(parts + [USERNAME_SUFFIXES[role]])


def generate_initial_password() -> str:
    return secrets.token_urlsafe(INITIAL_PASSWORD_BYTES)


def normalize_email(email: str | None) -> str:
    return (email or '').strip().lower()


def find_by_username(db: Session, username: str) -> User | None:
    return db.query(User).filter(User.username == username).first()


def find_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def admin_exists(db: Session) -> bool:
    return db.query(User.id).filter(User.role == UserRole.ADMIN).first() is not None


def check_role_mapping(account: User) -> None:
    expected_model = ROLE_MODELS.get(account.role)
    if expected_model is None or type(account) is not expected_model:
        raise InvalidRoleMapping(
            f'Role {getattr(account.role, "value", account.role)!s} does not match account type {type(account).__name__}.'
        )


def _validate_required_fields(account: User) -> None:
    if not (account.username or '').strip():
        raise AccountValidationError('Username is required.')
    if not account.password:
        raise AccountValidationError('Password is required.')
    if not normalize_email(account.email):
        raise AccountValidationError('Email is required.')


def _validate_student_links(db: Session, student: Student) -> None:
    if student.class_id is None:
        raise AccountValidationError('A class is required for a student.')
    if db.get(SchoolClass, student.class_id) is None:
        raise NotFound(f'Class with ID {student.class_id} not found.')
    if student.parent_id is not None and db.get(Parent, student.parent_id) is None:
        raise NotFound(f'Parent with ID {student.parent_id} not found.')


def _validate_parent_contacts(db: Session, parent: Parent) -> None:
    for field in ('mother_email', 'father_email'):
        contact_email = getattr(parent, field)
        if not contact_email:
            continue
        column = getattr(Parent, field)
        if db.query(Parent.id).filter(column == contact_email).first() is not None:
            raise DuplicateEmail(f'The {field.replace("_", " ")} {contact_email} is already registered.')


def _no_links(db: Session, account: User) -> None:
    return None


LINK_VALIDATORS = {
    UserRole.STUDENT: _validate_student_links,
    UserRole.PARENT: _validate_parent_contacts,
    UserRole.TEACHER: _no_links,
    UserRole.ADMIN: _no_links,
    UserRole.CHEF: _no_links,
}


def _raise_duplicate(db: Session, account: User) -> None:
    if find_by_username(db, account.username) is not None:
        raise DuplicateUsername(f'Username {account.username} already exists.')
    if find_by_email(db, account.email) is not None:
        raise DuplicateEmail(f'Email {account.email} is already registered.')


def create_account(db: Session, account: User) -> User:
    """Persist a new account of any role and return it with its id.

    ``account.password`` is expected to hold the plaintext password; it is
    replaced by its hash before the row is written.
    """
    _validate_required_fields(account)
    account.username = account.username.strip()
    account.email = normalize_email(account.email)

    check_role_mapping(account)
    _raise_duplicate(db, account)
    LINK_VALIDATORS[account.role](db, account)

    account.password = hash_password(account.password)

    # A concurrent registration can pass the pre-check; the unique
    # constraints decide, and the loser gets the same duplicate error.
    try:
        db.add(account)
        db.flush()
    except IntegrityError:
        db.rollback()
        _raise_duplicate(db, account)
        if account.role == UserRole.PARENT:
            _validate_parent_contacts(db, account)
        raise

    logger.info('Created %s account %s (id=%s)', account.role.value, account.username, account.id)
    return account


def authenticate_credentials(db: Session, username: str, password: str) -> User:
    user = find_by_username(db, (username or '').strip())
    if user is None or not verify_password(password, user.password):
        raise InvalidCredentials('Invalid username or password.')
    return user


def delete_account(db: Session, user_id: int) -> None:
    account = db.get(User, user_id)
    if account is None:
        raise NotFound(f'User with ID {user_id} not found.')
    db.delete(account)
    db.flush()
    logger.info('Deleted account id=%s', user_id)
