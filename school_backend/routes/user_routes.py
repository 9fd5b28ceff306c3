from typing import Annotated, Literal, Union

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from school_backend.auth.dependencies import require_roles
from school_backend.core.errors import DATABASE_UNAVAILABLE_DETAIL, AccountError, NotFound, to_http_exception
from school_backend.database import get_db
from school_backend.models.user import Admin, Chef, Parent, Student, Teacher, TeacherType, User, UserRole
from school_backend.services.accounts import (
    admin_exists,
    create_account,
    delete_account,
    derive_username,
    generate_initial_password,
)
from school_backend.services.password_reset import build_reset_link, issue_token

router = APIRouter(tags=['users'])

MIN_PASSWORD_LENGTH = 8


def _normalize_optional_email(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if not normalized:
        return None
    if '@' not in normalized:
        raise ValueError('A valid email is required.')
    return normalized


class AccountFields(BaseModel):
    email: str
    username: str | None = None
    password: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = _normalize_optional_email(value)
        if normalized is None:
            raise ValueError('Email is required.')
        return normalized

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str | None) -> str | None:
        if value is not None and len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long.')
        return value


class StudentFields(AccountFields):
    name: str
    phone_number: str | None = None
    class_id: int
    parent_id: int | None = None

    def display_name(self) -> str:
        return self.name

    def to_account(self) -> Student:
        return Student(
            name=self.name.strip(),
            phone_number=self.phone_number,
            class_id=self.class_id,
            parent_id=self.parent_id,
        )


class ParentFields(AccountFields):
    mother_name: str
    mother_email: str | None = None
    mother_phone_number: str | None = None
    father_name: str | None = None
    father_email: str | None = None
    father_phone_number: str | None = None

    @field_validator('mother_email', 'father_email')
    @classmethod
    def validate_contact_email(cls, value: str | None) -> str | None:
        return _normalize_optional_email(value)

    def display_name(self) -> str:
        return self.mother_name

    def to_account(self) -> Parent:
        return Parent(
            mother_name=self.mother_name.strip(),
            mother_email=self.mother_email,
            mother_phone_number=self.mother_phone_number,
            father_name=self.father_name,
            father_email=self.father_email,
            father_phone_number=self.father_phone_number,
        )


class TeacherFields(AccountFields):
    name: str
    subject: str
    teacher_type: TeacherType = TeacherType.TEACHER

    def display_name(self) -> str:
        return self.name

    def to_account(self) -> Teacher:
        return Teacher(name=self.name.strip(), subject=self.subject.strip(), teacher_type=self.teacher_type)


class AdminFields(AccountFields):
    name: str | None = None

    def display_name(self) -> str:
        return self.name or self.email.split('@', 1)[0]

    def to_account(self) -> Admin:
        return Admin()


class ChefFields(AccountFields):
    name: str

    def display_name(self) -> str:
        return self.name

    def to_account(self) -> Chef:
        return Chef(name=self.name.strip())


class StudentRegistration(StudentFields):
    role: Literal['STUDENT']


class ParentRegistration(ParentFields):
    role: Literal['PARENT']


class TeacherRegistration(TeacherFields):
    role: Literal['TEACHER']


class AdminRegistration(AdminFields):
    role: Literal['ADMIN']


class ChefRegistration(ChefFields):
    role: Literal['CHEF']


RegistrationUnion = Union[
    StudentRegistration, ParentRegistration, TeacherRegistration, AdminRegistration, ChefRegistration
]
RegistrationRequest = Annotated[RegistrationUnion, Body(discriminator='role')]


class StudentWithParentRequest(BaseModel):
    student: StudentFields
    parent: ParentFields | None = None


class AccountResponse(BaseModel):
    id: int
    username: str
    email: str
    role: UserRole
    name: str | None = None

    class Config:
        from_attributes = True


class RegistrationResponse(BaseModel):
    account: AccountResponse
    initial_password: str | None = None
    password_setup_link: str | None = None


class StudentWithParentResponse(BaseModel):
    student: RegistrationResponse
    parent: RegistrationResponse | None = None


def provision_account(db: Session, data: AccountFields, role: UserRole) -> RegistrationResponse:
    """Create the account described by ``data`` and issue its first-login token.

    Without a username one is derived from the display name; without a
    password a random initial password is generated and returned once.
    """
    account = data.to_account()
    account.role = role
    account.username = data.username or derive_username(data.display_name(), role)
    account.email = data.email

    initial_password = None
    if data.password is None:
        initial_password = generate_initial_password()
    account.password = data.password or initial_password

    create_account(db, account)
    setup_token = issue_token(db, account)

    return RegistrationResponse(
        account=AccountResponse.model_validate(account),
        initial_password=initial_password,
        password_setup_link=build_reset_link(setup_token),
    )


def _database_unavailable() -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE_DETAIL)


@router.post('/register', response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegistrationRequest, db: Session = Depends(get_db)):
    try:
        # Public registration may only create the very first administrator.
        if data.role == UserRole.ADMIN.value and admin_exists(db):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Administrators can only be created by an existing administrator.',
            )

        response = provision_account(db, data, UserRole(data.role))
        db.commit()
        return response
    except AccountError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise _database_unavailable() from exc


@router.post(
    '',
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
def create_user(data: RegistrationRequest, db: Session = Depends(get_db)):
    try:
        response = provision_account(db, data, UserRole(data.role))
        db.commit()
        return response
    except AccountError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise _database_unavailable() from exc


@router.post(
    '/register-with-parent',
    response_model=StudentWithParentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
def register_student_with_parent(data: StudentWithParentRequest, db: Session = Depends(get_db)):
    """Create a student and, optionally, a new parent account in one transaction."""
    try:
        parent_response = None
        student_data = data.student
        if data.parent is not None:
            parent_response = provision_account(db, data.parent, UserRole.PARENT)
            student_data = student_data.model_copy(update={'parent_id': parent_response.account.id})

        student_response = provision_account(db, student_data, UserRole.STUDENT)
        db.commit()
    except AccountError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise _database_unavailable() from exc

    return StudentWithParentResponse(student=student_response, parent=parent_response)


@router.get(
    '/{user_id}',
    response_model=AccountResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
def get_user(user_id: int, db: Session = Depends(get_db)):
    user = db.get(User, user_id)
    if user is None:
        raise to_http_exception(NotFound(f'User with ID {user_id} not found.'))
    return AccountResponse.model_validate(user)


@router.delete(
    '/{user_id}',
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
def remove_user(user_id: int, db: Session = Depends(get_db)):
    try:
        delete_account(db, user_id)
        db.commit()
    except AccountError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise _database_unavailable() from exc
