from urllib.parse import parse_qs, urlparse

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from school_backend.models.password_reset_token import PasswordResetToken
from school_backend.models.user import Parent, Student, User, UserRole
from school_backend.routes.user_routes import (
    AdminRegistration,
    ChefRegistration,
    ParentFields,
    RegistrationUnion,
    StudentFields,
    StudentRegistration,
    StudentWithParentRequest,
    TeacherRegistration,
    get_user,
    register,
    register_student_with_parent,
    remove_user,
)
from school_backend.services.accounts import authenticate_credentials
from school_backend.services.password_reset import validate_token


def _teacher_registration(**overrides) -> TeacherRegistration:
    values = {'role': 'TEACHER', 'name': 'Maria Popescu', 'subject': 'Mathematics', 'email': 'maria@school.ro'}
    values.update(overrides)
    return TeacherRegistration(**values)


def test_registration_union_covers_every_role() -> None:
    roles = {model.model_fields['role'].annotation.__args__[0] for model in RegistrationUnion.__args__}

    assert roles == {role.value for role in UserRole}


def test_account_fields_normalize_email_and_blank_username() -> None:
    data = _teacher_registration(email=' Maria@School.RO ', username='  ')

    assert data.email == 'maria@school.ro'
    assert data.username is None


def test_account_fields_reject_short_password() -> None:
    with pytest.raises(ValidationError):
        _teacher_registration(password='short')


def test_account_fields_reject_invalid_email() -> None:
    with pytest.raises(ValidationError):
        _teacher_registration(email='not-an-email')


def test_register_teacher_derives_username_and_returns_initial_password(db) -> None:
    response = register(data=_teacher_registration(), db=db)

    assert response.account.username == 'maria.popescu.prof'
    assert response.account.role == UserRole.TEACHER
    assert response.account.name == 'Maria Popescu'
    assert response.initial_password
    assert authenticate_credentials(db, 'maria.popescu.prof', response.initial_password).role == UserRole.TEACHER


def test_register_returns_password_setup_link_with_valid_token(db) -> None:
    response = register(data=_teacher_registration(), db=db)

    token = parse_qs(urlparse(response.password_setup_link).query)['token'][0]
    reset_token = validate_token(db, token)

    assert reset_token is not None
    assert reset_token.user.username == 'maria.popescu.prof'


def test_register_with_explicit_password_does_not_echo_it(db) -> None:
    response = register(data=_teacher_registration(username='mpopescu', password='chosen-pass'), db=db)

    assert response.account.username == 'mpopescu'
    assert response.initial_password is None
    authenticate_credentials(db, 'mpopescu', 'chosen-pass')


def test_register_same_teacher_twice_returns_conflict(db) -> None:
    register(data=_teacher_registration(), db=db)

    with pytest.raises(HTTPException) as exception_info:
        register(data=_teacher_registration(email='maria.other@school.ro'), db=db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'Username maria.popescu.prof already exists.'
    assert db.query(User).count() == 1


def test_register_duplicate_email_returns_conflict(db) -> None:
    register(data=_teacher_registration(), db=db)

    with pytest.raises(HTTPException) as exception_info:
        register(data=ChefRegistration(role='CHEF', name='Ana Pop', email='maria@school.ro'), db=db)

    assert exception_info.value.status_code == 409


def test_register_student_with_unknown_class_returns_not_found(db) -> None:
    data = StudentRegistration(role='STUDENT', name='Ion Ionescu', email='ion@school.ro', class_id=77)

    with pytest.raises(HTTPException) as exception_info:
        register(data=data, db=db)

    assert exception_info.value.status_code == 404
    assert db.query(User).count() == 0
    assert db.query(PasswordResetToken).count() == 0


def test_register_first_admin_is_allowed_but_second_is_forbidden(db) -> None:
    first = register(data=AdminRegistration(role='ADMIN', name='Head Office', email='office@school.ro'), db=db)

    assert first.account.username == 'head.office.admin'
    with pytest.raises(HTTPException) as exception_info:
        register(data=AdminRegistration(role='ADMIN', email='intruder@school.ro'), db=db)

    assert exception_info.value.status_code == 403


def test_register_student_with_parent_links_both_accounts(db, school_class) -> None:
    data = StudentWithParentRequest(
        student=StudentFields(name='Ion Ionescu', email='ion@school.ro', class_id=school_class.id),
        parent=ParentFields(mother_name='Elena Ionescu', email='elena@school.ro', father_name='Vasile Ionescu'),
    )

    response = register_student_with_parent(data=data, db=db)

    assert response.parent.account.username == 'elena.ionescu.parent'
    assert response.student.account.username == 'ion.ionescu.student'
    student = db.get(Student, response.student.account.id)
    assert student.parent_id == response.parent.account.id
    assert db.query(PasswordResetToken).count() == 2


def test_register_student_without_parent(db, school_class) -> None:
    data = StudentWithParentRequest(
        student=StudentFields(name='Ion Ionescu', email='ion@school.ro', class_id=school_class.id),
    )

    response = register_student_with_parent(data=data, db=db)

    assert response.parent is None
    assert db.get(Student, response.student.account.id).parent_id is None


def test_register_student_with_parent_rolls_back_parent_when_student_fails(db) -> None:
    data = StudentWithParentRequest(
        student=StudentFields(name='Ion Ionescu', email='ion@school.ro', class_id=999),
        parent=ParentFields(mother_name='Elena Ionescu', email='elena@school.ro'),
    )

    with pytest.raises(HTTPException) as exception_info:
        register_student_with_parent(data=data, db=db)

    assert exception_info.value.status_code == 404
    assert db.query(Parent).count() == 0
    assert db.query(User).count() == 0


def test_get_user_returns_account(db) -> None:
    created = register(data=_teacher_registration(), db=db)

    account = get_user(user_id=created.account.id, db=db)

    assert account.username == 'maria.popescu.prof'
    assert account.email == 'maria@school.ro'


def test_get_user_returns_not_found(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_user(user_id=404, db=db)

    assert exception_info.value.status_code == 404


def test_remove_user_deletes_account_and_token(db) -> None:
    created = register(data=_teacher_registration(), db=db)

    remove_user(user_id=created.account.id, db=db)

    assert db.query(User).count() == 0
    assert db.query(PasswordResetToken).count() == 0


def test_remove_user_returns_not_found(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        remove_user(user_id=404, db=db)

    assert exception_info.value.status_code == 404
