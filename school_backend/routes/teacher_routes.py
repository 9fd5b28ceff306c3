from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from school_backend.auth.dependencies import get_current_user, require_roles
from school_backend.core.errors import DATABASE_UNAVAILABLE_DETAIL
from school_backend.database import get_db
from school_backend.models.user import Teacher, TeacherType, User, UserRole

router = APIRouter(tags=['teachers'])


class TeacherResponse(BaseModel):
    id: int
    username: str
    email: str
    name: str
    subject: str
    teacher_type: TeacherType | None = None

    class Config:
        from_attributes = True


@router.get(
    '',
    response_model=list[TeacherResponse],
    dependencies=[Depends(require_roles(UserRole.TEACHER, UserRole.ADMIN))],
)
def list_teachers(db: Session = Depends(get_db)):
    try:
        return db.query(Teacher).order_by(Teacher.name.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get(
    '/me',
    response_model=TeacherResponse,
    dependencies=[Depends(require_roles(UserRole.TEACHER))],
)
def get_current_teacher(current_user: User = Depends(get_current_user)):
    return current_user
