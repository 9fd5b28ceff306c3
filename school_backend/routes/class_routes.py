from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from school_backend.auth.dependencies import require_roles
from school_backend.core.errors import DATABASE_UNAVAILABLE_DETAIL
from school_backend.database import get_db
from school_backend.models.school_class import SchoolClass
from school_backend.models.user import UserRole

router = APIRouter(tags=['classes'])


class CreateClassRequest(BaseModel):
    name: str
    specialization: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Class name is required.')
        return normalized


class ClassResponse(BaseModel):
    id: int
    name: str
    specialization: str | None = None

    class Config:
        from_attributes = True


@router.get(
    '',
    response_model=list[ClassResponse],
    dependencies=[Depends(require_roles(UserRole.TEACHER, UserRole.ADMIN, UserRole.PARENT))],
)
def list_classes(db: Session = Depends(get_db)):
    try:
        return db.query(SchoolClass).order_by(SchoolClass.name.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post(
    '',
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
def create_class(data: CreateClassRequest, db: Session = Depends(get_db)):
    try:
        existing = db.query(SchoolClass).filter(SchoolClass.name == data.name).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='A class with this name already exists.',
            )

        school_class = SchoolClass(name=data.name, specialization=data.specialization)
        db.add(school_class)
        db.commit()
        db.refresh(school_class)

        return school_class
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
