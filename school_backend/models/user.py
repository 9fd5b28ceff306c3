"""Account model definitions.

Every account is a row in ``users`` plus, for most roles, a row in the
role's own table (joined-table inheritance). ``role`` is the discriminator,
so loading from ``users`` always yields the concrete variant.
"""

import enum

from sqlalchemy import Column, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from school_backend.database import Base


class UserRole(str, enum.Enum):
    STUDENT = "STUDENT"
    PARENT = "PARENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"
    CHEF = "CHEF"


class TeacherType(str, enum.Enum):
    EDUCATOR = "EDUCATOR"
    TEACHER = "TEACHER"


class User(Base):
    """Represents an application account of any role."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False)

    reset_token = relationship(
        "PasswordResetToken",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"polymorphic_on": role}

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<{type(self).__name__} {self.username}>"


class Student(User):
    __tablename__ = "students"

    id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    name = Column(String, nullable=False)
    phone_number = Column(String)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    parent_id = Column(Integer, ForeignKey("parents.id", ondelete="SET NULL"))

    school_class = relationship("SchoolClass", back_populates="students")
    parent = relationship(
        "Parent",
        back_populates="students",
        primaryjoin="Student.parent_id == Parent.id",
        foreign_keys=[parent_id],
    )

    __mapper_args__ = {"polymorphic_identity": UserRole.STUDENT}


class Parent(User):
    __tablename__ = "parents"

    id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    mother_name = Column(String, nullable=False)
    mother_email = Column(String, unique=True)
    mother_phone_number = Column(String)
    father_name = Column(String)
    father_email = Column(String, unique=True)
    father_phone_number = Column(String)

    students = relationship(
        "Student",
        back_populates="parent",
        primaryjoin="Student.parent_id == Parent.id",
        foreign_keys="Student.parent_id",
    )

    __mapper_args__ = {"polymorphic_identity": UserRole.PARENT}


class Teacher(User):
    __tablename__ = "teachers"

    id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    name = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    teacher_type = Column("type", Enum(TeacherType, name="teacher_type"), default=TeacherType.TEACHER)

    __mapper_args__ = {"polymorphic_identity": UserRole.TEACHER}


class Admin(User):
    # No admin-specific columns; admins live only in ``users``.
    __mapper_args__ = {"polymorphic_identity": UserRole.ADMIN}


class Chef(User):
    __tablename__ = "chefs"

    id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    name = Column(String)

    __mapper_args__ = {"polymorphic_identity": UserRole.CHEF}


ROLE_MODELS: dict[UserRole, type[User]] = {
    UserRole.STUDENT: Student,
    UserRole.PARENT: Parent,
    UserRole.TEACHER: Teacher,
    UserRole.ADMIN: Admin,
    UserRole.CHEF: Chef,
}
