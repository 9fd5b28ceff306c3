"""School class model definitions."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from school_backend.database import Base


class SchoolClass(Base):
    """Represents a class that students are enrolled in."""
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    specialization = Column(String)

    students = relationship("Student", back_populates="school_class")
