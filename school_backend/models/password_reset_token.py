"""Password reset token model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from school_backend.database import Base


class PasswordResetToken(Base):
    """One-time token that lets an account owner set a new password."""
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True)
    token = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    # Naive UTC.
    expiry_date = Column(DateTime, nullable=False, index=True)
    used = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="reset_token")

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expiry_date

    def is_valid(self, now: datetime) -> bool:
        return not self.used and not self.is_expired(now)
