"""User model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String
from backend.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Represents a locally registered account."""
    __tablename__ = "users"
    # names match the ones migrate_user_table creates on older tables
    __table_args__ = (
        Index("uq_users_email", "email", unique=True),
        Index("uq_users_google_id", "google_id", unique=True),
        Index("idx_users_reset_token", "reset_password_token"),
    )

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False)
    google_id = Column(String, nullable=True)
    # sha256 digest of the emailed reset token
    reset_password_token = Column(String, nullable=True)
    reset_password_expires = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
