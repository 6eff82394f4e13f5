"""
Session model - login sessions, swept by the cleanup job once expired.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey

from .base import Base, new_id
from .tenant import utcnow


class Session(Base):
    """Cookie session issued at login."""

    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(255), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Session(id={self.id}, user_id={self.user_id}, expires_at={self.expires_at})>"
