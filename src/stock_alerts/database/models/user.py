"""
User model - tenant members and their notification preferences.
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index

from .base import Base, new_id
from .tenant import utcnow


class User(Base):
    """
    Tenant member.

    Carries the digest preferences (cadence, on/off, optional override
    address) and the subscription columns used to resolve the billing plan.
    """

    __tablename__ = "users"

    # Primary Key
    id = Column(String(36), primary_key=True, default=new_id)

    # Tenant Relationship
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    # Profile
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=True)

    # Notifications
    notification_enabled = Column(Boolean, nullable=False, default=True)
    notification_email = Column(String(255), nullable=True)
    digest_frequency = Column(String(10), nullable=False, default="daily")

    # Subscription
    subscription_status = Column(String(20), nullable=False, default="none")
    subscription_ends_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_users_tenant_digest", "tenant_id", "digest_frequency", "notification_enabled"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', digest='{self.digest_frequency}')>"
