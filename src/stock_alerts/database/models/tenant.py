"""
Tenant model - a customer account connected to the commerce platform.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, DateTime, Text, Index

from .base import Base, new_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Tenant(Base):
    """
    Customer account.

    The access token is stored encrypted by the connection flow; the digest
    pipeline only reads identity and status columns.
    """

    __tablename__ = "tenants"

    # Primary Key
    id = Column(String(36), primary_key=True, default=new_id)

    # Commerce platform account
    bsale_client_code = Column(String(100), nullable=False, unique=True, index=True)
    bsale_client_name = Column(String(255), nullable=True)
    bsale_access_token = Column(Text, nullable=True)

    # Status
    sync_status = Column(String(20), nullable=False, default="pending")
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    subscription_status = Column(String(20), nullable=False, default="none")
    is_paid = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_tenants_sync_status", "sync_status"),
    )

    def __repr__(self):
        return f"<Tenant(id={self.id}, client_code='{self.bsale_client_code}', sync_status='{self.sync_status}')>"
