"""
Alert model - stock alerts waiting for (or already included in) a digest.
"""

from sqlalchemy import Column, String, Integer, BigInteger, DateTime, ForeignKey, Index

from .base import Base, new_id
from .tenant import utcnow


class Alert(Base):
    """
    Stock alert raised by the sync job.

    Lifecycle: pending -> sent (after a digest was accepted) or dismissed.
    """

    __tablename__ = "alerts"

    # Primary Key
    id = Column(String(36), primary_key=True, default=new_id)

    # Ownership
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Product
    bsale_variant_id = Column(BigInteger, nullable=False)
    bsale_office_id = Column(BigInteger, nullable=True)
    sku = Column(String(100), nullable=True)
    product_name = Column(String(500), nullable=True)

    # Alert details
    alert_type = Column(String(20), nullable=False)  # low_stock, out_of_stock, low_velocity
    current_quantity = Column(Integer, nullable=False)
    threshold_quantity = Column(Integer, nullable=True)
    days_to_stockout = Column(Integer, nullable=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default="pending")
    sent_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_alerts_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self):
        return f"<Alert(id={self.id}, type='{self.alert_type}', status='{self.status}')>"
