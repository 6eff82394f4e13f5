"""
SQLAlchemy database models for multi-tenant Stock Alerts.

Models:
- Tenant: Customer accounts connected to the commerce platform
- User: Tenant members with digest preferences
- Alert: Stock alerts waiting for a digest
- Threshold: Stock limits configured by users
- Session: Login sessions
"""

from .base import Base
from .tenant import Tenant
from .user import User
from .alert import Alert
from .threshold import Threshold
from .session import Session

__all__ = [
    "Base",
    "Tenant",
    "User",
    "Alert",
    "Threshold",
    "Session",
]
