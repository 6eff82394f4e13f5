"""
SQLAlchemy implementations of the repository protocols in
``stock_alerts.core.interfaces``.
"""

from .tenant import SqlTenantRepository
from .user import SqlUserRepository
from .alert import SqlAlertRepository
from .threshold import SqlThresholdRepository
from .session import SqlSessionRepository

__all__ = [
    "SqlTenantRepository",
    "SqlUserRepository",
    "SqlAlertRepository",
    "SqlThresholdRepository",
    "SqlSessionRepository",
]
