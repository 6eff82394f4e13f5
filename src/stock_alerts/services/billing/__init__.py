"""
Billing plans and plan-limit queries.
"""

from .plans import Plan, FREE_PLAN, PRO_PLAN, get_plan_for_user
from .threshold_limits import ThresholdLimitInfo, ThresholdLimitService

__all__ = [
    "Plan",
    "FREE_PLAN",
    "PRO_PLAN",
    "get_plan_for_user",
    "ThresholdLimitInfo",
    "ThresholdLimitService",
]
