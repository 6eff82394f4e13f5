"""
Billing plans and plan resolution.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class Plan:
    name: str
    max_thresholds: float

    @property
    def is_unlimited(self) -> bool:
        return math.isinf(self.max_thresholds)


FREE_PLAN = Plan(name="FREE", max_thresholds=50)
PRO_PLAN = Plan(name="PRO", max_thresholds=math.inf)

PLANS = {
    "FREE": FREE_PLAN,
    "PRO": PRO_PLAN,
}


def get_plan_for_user(subscription_status: str,
                      subscription_ends_at: Optional[datetime] = None,
                      now: Optional[datetime] = None) -> Plan:
    """
    Resolve the plan from a user's subscription columns.

    Active subscriptions are PRO. Cancelled ones stay PRO until the paid
    period ends.
    """
    if subscription_status == "active":
        return PRO_PLAN

    if subscription_status == "cancelled" and subscription_ends_at:
        now = now or datetime.now(timezone.utc)
        ends_at = subscription_ends_at
        if ends_at.tzinfo is None:
            ends_at = ends_at.replace(tzinfo=timezone.utc)
        if ends_at > now:
            return PRO_PLAN

    return FREE_PLAN
