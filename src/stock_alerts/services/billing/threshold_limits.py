"""
Threshold limit service.

Reports how many of a user's thresholds fit their billing plan. Free plans
only evaluate the oldest thresholds up to the allowance; the rest are
"skipped" and mentioned in the digest e-mail.
"""

import math
from dataclasses import dataclass
from typing import Set

from stock_alerts.core.interfaces import ThresholdRepository, UserRepository
from stock_alerts.core.models import User
from stock_alerts.services.billing.plans import Plan, get_plan_for_user
from stock_alerts.utils.exceptions import UserNotFoundError
from stock_alerts.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ThresholdLimitInfo:
    plan: Plan
    current_count: int
    max_allowed: float
    remaining: float
    is_over_limit: bool


class ThresholdLimitService:
    """Plan-limit queries for one user at a time."""

    def __init__(self, user_repo: UserRepository, threshold_repo: ThresholdRepository):
        self.user_repo = user_repo
        self.threshold_repo = threshold_repo

    async def _get_plan(self, user_id: str) -> Plan:
        user: User = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return get_plan_for_user(user.subscription_status, user.subscription_ends_at)

    async def get_user_limit_info(self, user_id: str) -> ThresholdLimitInfo:
        plan = await self._get_plan(user_id)
        current_count = await self.threshold_repo.count_by_user_across_tenants(user_id)
        max_allowed = plan.max_thresholds
        is_over_limit = current_count > max_allowed

        if plan.is_unlimited:
            remaining = math.inf
        elif is_over_limit:
            remaining = 0
        else:
            remaining = int(max_allowed) - current_count

        return ThresholdLimitInfo(
            plan=plan,
            current_count=current_count,
            max_allowed=max_allowed,
            remaining=remaining,
            is_over_limit=is_over_limit,
        )

    async def get_active_threshold_ids(self, user_id: str) -> Set[str]:
        """Ids of the thresholds that generate alerts under the user's plan."""
        plan = await self._get_plan(user_id)
        limit = None if plan.is_unlimited else int(plan.max_thresholds)
        thresholds = await self.threshold_repo.get_active_thresholds_for_user(user_id, limit)
        return {t.id for t in thresholds}

    async def get_skipped_count(self, user_id: str) -> int:
        """Number of thresholds ignored because the user is over the plan allowance."""
        plan = await self._get_plan(user_id)
        if plan.is_unlimited:
            return 0

        skipped = await self.threshold_repo.get_skipped_thresholds_for_user(user_id, int(plan.max_thresholds))
        if skipped:
            logger.debug(f"User {user_id} has {len(skipped)} thresholds over the {plan.name} limit")
        return len(skipped)
