"""Monthly reel quota: check before starting a reel, count after it completes."""

import logging
from dataclasses import dataclass
from datetime import date

from services.reel_store import ReelStore

logger = logging.getLogger(__name__)

REELS_METRIC = "reels_per_month"
UNLIMITED = -1


@dataclass
class UsageCheck:
    """Result of a quota check."""

    allowed: bool
    current_usage: int
    limit: int
    plan_name: str
    metric_name: str = REELS_METRIC

    def to_dict(self) -> dict:
        return {
            "currentUsage": self.current_usage,
            "limit": self.limit,
            "planName": self.plan_name,
            "metricName": self.metric_name,
        }


def current_period_start(today: date | None = None) -> str:
    """First day of the current calendar month, ISO formatted."""
    today = today or date.today()
    return today.replace(day=1).isoformat()


class UsageService:
    """Per-user monthly reel counter backed by the reel store."""

    def __init__(self, store: ReelStore, limit: int = 5, plan_name: str = "Free Plan"):
        """Initialize usage service.

        Args:
            store: Connected reel store
            limit: Reels per month; -1 for unlimited
            plan_name: Plan name reported back to callers
        """
        self.store = store
        self.limit = limit
        self.plan_name = plan_name

    async def check_limit(self, user_id: str, metric_name: str = REELS_METRIC) -> UsageCheck:
        current = await self.store.get_usage(user_id, metric_name, current_period_start())
        allowed = self.limit == UNLIMITED or current < self.limit
        if not allowed:
            logger.info(f"User {user_id} reached {metric_name} limit ({current}/{self.limit})")
        return UsageCheck(
            allowed=allowed,
            current_usage=current,
            limit=self.limit,
            plan_name=self.plan_name,
            metric_name=metric_name,
        )

    async def increment(self, user_id: str, metric_name: str = REELS_METRIC) -> int:
        """Count one more completed reel for the current month."""
        count = await self.store.increment_usage(user_id, metric_name, current_period_start())
        logger.debug(f"Usage for {user_id} {metric_name}: {count}")
        return count
