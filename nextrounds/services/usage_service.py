"""
Usage Metering Service

Counts generations in the current calendar month (UTC) and decides
whether a user may generate again.

Plan rules:
- Pro  = subscription_plan 'pro' AND subscription_status 'active'
- Free = everything else, including a missing users row
- Free users get FREE_MONTHLY_LIMIT generations per month
- Pro usage is reported with limit/remaining of -1 (unlimited)
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger
from nextrounds.services.postgres_service import (
    UserRecordService, GenerationRecordService, UsageTrackingService
)
from nextrounds.services.stripe_service import (
    get_stripe_client, stripe_get, subscription_period_end
)

settings = get_settings()
logger = get_logger(__name__)

UNLIMITED = -1


def get_month_start(now: datetime = None) -> datetime:
    """00:00 UTC on the first day of the month containing `now`."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def is_pro_user(user_row: Optional[dict]) -> bool:
    if not user_row:
        return False
    return (
        user_row.get("subscription_plan") == "pro"
        and user_row.get("subscription_status") == "active"
    )


def build_usage_summary(
    current: int,
    is_pro: bool,
    limit: int,
    subscription_end_date: datetime = None,
    now: datetime = None
) -> dict:
    """Usage block returned by /usage and after each generation."""
    if is_pro:
        now = now or datetime.now(timezone.utc)
        return {
            "current": current,
            "limit": UNLIMITED,
            "remaining": UNLIMITED,
            "is_pro": True,
            "subscription_end_date": subscription_end_date,
            "is_ending_soon": bool(subscription_end_date and subscription_end_date > now),
        }
    return {
        "current": current,
        "limit": limit,
        "remaining": max(0, limit - current),
        "is_pro": False,
    }


class UsageService:
    """
    Reads the meter and records generations.

    Stores and the Stripe client are injectable; by default they talk to
    Postgres and Stripe.
    """

    def __init__(
        self,
        users: UserRecordService = None,
        generations: GenerationRecordService = None,
        tracking: UsageTrackingService = None,
        stripe_client=None,
        free_limit: int = None
    ):
        self.users = users or UserRecordService()
        self.generations = generations or GenerationRecordService()
        self.tracking = tracking or UsageTrackingService()
        self._stripe_client = stripe_client
        self.free_limit = free_limit if free_limit is not None else settings.free_monthly_limit

    @property
    def stripe_client(self):
        if self._stripe_client is None and settings.stripe_configured:
            self._stripe_client = get_stripe_client()
        return self._stripe_client

    # ========================================
    # READING THE METER
    # ========================================

    def count_current(self, user_id: str, now: datetime = None) -> int:
        """Generations this month. Raises 500 when the count fails."""
        try:
            return self.generations.count_since(user_id, get_month_start(now))
        except Exception as e:
            logger.error(f"Error checking usage for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Error checking usage limits")

    def get_user_plan(self, user_id: str) -> Optional[dict]:
        """User row, or None if it is missing or unreadable (treated as Free)."""
        try:
            return self.users.get_by_id(user_id)
        except Exception as e:
            logger.error(f"Error fetching plan for {user_id}: {e}")
            return None

    def get_usage_summary(self, user_id: str, now: datetime = None) -> dict:
        current = self.count_current(user_id, now)
        user_row = self.get_user_plan(user_id)
        pro = is_pro_user(user_row)
        logger.info(f"Usage for {user_id}: {current} this month (pro={pro})")
        return build_usage_summary(
            current,
            pro,
            self.free_limit,
            subscription_end_date=(user_row or {}).get("subscription_end_date"),
            now=now
        )

    # ========================================
    # QUOTA CHECK (before generation)
    # ========================================

    def check_quota(self, user_id: str, now: datetime = None) -> dict:
        """
        Decide whether the user may generate.

        Returns:
            {"current", "limit", "remaining", "is_pro", and for Pro users
             "subscription_end_date", "subscription_renewal_date",
             "is_subscription_cancelled"}

        Raises:
            HTTPException 429 for a Free user at the limit
        """
        current = self.count_current(user_id, now)
        user_row = self.get_user_plan(user_id)

        if is_pro_user(user_row):
            quota = {
                "current": current,
                "limit": UNLIMITED,
                "remaining": UNLIMITED,
                "is_pro": True,
            }
            quota.update(self.resolve_subscription_dates(user_row))
            return quota

        if current >= self.free_limit:
            logger.info(f"User {user_id} over free limit: {current} >= {self.free_limit}")
            raise HTTPException(
                status_code=429,
                detail={
                    "message": (
                        f"You've reached your limit of {self.free_limit} questions per month. "
                        "Upgrade to Pro for unlimited questions!"
                    ),
                    "usage": current,
                    "limit": self.free_limit,
                }
            )

        return {
            "current": current,
            "limit": self.free_limit,
            "remaining": self.free_limit - current,
            "is_pro": False,
        }

    def resolve_subscription_dates(self, user_row: dict) -> dict:
        """
        Complete a Pro user's stored dates from their active Stripe subscription.

        A subscription set to cancel keeps an end date and no renewal date;
        a renewing one keeps a renewal date and no end date. Missing dates
        default to the current period end. Stripe failures fall back to the
        stored values.
        """
        end_date = user_row.get("subscription_end_date")
        renewal_date = user_row.get("subscription_renewal_date")
        cancelled = False

        customer_id = user_row.get("stripe_customer_id")
        client = self.stripe_client
        if customer_id and client is not None:
            try:
                subscriptions = client.list_active_subscriptions(customer_id)
                if subscriptions:
                    subscription = subscriptions[0]
                    cancelled = bool(stripe_get(subscription, "cancel_at_period_end"))
                    period_end = subscription_period_end(subscription)
                    period_end_at = (
                        datetime.fromtimestamp(period_end, tz=timezone.utc) if period_end else None
                    )
                    if cancelled:
                        end_date = end_date or period_end_at
                        renewal_date = None
                    else:
                        renewal_date = renewal_date or period_end_at
                        end_date = None
            except Exception as e:
                logger.error(f"Error checking Stripe subscription for {customer_id}: {e}")

        return {
            "subscription_end_date": end_date,
            "subscription_renewal_date": renewal_date,
            "is_subscription_cancelled": cancelled,
        }

    # ========================================
    # RECORDING A GENERATION
    # ========================================

    def record_generation(
        self,
        user_id: str,
        job_description: str,
        hiring_stage: str,
        questions_count: int,
        current: int,
        now: datetime = None
    ):
        """
        Insert the metered row, then refresh the monthly counter.

        Raises:
            HTTPException 500 if the metered row cannot be written
        """
        try:
            self.generations.insert(
                user_id=user_id,
                job_title=job_description[:500],
                hiring_stage=hiring_stage,
                questions_count=questions_count,
                generated_at=now
            )
        except Exception as e:
            logger.error(f"Error recording usage for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to record usage. Please try again.")

        try:
            self.tracking.set_count(user_id, current + 1, get_month_start(now))
        except Exception as e:
            logger.warning(f"Usage tracking update failed for {user_id}: {e}")

    @staticmethod
    def usage_after_generation(quota: dict) -> dict:
        """Usage block returned with a successful generation."""
        usage = {
            "current": quota["current"] + 1,
            "limit": quota["limit"],
            "remaining": UNLIMITED if quota["is_pro"] else max(0, quota["remaining"] - 1),
            "is_pro": quota["is_pro"],
        }
        if quota["is_pro"]:
            usage["subscription_end_date"] = quota.get("subscription_end_date")
            usage["subscription_renewal_date"] = quota.get("subscription_renewal_date")
            usage["is_subscription_cancelled"] = quota.get("is_subscription_cancelled", False)
        return usage


_usage_service: UsageService = None


def get_usage_service() -> UsageService:
    """Get or create the usage service (singleton pattern)"""
    global _usage_service
    if _usage_service is None:
        _usage_service = UsageService()
    return _usage_service
