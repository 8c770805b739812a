"""
Subscription Reconciliation Service

Keeps the users table in step with Stripe's subscription lifecycle.

State written per user:
- subscription_plan / subscription_status   ('pro','active') or ('free', ...)
- subscription_end_date                     set while a cancellation is pending
- subscription_renewal_date                 set while the subscription renews
- subscription_event_at                     created time of the last applied event

Webhook deliveries are deduplicated by event id and events older than the
last applied one are skipped, so redelivery and reordering are harmless.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException

from nextrounds.core.logging_config import get_logger
from nextrounds.services.postgres_service import UserRecordService, WebhookEventService
from nextrounds.services.stripe_service import (
    get_stripe_client, stripe_get, subscription_period_end
)
from nextrounds.services.usage_service import is_pro_user

logger = get_logger(__name__)

ACTIVE_STRIPE_STATUSES = ("active", "trialing")

DOWNGRADED = {
    "subscription_plan": "free",
    "subscription_status": "cancelled",
    "subscription_end_date": None,
    "subscription_renewal_date": None,
}


def timestamp_to_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def subscription_dates(subscription) -> dict:
    """
    End/renewal dates for an active subscription.

    Cancelling at period end -> end date, no renewal date.
    Renewing                 -> renewal date, no end date.
    """
    period_end = timestamp_to_datetime(subscription_period_end(subscription))
    if stripe_get(subscription, "cancel_at_period_end"):
        end_date = period_end or timestamp_to_datetime(stripe_get(subscription, "cancel_at"))
        return {"subscription_end_date": end_date, "subscription_renewal_date": None}
    return {"subscription_end_date": None, "subscription_renewal_date": period_end}


def invoice_period_end(invoice) -> Optional[datetime]:
    lines = stripe_get(stripe_get(invoice, "lines"), "data") or []
    for line in lines:
        end = stripe_get(stripe_get(line, "period"), "end")
        if end:
            return timestamp_to_datetime(end)
    return None


def is_manually_upgraded(user_row: Optional[dict]) -> bool:
    """Pro granted without a Stripe customer."""
    return is_pro_user(user_row) and not user_row.get("stripe_customer_id")


class SubscriptionService:
    """
    Applies Stripe events and manual operations to the users table.
    """

    def __init__(
        self,
        users: UserRecordService = None,
        events: WebhookEventService = None,
        stripe_client=None
    ):
        self.users = users or UserRecordService()
        self.events = events or WebhookEventService()
        self._stripe_client = stripe_client
        self.handlers = {
            "checkout.session.completed": self._on_checkout_completed,
            "customer.subscription.created": self._on_subscription_changed,
            "customer.subscription.updated": self._on_subscription_changed,
            "customer.subscription.deleted": self._on_subscription_deleted,
            "invoice.payment_succeeded": self._on_invoice_paid,
        }

    @property
    def stripe_client(self):
        if self._stripe_client is None:
            self._stripe_client = get_stripe_client()
        return self._stripe_client

    # ========================================
    # WEBHOOK EVENTS
    # ========================================

    def handle_event(self, event: dict) -> dict:
        """
        Apply one verified webhook event.

        Returns:
            Acknowledgement body; "duplicate" or "stale" flags mark
            events that were received but not applied.
        """
        event_id = stripe_get(event, "id")
        event_type = stripe_get(event, "type")
        created_at = timestamp_to_datetime(stripe_get(event, "created"))
        obj = stripe_get(stripe_get(event, "data"), "object") or {}

        if event_id and self.events.exists(event_id):
            logger.info(f"Duplicate webhook {event_id} ({event_type}) ignored")
            return {"received": True, "duplicate": True}

        handler = self.handlers.get(event_type)
        response = {"received": True}
        if handler is None:
            logger.info(f"Unhandled webhook event type: {event_type}")
        else:
            outcome = handler(obj, created_at)
            logger.info(f"Webhook {event_id} ({event_type}): {outcome}")
            if outcome == "stale":
                response["stale"] = True

        if event_id:
            self.events.record(event_id, event_type)
        return response

    def _find_user_for(self, obj) -> Optional[dict]:
        """Resolve the user by metadata.user_id, then by Stripe customer id."""
        user_id = stripe_get(stripe_get(obj, "metadata"), "user_id")
        if not user_id:
            details = stripe_get(obj, "subscription_details")
            user_id = stripe_get(stripe_get(details, "metadata"), "user_id")
        if user_id:
            user = self.users.get_by_id(user_id)
            if user:
                return user

        customer_id = stripe_get(obj, "customer")
        if customer_id:
            return self.users.get_by_customer_id(customer_id)
        return None

    @staticmethod
    def _is_stale(user: dict, created_at: Optional[datetime]) -> bool:
        last_applied = user.get("subscription_event_at")
        return bool(created_at and last_applied and created_at < last_applied)

    def _apply(self, obj, created_at: Optional[datetime], fields: dict) -> str:
        user = self._find_user_for(obj)
        if user is None:
            logger.error(f"No user found for customer {stripe_get(obj, 'customer')}")
            return "user_not_found"
        if self._is_stale(user, created_at):
            return "stale"

        if created_at:
            fields = dict(fields, subscription_event_at=created_at)
        self.users.update_subscription(user["id"], **fields)
        return "applied"

    def _on_checkout_completed(self, session, created_at) -> str:
        fields = {"subscription_plan": "pro", "subscription_status": "active"}
        customer_id = stripe_get(session, "customer")
        if customer_id:
            fields["stripe_customer_id"] = customer_id
        return self._apply(session, created_at, fields)

    def _on_subscription_changed(self, subscription, created_at) -> str:
        status = stripe_get(subscription, "status")
        if status in ACTIVE_STRIPE_STATUSES:
            fields = {"subscription_plan": "pro", "subscription_status": "active"}
            fields.update(subscription_dates(subscription))
        else:
            fields = dict(DOWNGRADED)
        customer_id = stripe_get(subscription, "customer")
        if customer_id:
            fields["stripe_customer_id"] = customer_id
        return self._apply(subscription, created_at, fields)

    def _on_subscription_deleted(self, subscription, created_at) -> str:
        return self._apply(subscription, created_at, dict(DOWNGRADED))

    def _on_invoice_paid(self, invoice, created_at) -> str:
        fields = {
            "subscription_plan": "pro",
            "subscription_status": "active",
            "subscription_end_date": None,
        }
        renewal = invoice_period_end(invoice)
        if renewal:
            fields["subscription_renewal_date"] = renewal
        return self._apply(invoice, created_at, fields)

    # ========================================
    # SYNC FROM STRIPE
    # ========================================

    def sync_from_stripe(self, user_id: str, email: str = None) -> dict:
        """
        Re-read the user's subscription from Stripe and store the result.

        Raises:
            HTTPException 404 if the user row is missing
            HTTPException 500 if Stripe cannot be reached
        """
        row = self.users.get_by_id(user_id)
        if row is None:
            raise HTTPException(status_code=404, detail="User not found in database")

        customer_id = row.get("stripe_customer_id")
        fields = {}
        try:
            if customer_id:
                subscriptions = self.stripe_client.list_active_subscriptions(customer_id, limit=10)
            else:
                subscriptions = []
                customer = self.stripe_client.find_customer_by_email(email) if email else None
                if customer is not None:
                    subscriptions = self.stripe_client.list_active_subscriptions(
                        stripe_get(customer, "id"), limit=10
                    )
                    if subscriptions:
                        fields["stripe_customer_id"] = stripe_get(customer, "id")
        except Exception as e:
            logger.error(f"Stripe lookup failed during sync for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to check Stripe subscription")

        has_active = len(subscriptions) > 0
        if has_active:
            fields.update({"subscription_plan": "pro", "subscription_status": "active"})
            fields.update(subscription_dates(subscriptions[0]))
        elif is_pro_user(row):
            fields.update(DOWNGRADED)

        updated_row = self.users.update_subscription(user_id, **fields) if fields else row
        new_plan = (updated_row or row).get("subscription_plan")
        logger.info(f"Synced {user_id}: active={has_active} plan={new_plan}")

        return {
            "success": True,
            "user": updated_row,
            "had_active_subscription": has_active,
            "updated": row.get("subscription_plan") != new_plan,
        }

    # ========================================
    # EXPIRED SUBSCRIPTION SWEEP
    # ========================================

    def find_expired(self, now: datetime = None) -> list:
        return self.users.list_expired_pro(now or datetime.now(timezone.utc))

    def process_expired_downgrades(self, now: datetime = None) -> dict:
        """Downgrade every pro/active user whose end date has passed."""
        expired = self.find_expired(now)
        processed = 0
        errors = []

        for user in expired:
            try:
                self.users.update_subscription(
                    user["id"],
                    subscription_plan="free",
                    subscription_status="expired",
                    subscription_end_date=None
                )
                processed += 1
            except Exception as e:
                logger.error(f"Failed to downgrade {user['id']}: {e}")
                errors.append({"user_id": str(user["id"]), "email": user.get("email"), "error": str(e)})

        logger.info(f"Expired subscription sweep: {processed}/{len(expired)} downgraded")
        result = {"success": True, "processed": processed, "total": len(expired)}
        if errors:
            result["errors"] = errors
        return result

    # ========================================
    # MANUAL DOWNGRADE
    # ========================================

    def manual_downgrade(self, user_id: str) -> dict:
        row = self.users.get_by_id(user_id)
        if row is None:
            raise HTTPException(status_code=404, detail="User not found")

        if not is_manually_upgraded(row):
            raise HTTPException(
                status_code=400,
                detail=(
                    "Only manually upgraded Pro users can use this feature. "
                    "Please use the regular subscription management for paid subscriptions."
                )
            )

        self.users.update_subscription(user_id, **DOWNGRADED)
        logger.info(f"Manually downgraded {user_id} to free")
        return {
            "success": True,
            "message": "Successfully downgraded to Free plan",
            "new_plan": "free",
        }


_subscription_service: SubscriptionService = None


def get_subscription_service() -> SubscriptionService:
    """Get or create the subscription service (singleton pattern)"""
    global _subscription_service
    if _subscription_service is None:
        _subscription_service = SubscriptionService()
    return _subscription_service
