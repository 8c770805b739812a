"""
Stripe Client - thin wrapper over the stripe library.

Everything that talks to Stripe goes through StripeClient so the
reconciliation logic can be exercised against a fake in tests.
"""
from typing import Optional, List

import stripe

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)


def stripe_get(obj, key: str, default=None):
    """Read a field from a Stripe object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def subscription_period_end(subscription) -> Optional[int]:
    """
    Unix timestamp the current billing period ends at.

    Older API versions carry current_period_end on the subscription;
    newer ones move it onto the subscription items.
    """
    period_end = stripe_get(subscription, "current_period_end")
    if period_end:
        return int(period_end)

    items = stripe_get(stripe_get(subscription, "items"), "data") or []
    for item in items:
        period_end = stripe_get(item, "current_period_end")
        if period_end:
            return int(period_end)
    return None


class StripeClient:
    """
    Wrapper for the Stripe API calls this service needs.
    """

    def __init__(self, api_key: str = None):
        self.api_key = api_key or settings.stripe_secret_key
        stripe.api_key = self.api_key
        stripe.api_version = settings.stripe_api_version

    def create_checkout_session(self, user_id: str, email: str, origin: str):
        """Subscription-mode Checkout Session for the Pro plan."""
        metadata = {"user_id": user_id, "user_email": email or ""}
        return stripe.checkout.Session.create(
            mode="subscription",
            payment_method_types=["card"],
            customer_email=email,
            line_items=[{
                "price_data": {
                    "currency": settings.pro_currency,
                    "product_data": {
                        "name": settings.pro_plan_name,
                        "description": settings.pro_plan_description,
                    },
                    "unit_amount": settings.pro_price_cents,
                    "recurring": {"interval": "month"},
                },
                "quantity": 1,
            }],
            success_url=f"{origin}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{origin}/?canceled=true",
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )

    def create_portal_session(self, customer_id: str, return_url: str):
        return stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=return_url,
        )

    def list_active_subscriptions(self, customer_id: str, limit: int = 1) -> List:
        result = stripe.Subscription.list(customer=customer_id, status="active", limit=limit)
        return list(stripe_get(result, "data") or [])

    def find_customer_by_email(self, email: str):
        result = stripe.Customer.list(email=email, limit=1)
        customers = stripe_get(result, "data") or []
        return customers[0] if customers else None

    def construct_event(self, payload: bytes, signature: str, secret: str = None):
        """
        Verify a webhook signature.

        Raises:
            ValueError: payload is not valid JSON
            stripe.SignatureVerificationError: signature mismatch
        """
        return stripe.Webhook.construct_event(
            payload, signature, secret or settings.stripe_webhook_secret
        )

    def test_connection(self) -> bool:
        """Test if the Stripe API accepts the configured key"""
        try:
            stripe.Customer.list(limit=1)
            return True
        except Exception as e:
            logger.warning(f"Stripe connection failed: {e}")
            return False


# Singleton instance
_stripe_client: StripeClient = None


def get_stripe_client() -> StripeClient:
    """Get or create Stripe client (singleton pattern)"""
    global _stripe_client
    if _stripe_client is None:
        _stripe_client = StripeClient()
    return _stripe_client
