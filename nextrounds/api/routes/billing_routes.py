"""
Billing Routes

POST /create-checkout - Start a Stripe Checkout for the Pro plan
POST /create-portal - Open the Stripe billing portal
POST /sync-subscription - Re-read subscription state from Stripe
POST /manual-downgrade - Drop a manually granted Pro plan
POST /process-subscription-downgrades - Downgrade expired Pro users (cron)
GET /process-subscription-downgrades - Preview expired Pro users
"""

import hmac
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from nextrounds.core.auth import get_current_user
from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger
from nextrounds.schemas.schemas import (
    CheckoutResponse, PortalResponse, SyncSubscriptionResponse,
    ManualDowngradeResponse, ProcessDowngradesResponse, ExpiredPreviewResponse
)
from nextrounds.services.stripe_service import StripeClient, get_stripe_client, stripe_get
from nextrounds.services.subscription_service import (
    SubscriptionService, get_subscription_service, is_manually_upgraded
)

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(tags=["Billing"])


def require_stripe_client() -> StripeClient:
    """Stripe client, or 500 when no secret key is configured."""
    if not settings.stripe_configured:
        logger.error("Stripe secret key not configured")
        raise HTTPException(
            status_code=500,
            detail="Stripe not configured. Please add your Stripe secret key to environment variables."
        )
    return get_stripe_client()


def require_cron_secret(x_cron_secret: Optional[str] = Header(None, alias="X-Cron-Secret")):
    """When CRON_SECRET is set, the caller must send it back."""
    if not settings.cron_secret:
        return
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.cron_secret):
        raise HTTPException(status_code=401, detail="Invalid cron secret")


def request_origin(request: Request) -> str:
    return (request.headers.get("origin") or settings.app_url).rstrip("/")


@router.post("/create-checkout", response_model=CheckoutResponse)
def create_checkout(
    request: Request,
    user: dict = Depends(get_current_user),
    stripe_client: StripeClient = Depends(require_stripe_client)
):
    """Create a subscription Checkout Session; the client redirects to `url`."""
    try:
        session = stripe_client.create_checkout_session(user["id"], user.get("email"), request_origin(request))
    except Exception as e:
        logger.error(f"Error creating checkout session for {user['id']}: {e}")
        raise HTTPException(status_code=500, detail="Error creating checkout session")

    logger.info(f"Checkout session {stripe_get(session, 'id')} created for {user['id']}")
    return {"session_id": stripe_get(session, "id"), "url": stripe_get(session, "url")}


@router.post("/create-portal", response_model=PortalResponse)
def create_portal(
    request: Request,
    user: dict = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
    stripe_client: StripeClient = Depends(require_stripe_client)
):
    """Billing portal session for users with a Stripe customer."""
    row = service.users.get_by_id(user["id"])
    if row is None:
        raise HTTPException(status_code=404, detail="User not found")

    if is_manually_upgraded(row):
        raise HTTPException(
            status_code=400,
            detail={
                "message": "You have a manually granted Pro plan. Please contact support to manage your subscription.",
                "is_manual_upgrade": True,
            }
        )

    customer_id = row.get("stripe_customer_id")
    if not customer_id:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "No active subscription found. Please subscribe first.",
                "no_subscription": True,
            }
        )

    try:
        session = stripe_client.create_portal_session(customer_id, f"{request_origin(request)}/#pricing")
    except Exception as e:
        logger.error(f"Error creating portal session for {user['id']}: {e}")
        raise HTTPException(status_code=500, detail="Error creating customer portal session")

    return {"url": stripe_get(session, "url")}


@router.post("/sync-subscription", response_model=SyncSubscriptionResponse)
def sync_subscription(
    user: dict = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Refresh plan and dates from Stripe (e.g. after returning from checkout)."""
    return service.sync_from_stripe(user["id"], user.get("email"))


@router.post("/manual-downgrade", response_model=ManualDowngradeResponse)
def manual_downgrade(
    user: dict = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """Only for Pro plans granted without a Stripe subscription."""
    return service.manual_downgrade(user["id"])


@router.post(
    "/process-subscription-downgrades",
    response_model=ProcessDowngradesResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_cron_secret)]
)
def process_subscription_downgrades(
    service: SubscriptionService = Depends(get_subscription_service)
):
    """
    Downgrade Pro users whose cancelled subscription has run out.

    Meant to be called by a scheduler.
    """
    try:
        return service.process_expired_downgrades()
    except Exception as e:
        logger.error(f"Error finding expired subscriptions: {e}")
        raise HTTPException(status_code=500, detail="Error finding expired subscriptions")


@router.get(
    "/process-subscription-downgrades",
    response_model=ExpiredPreviewResponse,
    dependencies=[Depends(require_cron_secret)]
)
def preview_subscription_downgrades(
    service: SubscriptionService = Depends(get_subscription_service)
):
    """List the Pro users the next sweep would downgrade."""
    now = datetime.now(timezone.utc)
    try:
        expired = service.find_expired(now)
    except Exception as e:
        logger.error(f"Error finding expired subscriptions: {e}")
        raise HTTPException(status_code=500, detail="Database error")

    return {
        "timestamp": now,
        "expired_subscriptions_count": len(expired),
        "expired_users": [
            {
                "id": str(u["id"]),
                "email": u.get("email"),
                "subscription_end_date": u.get("subscription_end_date"),
            }
            for u in expired
        ],
    }
