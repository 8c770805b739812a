"""
Webhook Routes

POST /webhook/stripe - Stripe subscription lifecycle events
"""

import json
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from nextrounds.core.logging_config import get_logger
from nextrounds.services.stripe_service import StripeClient, get_stripe_client
from nextrounds.services.subscription_service import SubscriptionService, get_subscription_service

logger = get_logger(__name__)

router = APIRouter(tags=["Webhooks"])


@router.post("/webhook/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    stripe_client: StripeClient = Depends(get_stripe_client),
    service: SubscriptionService = Depends(get_subscription_service)
):
    """
    Verify the signature, then apply the event to the users table.

    Redelivered events are acknowledged with "duplicate"; events older than
    the user's last applied event are acknowledged with "stale".
    """
    payload = await request.body()

    if not stripe_signature:
        logger.error("Webhook received without Stripe signature")
        raise HTTPException(status_code=400, detail="No signature found")

    try:
        await run_in_threadpool(stripe_client.construct_event, payload, stripe_signature)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    # Signature covers the raw body; work with plain dicts from here on
    event = json.loads(payload)
    logger.info(f"Webhook event {event.get('id')} received: {event.get('type')}")

    try:
        return await run_in_threadpool(service.handle_event, event)
    except Exception:
        logger.exception(f"Error processing webhook {event.get('id')}")
        raise HTTPException(status_code=500, detail="Error processing webhook")
