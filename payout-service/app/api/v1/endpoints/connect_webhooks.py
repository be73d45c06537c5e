# app/api/v1/endpoints/connect_webhooks.py
"""
Webhook endpoint for Stripe Connect events.

Only account lifecycle matters here: payouts on the card-gateway rail are
executed by Stripe, so the service just keeps the local profile flags that
drive status derivation and the publish gate in sync.
"""
import stripe
import logging
from fastapi import APIRouter, Request, HTTPException, Depends, Header
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.config import settings
from app.services.payout.stripe_connect_service import StripeConnectService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe-connect")
async def stripe_connect_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
):
    """
    Handle Stripe Connect webhook events.

    Events handled:
    - account.updated: Sync connected account flags
    """
    body = await request.body()

    if not stripe_signature:
        logger.warning("Connect webhook received without Stripe-Signature header")
        raise HTTPException(status_code=400, detail="Missing signature")

    webhook_secret = settings.STRIPE_CONNECT_WEBHOOK_SECRET
    if not webhook_secret:
        logger.error("STRIPE_CONNECT_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    client_ip = request.client.host if request.client else None

    try:
        event = stripe.Webhook.construct_event(body, stripe_signature, webhook_secret)
    except stripe.SignatureVerificationError:
        logger.warning(f"Invalid Connect webhook signature from {client_ip}")
        raise HTTPException(status_code=400, detail="Invalid signature")
    except ValueError:
        logger.warning("Invalid Connect webhook payload")
        raise HTTPException(status_code=400, detail="Invalid payload")

    if event["type"] == "account.updated":
        try:
            await StripeConnectService().handle_account_updated(
                account_data=event["data"]["object"],
                db=db,
            )
        except Exception as e:
            logger.error(f"Error processing Connect webhook event {event['id']}: {e}")
            # Still return 200 to prevent retries for processing errors
            return {"status": "processing_error", "event_id": event["id"]}
        return {"status": "processed", "event_id": event["id"]}

    logger.info(f"Unhandled Connect event type: {event['type']}")
    return {"status": "ignored", "event_id": event["id"]}
