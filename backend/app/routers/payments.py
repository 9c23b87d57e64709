"""Payments router: manual capture and the Stripe webhook."""
import json
import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.config import settings
from app.schemas.payments import CaptureRequest, CaptureResponse
from app.services.checkout import PaymentCaptureError, capture_payment
from app.services.stripe_webhooks import process_event

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/payments/capture", response_model=CaptureResponse)
async def capture_authorized_payment(request_data: CaptureRequest):
    """
    Capture a previously authorized payment.

    Call this only after access has been granted. An authorization that is
    never captured expires and the card is not charged.
    """
    try:
        payment_status = await capture_payment(request_data.payment_intent_id)
    except PaymentCaptureError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to capture payment: {str(e)}"
        )

    return CaptureResponse(
        success=True,
        payment_intent_id=request_data.payment_intent_id,
        status=payment_status,
    )


@router.post("/api/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events.

    - Verifies webhook signature
    - payment_intent.succeeded marks artworks sold or records purchases
    - payment_intent.payment_failed is logged to failed_payments
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured"
        )

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header"
        )

    # Verify webhook signature
    try:
        stripe.Webhook.construct_event(
            payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload"
        )
    except stripe.SignatureVerificationError:
        logger.warning("Webhook signature verification failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature"
        )

    # Signature checked; handlers work on the plain decoded payload
    event = json.loads(payload)
    return await process_event(db, event)
