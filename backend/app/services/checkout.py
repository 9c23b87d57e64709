"""Checkout completion: confirm the webhook landed, then capture.

Marketplace payments are authorized with manual capture. The card is only
charged once the purchase record exists; if verification does not confirm,
the authorization is left alone and simply expires.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import stripe

from app.config import settings
from app.services.polling import PollOutcome
from app.services.purchase_verification import PurchaseVerifier, outcome_message

logger = logging.getLogger(__name__)

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY


class PaymentCaptureError(Exception):
    """Stripe refused or failed to capture an authorized payment."""


@dataclass(frozen=True)
class CheckoutResult:
    outcome: PollOutcome
    attempts: int
    captured: bool
    payment_status: Optional[str]
    message: str


async def capture_payment(payment_intent_id: str) -> str:
    """Capture a previously authorized PaymentIntent and return its status.

    The Stripe client is blocking, so the call runs in a worker thread.
    """
    if not payment_intent_id:
        raise ValueError("Missing payment_intent_id")

    logger.info(f"Capturing payment: {payment_intent_id}")
    try:
        payment_intent = await asyncio.to_thread(stripe.PaymentIntent.capture, payment_intent_id)
    except stripe.StripeError as e:
        logger.error(f"Failed to capture payment {payment_intent_id}: {e}")
        raise PaymentCaptureError(str(e)) from e

    logger.info(f"Payment captured: {payment_intent.id} ({payment_intent.status})")
    return payment_intent.status


async def complete_marketplace_checkout(
    verifier: PurchaseVerifier,
    product_id: str,
    payment_intent_id: str,
    buyer_id: str,
    max_attempts: Optional[int] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> CheckoutResult:
    """
    Verify the purchase record, and capture only if it is confirmed.

    Raises:
        InvalidVerificationRequest: empty identifiers
        PaymentCaptureError: the record exists but Stripe capture failed
    """
    result = await verifier.verify_record_exists(
        product_id,
        payment_intent_id,
        buyer_id,
        max_attempts=max_attempts or settings.CHECKOUT_VERIFY_MAX_ATTEMPTS,
        cancel_event=cancel_event,
    )

    if not result.confirmed:
        logger.warning(
            f"Checkout for {product_id} not confirmed ({result.outcome.value}); "
            f"leaving payment {payment_intent_id} uncaptured"
        )
        message = outcome_message(result.outcome)
        if result.outcome is PollOutcome.NOT_CONFIRMED:
            message = f"{message} Your card has not been charged yet."
        return CheckoutResult(
            outcome=result.outcome,
            attempts=result.attempts,
            captured=False,
            payment_status=None,
            message=message,
        )

    payment_status = await capture_payment(payment_intent_id)
    return CheckoutResult(
        outcome=result.outcome,
        attempts=result.attempts,
        captured=True,
        payment_status=payment_status,
        message="Purchase complete! You will receive a confirmation email shortly.",
    )
