"""Purchase verification router.

Clients call these right after Stripe confirms authorization. A response of
``not_confirmed`` is not a failure: the webhook may still land, so the UI
should show a neutral "still confirming" state instead of an error.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.config import settings
from app.dependencies import get_purchase_verifier
from app.rate_limit import limiter
from app.schemas.payments import (
    ArtworkVerificationRequest, MarketplaceVerificationRequest, VerificationResponse,
    CheckoutCompleteRequest, CheckoutCompleteResponse,
)
from app.services.checkout import PaymentCaptureError, complete_marketplace_checkout
from app.services.polling import PollResult
from app.services.purchase_verification import (
    InvalidVerificationRequest, PurchaseVerifier, outcome_message,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DISCONNECT_CHECK_SECONDS = 0.5


@asynccontextmanager
async def cancel_on_disconnect(request: Request):
    """Yield an event that is set once the client goes away."""
    cancel_event = asyncio.Event()

    async def watch():
        while not cancel_event.is_set():
            if await request.is_disconnected():
                logger.info(f"Client disconnected from {request.url.path}, cancelling verification")
                cancel_event.set()
                return
            await asyncio.sleep(DISCONNECT_CHECK_SECONDS)

    watcher = asyncio.create_task(watch())
    try:
        yield cancel_event
    finally:
        watcher.cancel()


def to_response(result: PollResult) -> VerificationResponse:
    return VerificationResponse(
        status=result.outcome,
        confirmed=result.confirmed,
        attempts=result.attempts,
        message=outcome_message(result.outcome),
    )


@router.post("/api/purchases/verify/artwork", response_model=VerificationResponse)
@limiter.limit(settings.VERIFY_RATE_LIMIT)
async def verify_artwork_purchase(
    request: Request,
    request_data: ArtworkVerificationRequest,
    verifier: PurchaseVerifier = Depends(get_purchase_verifier),
):
    """
    Wait until the artwork is marked sold by this payment.

    - Polls the artworks collection with the configured interval
    - Returns 200 with ``not_confirmed`` if the webhook has not landed yet
    """
    try:
        async with cancel_on_disconnect(request) as cancel_event:
            result = await verifier.verify_item_state_transition(
                request_data.artwork_id,
                request_data.payment_intent_id,
                max_attempts=request_data.max_attempts,
                cancel_event=cancel_event,
            )
    except InvalidVerificationRequest as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return to_response(result)


@router.post("/api/purchases/verify/marketplace", response_model=VerificationResponse)
@limiter.limit(settings.VERIFY_RATE_LIMIT)
async def verify_marketplace_purchase(
    request: Request,
    request_data: MarketplaceVerificationRequest,
    verifier: PurchaseVerifier = Depends(get_purchase_verifier),
):
    """Wait until a purchase record for (product, payment, buyer) exists."""
    try:
        async with cancel_on_disconnect(request) as cancel_event:
            result = await verifier.verify_record_exists(
                request_data.product_id,
                request_data.payment_intent_id,
                request_data.buyer_id,
                max_attempts=request_data.max_attempts,
                cancel_event=cancel_event,
            )
    except InvalidVerificationRequest as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return to_response(result)


@router.post("/api/purchases/checkout/complete", response_model=CheckoutCompleteResponse)
@limiter.limit(settings.VERIFY_RATE_LIMIT)
async def complete_checkout(
    request: Request,
    request_data: CheckoutCompleteRequest,
    verifier: PurchaseVerifier = Depends(get_purchase_verifier),
):
    """
    Finish a marketplace checkout.

    - Confirms the webhook recorded the purchase
    - Captures the authorized payment only after confirmation
    - Leaves the card uncharged otherwise
    """
    try:
        async with cancel_on_disconnect(request) as cancel_event:
            result = await complete_marketplace_checkout(
                verifier,
                request_data.product_id,
                request_data.payment_intent_id,
                request_data.buyer_id,
                cancel_event=cancel_event,
            )
    except InvalidVerificationRequest as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except PaymentCaptureError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to capture payment: {str(e)}"
        )

    return CheckoutCompleteResponse(
        status=result.outcome,
        captured=result.captured,
        attempts=result.attempts,
        payment_status=result.payment_status,
        message=result.message,
    )
