"""Stripe webhook processing: the only writer the purchase verifier watches."""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.artwork import Artwork
from app.models.failed_payment import FailedPayment
from app.models.purchase import Purchase
from app.models.sale import Sale

logger = logging.getLogger(__name__)

ARTWORK_ITEM_TYPES = ("original", "print")
PRODUCT_ITEM_TYPES = ("merchandise", "product")


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def build_sale(payment_intent: Dict[str, Any]) -> Sale:
    """
    Ledger row for a successful payment.

    The artist is paid the charge minus Stripe's application fee. Commission
    fields fall back to the older ``platformDonation*`` metadata keys.
    """
    metadata = payment_intent.get("metadata") or {}
    amount = _as_int(payment_intent.get("amount"))
    fee = _as_int(payment_intent.get("application_fee_amount"))
    now = datetime.utcnow()

    return Sale(
        payment_intent_id=payment_intent["id"],
        item_id=metadata["itemId"],
        item_type=metadata["itemType"],
        item_title=metadata.get("itemTitle") or "Untitled",
        buyer_id=metadata["userId"],
        artist_id=metadata["artistId"],
        amount=amount,
        currency=payment_intent.get("currency") or "usd",
        product_amount=_as_int(metadata.get("productAmount"), amount),
        application_fee_amount=fee,
        platform_commission=_as_int(
            metadata.get("platformCommissionAmount") or metadata.get("platformDonationAmount")
        ),
        platform_commission_percentage=_as_float(
            metadata.get("platformCommissionPercentage") or metadata.get("platformDonationPercentage")
        ),
        artist_payout=amount - fee,
        status="completed",
        created_at=now,
        completed_at=now,
    )
async def mark_artwork_sold(
    db: AsyncSession,
    artwork_id: str,
    payment_intent_id: str,
    buyer_id: str,
    item_type: str,
    sale: Optional[Sale] = None,
) -> str:
    """
    Flip an artwork to sold for this payment in one conditional UPDATE.

    A redelivered event for the same payment is a no-op. An artwork already
    sold to a different payment is left untouched. ``sale`` is written in the
    same commit as the sold flag.
    """
    now = datetime.utcnow()
    result = await db.execute(
        update(Artwork)
        .where(Artwork.uuid == artwork_id, Artwork.sold.is_(False))
        .values(
            sold=True,
            sold_at=now,
            buyer_id=buyer_id,
            payment_intent_id=payment_intent_id,
            updated_at=now,
        )
    )

    if result.rowcount == 0:
        existing = await db.get(Artwork, artwork_id, populate_existing=True)
        if existing is None:
            logger.error(f"Artwork {artwork_id} not found for payment {payment_intent_id}")
            return "not_found"
        if existing.payment_intent_id == payment_intent_id:
            return "already_processed"
        logger.error(
            f"Artwork {artwork_id} already sold to payment {existing.payment_intent_id}, "
            f"ignoring {payment_intent_id}"
        )
        return "conflict"

    if item_type == "print":
        await db.execute(
            update(Artwork)
            .where(Artwork.uuid == artwork_id, Artwork.stock > 0)
            .values(stock=Artwork.stock - 1)
        )

    if sale is not None:
        db.add(sale)
    await db.commit()
    return "processed"


async def record_purchase(
    db: AsyncSession,
    product_id: str,
    payment_intent_id: str,
    buyer_id: str,
    seller_id: str | None,
    amount: int,
    currency: str,
    sale: Optional[Sale] = None,
) -> str:
    """Insert the purchase record (and its sale) once per (product, payment, buyer)."""
    result = await db.execute(
        select(Purchase).where(
            Purchase.product_id == product_id,
            Purchase.payment_intent_id == payment_intent_id,
            Purchase.buyer_id == buyer_id,
        )
    )
    if result.scalar_one_or_none():
        return "already_processed"

    db.add(Purchase(
        product_id=product_id,
        payment_intent_id=payment_intent_id,
        buyer_id=buyer_id,
        seller_id=seller_id,
        amount=amount,
        currency=currency,
    ))
    if sale is not None:
        db.add(sale)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent delivery won the insert
        await db.rollback()
        return "already_processed"
    return "processed"


async def handle_payment_succeeded(db: AsyncSession, payment_intent: Dict[str, Any]) -> Dict[str, str]:
    metadata = payment_intent.get("metadata") or {}
    item_id = metadata.get("itemId")
    item_type = metadata.get("itemType")
    buyer_id = metadata.get("userId")
    artist_id = metadata.get("artistId")

    if not item_id or not item_type or not buyer_id or not artist_id:
        logger.error(f"Missing required metadata in payment intent: {payment_intent.get('id')}")
        return {"status": "ignored"}

    payment_intent_id = payment_intent["id"]
    if item_type in ARTWORK_ITEM_TYPES:
        outcome = await mark_artwork_sold(
            db, item_id, payment_intent_id, buyer_id, item_type, sale=build_sale(payment_intent)
        )
    elif item_type in PRODUCT_ITEM_TYPES:
        outcome = await record_purchase(
            db,
            product_id=item_id,
            payment_intent_id=payment_intent_id,
            buyer_id=buyer_id,
            seller_id=artist_id,
            amount=int(payment_intent.get("amount") or 0),
            currency=payment_intent.get("currency") or "usd",
            sale=build_sale(payment_intent),
        )
    else:
        logger.info(f"Unhandled item type {item_type} for payment {payment_intent_id}")
        return {"status": "ignored"}

    logger.info(f"Payment succeeded: {payment_intent_id} for {item_type} {item_id} ({outcome})")
    return {"status": outcome}


async def handle_payment_failed(db: AsyncSession, payment_intent: Dict[str, Any]) -> Dict[str, str]:
    metadata = payment_intent.get("metadata") or {}
    last_error = payment_intent.get("last_payment_error") or {}

    db.add(FailedPayment(
        payment_intent_id=payment_intent["id"],
        item_id=metadata.get("itemId"),
        item_type=metadata.get("itemType"),
        buyer_id=metadata.get("userId"),
        amount=int(payment_intent.get("amount") or 0),
        currency=payment_intent.get("currency") or "usd",
        error=last_error.get("message") or "Payment failed",
        error_code=last_error.get("code"),
    ))
    await db.commit()
    logger.warning(f"Payment failed: {payment_intent['id']}")
    return {"status": "recorded"}


async def process_event(db: AsyncSession, event: Dict[str, Any]) -> Dict[str, str]:
    """
    Dispatch a verified Stripe event.

    Handler errors are rolled back and reported in the body with a 200 so
    Stripe does not keep redelivering; they need manual investigation.
    """
    event_type = event["type"]
    payment_intent = event["data"]["object"]

    try:
        if event_type == "payment_intent.succeeded":
            return await handle_payment_succeeded(db, payment_intent)
        if event_type == "payment_intent.payment_failed":
            return await handle_payment_failed(db, payment_intent)
    except Exception as e:
        await db.rollback()
        logger.error(f"Error handling webhook event {event_type}: {e}")
        return {"status": "error", "message": str(e)}

    logger.info(f"Unhandled event type: {event_type}")
    return {"status": "ignored"}
