"""Purchase verification.

After Stripe reports that a payment went through, the webhook still has to
write the result to the database. These checks poll for that write so the
client never shows success before access has actually been granted.

Two shapes are confirmed differently:

- unique artworks flip ``sold`` and record the ``payment_intent_id``
- marketplace products get one purchase record per
  ``(product_id, payment_intent_id, buyer_id)``

Neither check writes anything. A store error on one attempt is retried; only
exhausting every attempt is reported, and as NOT_CONFIRMED rather than an
exception.
"""
import asyncio
import logging
from typing import Optional

from app.config import settings
from app.services.document_store import DocumentStore, DocumentStoreError
from app.services.polling import PollOutcome, PollResult, Sleep, poll_until

logger = logging.getLogger(__name__)

# Shown to buyers whenever the webhook has not landed yet
PENDING_MESSAGE = (
    "We're still confirming your purchase. This usually takes a few seconds; "
    "check your order status shortly or contact support if this persists."
)
CONFIRMED_MESSAGE = "Purchase confirmed."
CANCELLED_MESSAGE = "Verification was stopped before the purchase could be confirmed."


class InvalidVerificationRequest(ValueError):
    """Missing or malformed verification input. Raised before any polling."""


def _require(**identifiers: Optional[str]) -> None:
    missing = [
        name for name, value in identifiers.items()
        if not isinstance(value, str) or not value.strip()
    ]
    if missing:
        raise InvalidVerificationRequest(f"Missing required identifiers: {', '.join(missing)}")


def outcome_message(outcome: PollOutcome) -> str:
    """Buyer-facing text for a verification outcome."""
    if outcome is PollOutcome.CONFIRMED:
        return CONFIRMED_MESSAGE
    if outcome is PollOutcome.CANCELLED:
        return CANCELLED_MESSAGE
    return PENDING_MESSAGE


class PurchaseVerifier:
    """Polls the document store until a webhook's write is visible."""

    def __init__(
        self,
        store: DocumentStore,
        interval: Optional[float] = None,
        default_max_attempts: Optional[int] = None,
        deadline: Optional[float] = None,
        artworks_collection: Optional[str] = None,
        purchases_collection: Optional[str] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            store: Read-only document store
            interval: Seconds between attempts (defaults to VERIFY_INTERVAL_SECONDS)
            default_max_attempts: Attempt ceiling (defaults to VERIFY_MAX_ATTEMPTS)
            deadline: Optional wall-clock budget per verification, in seconds
            artworks_collection: Collection holding sellable items
            purchases_collection: Collection holding purchase records
            sleep: Awaitable sleep, replaceable in tests
        """
        self.store = store
        self.interval = settings.VERIFY_INTERVAL_SECONDS if interval is None else interval
        self.default_max_attempts = default_max_attempts or settings.VERIFY_MAX_ATTEMPTS
        self.deadline = settings.VERIFY_DEADLINE_SECONDS if deadline is None else deadline
        self.artworks_collection = artworks_collection or settings.ARTWORKS_COLLECTION
        self.purchases_collection = purchases_collection or settings.PURCHASES_COLLECTION
        self.sleep = sleep

    def _attempt_ceiling(self, max_attempts: Optional[int]) -> int:
        ceiling = self.default_max_attempts if max_attempts is None else max_attempts
        if not isinstance(ceiling, int) or isinstance(ceiling, bool) or ceiling < 1:
            raise InvalidVerificationRequest(f"max_attempts must be a positive integer, got {ceiling!r}")
        return ceiling

    async def verify_item_state_transition(
        self,
        item_id: str,
        expected_payment_intent_id: str,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PollResult:
        """
        Wait for an artwork to be marked sold by the expected payment.

        Confirms only when ``sold is True`` and ``payment_intent_id`` equals
        ``expected_payment_intent_id`` exactly. A document that is sold to a
        different payment, or does not exist, is a miss.

        Raises:
            InvalidVerificationRequest: empty identifiers or bad max_attempts
        """
        _require(item_id=item_id, expected_payment_intent_id=expected_payment_intent_id)
        ceiling = self._attempt_ceiling(max_attempts)
        label = f"verify_item:{item_id}"

        async def is_sold_to_intent() -> bool:
            snapshot = await self.store.fetch(self.artworks_collection, item_id)
            if not snapshot.exists:
                logger.info(f"[{label}] Document not found")
                return False
            sold = snapshot.get("sold")
            payment_intent_id = snapshot.get("payment_intent_id")
            if sold is True and payment_intent_id == expected_payment_intent_id:
                return True
            logger.info(
                f"[{label}] Not yet verified: sold={sold}, "
                f"payment_intent_id={payment_intent_id}, expected={expected_payment_intent_id}"
            )
            return False

        logger.info(f"[{label}] Starting verification for payment {expected_payment_intent_id}")
        result = await poll_until(
            is_sold_to_intent,
            max_attempts=ceiling,
            interval=self.interval,
            cancel_event=cancel_event,
            deadline=self.deadline,
            retry_on=(DocumentStoreError,),
            label=label,
            sleep=self.sleep,
        )
        self._log_result(label, result)
        return result

    async def verify_record_exists(
        self,
        product_id: str,
        payment_intent_id: str,
        buyer_id: str,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PollResult:
        """
        Wait for a purchase record matching all three keys.

        Any non-empty query result confirms; duplicates from redelivered
        webhooks do not change the answer.

        Raises:
            InvalidVerificationRequest: empty identifiers or bad max_attempts
        """
        _require(product_id=product_id, payment_intent_id=payment_intent_id, buyer_id=buyer_id)
        ceiling = self._attempt_ceiling(max_attempts)
        label = f"verify_record:{product_id}"
        filters = {
            "product_id": product_id,
            "payment_intent_id": payment_intent_id,
            "buyer_id": buyer_id,
        }

        async def record_exists() -> bool:
            matches = await self.store.query(self.purchases_collection, filters)
            if not matches:
                logger.info(f"[{label}] Purchase record not found yet")
            return bool(matches)

        logger.info(f"[{label}] Starting verification for payment {payment_intent_id}")
        result = await poll_until(
            record_exists,
            max_attempts=ceiling,
            interval=self.interval,
            cancel_event=cancel_event,
            deadline=self.deadline,
            retry_on=(DocumentStoreError,),
            label=label,
            sleep=self.sleep,
        )
        self._log_result(label, result)
        return result

    @staticmethod
    def _log_result(label: str, result: PollResult) -> None:
        if result.confirmed:
            logger.info(f"[{label}] Purchase verified after {result.attempts} attempt(s)")
        elif result.cancelled:
            logger.info(f"[{label}] Verification cancelled after {result.attempts} attempt(s)")
        else:
            logger.warning(
                f"[{label}] Purchase not verified after {result.attempts} attempt(s) "
                f"({result.errors} errored)"
            )
