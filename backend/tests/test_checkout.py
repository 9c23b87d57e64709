"""Tests for capture-after-verification checkout."""
import threading
import pytest
from unittest.mock import patch, MagicMock

import stripe

from app.services.checkout import PaymentCaptureError, capture_payment, complete_marketplace_checkout
from app.services.polling import PollOutcome


@pytest.mark.asyncio
async def test_capture_runs_off_the_event_loop_thread():
    """Test the blocking Stripe call does not hold up other requests."""
    loop_thread = threading.get_ident()
    seen = {}

    def capture(payment_intent_id):
        seen["thread"] = threading.get_ident()
        return MagicMock(id=payment_intent_id, status="succeeded")

    with patch("stripe.PaymentIntent.capture", side_effect=capture):
        payment_status = await capture_payment("pi_abc")

    assert payment_status == "succeeded"
    assert seen["thread"] != loop_thread


@pytest.mark.asyncio
async def test_capture_error_is_wrapped():
    with patch("stripe.PaymentIntent.capture") as mock_capture:
        mock_capture.side_effect = stripe.InvalidRequestError("already captured", param=None)

        with pytest.raises(PaymentCaptureError):
            await capture_payment("pi_abc")


@pytest.mark.asyncio
async def test_capture_requires_payment_intent_id():
    with pytest.raises(ValueError):
        await capture_payment("")


@pytest.mark.asyncio
async def test_checkout_captures_once_record_exists(verifier, store):
    store.add("purchases", {"product_id": "p1", "payment_intent_id": "pi_xyz", "buyer_id": "u1"})

    with patch("stripe.PaymentIntent.capture") as mock_capture:
        mock_capture.return_value = MagicMock(id="pi_xyz", status="succeeded")
        result = await complete_marketplace_checkout(verifier, "p1", "pi_xyz", "u1")

    assert result.outcome is PollOutcome.CONFIRMED
    assert result.captured is True
    assert result.payment_status == "succeeded"
    mock_capture.assert_called_once_with("pi_xyz")


@pytest.mark.asyncio
async def test_checkout_uses_its_own_attempt_ceiling(verifier, store):
    with patch("stripe.PaymentIntent.capture") as mock_capture:
        result = await complete_marketplace_checkout(verifier, "p1", "pi_xyz", "u1", max_attempts=2)

    assert result.outcome is PollOutcome.NOT_CONFIRMED
    assert result.captured is False
    assert result.attempts == 2
    assert store.query_calls() == 2
    mock_capture.assert_not_called()
