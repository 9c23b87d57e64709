"""Tests for capture and Stripe webhook endpoints."""
import json
import pytest
from unittest.mock import patch, MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import select

import stripe

from app.config import settings
from app.database import Base, build_session_factory, get_db
from app.models.artwork import Artwork
from app.models.purchase import Purchase
from main import app


@pytest.fixture
def client(engine_factory):
    """Test client backed by its own in-memory database, on the client's loop."""
    engine = engine_factory()
    factory = build_session_factory(engine)

    async def override_get_db():
        async with factory() as session:
            yield session

    async def create_all():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    app.dependency_overrides[get_db] = override_get_db
    with patch.object(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test"):
        with TestClient(app) as test_client:
            test_client.portal.call(create_all)
            test_client.session_factory = factory
            yield test_client
            test_client.portal.call(engine.dispose)
    app.dependency_overrides.clear()


def run_in_client(client, func, *args):
    async def with_session():
        async with client.session_factory() as session:
            return await func(session, *args)
    return client.portal.call(with_session)


async def add_artwork(session, artwork_id):
    session.add(Artwork(uuid=artwork_id, title="Harbour at Dusk", artist_id="artist-1", price=120000))
    await session.commit()


async def load_artwork(session, artwork_id):
    return await session.get(Artwork, artwork_id)


async def count_purchases(session, payment_intent_id):
    result = await session.execute(select(Purchase).where(Purchase.payment_intent_id == payment_intent_id))
    return len(result.scalars().all())


def post_event(client, event, signature="t=1,v1=test"):
    headers = {"stripe-signature": signature} if signature else {}
    return client.post("/api/webhooks/stripe", content=json.dumps(event), headers=headers)


def succeeded_event(payment_intent_id, item_id, item_type):
    return {
        "id": f"evt_{payment_intent_id}",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": payment_intent_id,
                "amount": 2500,
                "currency": "usd",
                "metadata": {
                    "itemId": item_id,
                    "itemType": item_type,
                    "userId": "u1",
                    "artistId": "artist-1",
                },
            }
        },
    }


def test_webhook_marks_artwork_sold(client):
    run_in_client(client, add_artwork, "art-123")

    with patch("stripe.Webhook.construct_event") as mock_construct:
        mock_construct.return_value = MagicMock()
        response = post_event(client, succeeded_event("pi_abc", "art-123", "original"))

    assert response.status_code == 200
    assert response.json() == {"status": "processed"}
    artwork = run_in_client(client, load_artwork, "art-123")
    assert artwork.sold is True
    assert artwork.payment_intent_id == "pi_abc"


def test_webhook_redelivery_creates_one_purchase(client):
    event = succeeded_event("pi_xyz", "p1", "product")

    with patch("stripe.Webhook.construct_event"):
        first = post_event(client, event)
        second = post_event(client, event)

    assert first.json() == {"status": "processed"}
    assert second.json() == {"status": "already_processed"}
    assert run_in_client(client, count_purchases, "pi_xyz") == 1


def test_webhook_missing_signature(client):
    response = post_event(client, succeeded_event("pi_abc", "p1", "product"), signature=None)

    assert response.status_code == 400


def test_webhook_invalid_signature(client):
    with patch("stripe.Webhook.construct_event") as mock_construct:
        mock_construct.side_effect = stripe.SignatureVerificationError("bad signature", "t=1,v1=test")
        response = post_event(client, succeeded_event("pi_abc", "p1", "product"))

    assert response.status_code == 401
    assert run_in_client(client, count_purchases, "pi_abc") == 0


def test_webhook_invalid_payload(client):
    with patch("stripe.Webhook.construct_event") as mock_construct:
        mock_construct.side_effect = ValueError("bad json")
        response = client.post(
            "/api/webhooks/stripe", content="not json", headers={"stripe-signature": "t=1,v1=test"}
        )

    assert response.status_code == 400


def test_webhook_without_secret_configured(client):
    with patch.object(settings, "STRIPE_WEBHOOK_SECRET", ""):
        response = post_event(client, succeeded_event("pi_abc", "p1", "product"))

    assert response.status_code == 500


def test_capture_endpoint(client):
    with patch("stripe.PaymentIntent.capture") as mock_capture:
        mock_capture.return_value = MagicMock(id="pi_abc", status="succeeded")
        response = client.post("/api/payments/capture", json={"payment_intent_id": "pi_abc"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "payment_intent_id": "pi_abc", "status": "succeeded"}


def test_capture_endpoint_stripe_error(client):
    with patch("stripe.PaymentIntent.capture") as mock_capture:
        mock_capture.side_effect = stripe.InvalidRequestError("No such payment_intent", param="intent")
        response = client.post("/api/payments/capture", json={"payment_intent_id": "pi_missing"})

    assert response.status_code == 502
