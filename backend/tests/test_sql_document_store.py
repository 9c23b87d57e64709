"""Tests for the SQLAlchemy document store adapter."""
import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import OperationalError

from app.models.artwork import Artwork
from app.models.purchase import Purchase
from app.services.document_store import DocumentStoreError
from app.services.purchase_verification import PurchaseVerifier
from app.services.sql_document_store import SQLDocumentStore


@pytest.fixture
def sql_store(session_factory):
    return SQLDocumentStore(session_factory)


@pytest.fixture
async def test_artwork(test_db):
    artwork = Artwork(title="Harbour at Dusk", artist_id="artist-1", price=120000)
    test_db.add(artwork)
    await test_db.commit()
    return artwork


@pytest.mark.asyncio
async def test_fetch_existing_artwork(sql_store, test_artwork):
    snapshot = await sql_store.fetch("artworks", test_artwork.uuid)

    assert snapshot.exists is True
    assert snapshot.id == test_artwork.uuid
    assert snapshot.get("sold") is False
    assert snapshot.get("payment_intent_id") is None
    assert snapshot.get("title") == "Harbour at Dusk"


@pytest.mark.asyncio
async def test_fetch_missing_document(sql_store):
    snapshot = await sql_store.fetch("artworks", "does-not-exist")

    assert snapshot.exists is False
    assert snapshot.data == {}


@pytest.mark.asyncio
async def test_fetch_sees_updates_committed_elsewhere(sql_store, test_db, test_artwork):
    """Test each read uses a fresh session rather than a cached row."""
    first = await sql_store.fetch("artworks", test_artwork.uuid)
    assert first.get("sold") is False

    test_artwork.sold = True
    test_artwork.payment_intent_id = "pi_abc"
    await test_db.commit()

    second = await sql_store.fetch("artworks", test_artwork.uuid)
    assert second.get("sold") is True
    assert second.get("payment_intent_id") == "pi_abc"


@pytest.mark.asyncio
async def test_query_matches_all_filters(sql_store, test_db):
    test_db.add_all([
        Purchase(product_id="p1", payment_intent_id="pi_xyz", buyer_id="u1", amount=2500),
        Purchase(product_id="p1", payment_intent_id="pi_xyz", buyer_id="u2", amount=2500),
        Purchase(product_id="p2", payment_intent_id="pi_xyz", buyer_id="u1", amount=900),
    ])
    await test_db.commit()

    matches = await sql_store.query(
        "purchases", {"product_id": "p1", "payment_intent_id": "pi_xyz", "buyer_id": "u1"}
    )

    assert len(matches) == 1
    assert matches[0].get("amount") == 2500
    assert matches[0].exists is True


@pytest.mark.asyncio
async def test_query_without_matches_is_empty(sql_store):
    matches = await sql_store.query("purchases", {"product_id": "p1"})

    assert matches == []


@pytest.mark.asyncio
async def test_unknown_collection_and_field_raise_value_error(sql_store):
    with pytest.raises(ValueError):
        await sql_store.fetch("books", "b1")
    with pytest.raises(ValueError):
        await sql_store.query("purchases", {"not_a_column": "x"})


@pytest.mark.asyncio
async def test_database_errors_become_store_errors():
    session = MagicMock()
    session.get = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("connection lost")))
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    store = SQLDocumentStore(MagicMock(return_value=session))

    with pytest.raises(DocumentStoreError):
        await store.fetch("artworks", "art-123")


@pytest.mark.asyncio
async def test_verifier_over_sql_store(sql_store, test_db, test_artwork, fake_sleep):
    """Test the verifier confirms a webhook write made between attempts."""
    async def webhook_lands(delay):
        test_artwork.sold = True
        test_artwork.payment_intent_id = "pi_abc"
        await test_db.commit()

    fake_sleep.side_effect = webhook_lands
    verifier = PurchaseVerifier(sql_store, interval=2.0, default_max_attempts=10, sleep=fake_sleep)

    result = await verifier.verify_item_state_transition(test_artwork.uuid, "pi_abc")

    assert result.confirmed is True
    assert result.attempts == 2
