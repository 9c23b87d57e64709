"""FastAPI dependencies for purchase verification."""
from fastapi import Depends

from app.services.document_store import DocumentStore
from app.services.purchase_verification import PurchaseVerifier
from app.services.sql_document_store import get_document_store


def get_purchase_verifier(store: DocumentStore = Depends(get_document_store)) -> PurchaseVerifier:
    """Verifier configured from settings."""
    return PurchaseVerifier(store)
