"""Database models for the gallery checkout service."""
from app.models.artwork import Artwork
from app.models.purchase import Purchase
from app.models.sale import Sale
from app.models.failed_payment import FailedPayment

__all__ = [
    "Artwork",
    "Purchase",
    "Sale",
    "FailedPayment",
]
