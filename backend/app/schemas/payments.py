"""Schemas for purchase verification and payment endpoints."""
from typing import Optional
from pydantic import BaseModel, Field

from app.services.polling import PollOutcome


class ArtworkVerificationRequest(BaseModel):
    """Request to confirm an artwork was marked sold by the webhook."""

    artwork_id: str = Field(..., min_length=1, description="Artwork document ID")
    payment_intent_id: str = Field(..., min_length=1, description="Stripe PaymentIntent ID")
    max_attempts: Optional[int] = Field(None, ge=1, le=30, description="Override the attempt ceiling")


class MarketplaceVerificationRequest(BaseModel):
    """Request to confirm a marketplace purchase record exists."""

    product_id: str = Field(..., min_length=1, description="Marketplace product ID")
    payment_intent_id: str = Field(..., min_length=1, description="Stripe PaymentIntent ID")
    buyer_id: str = Field(..., min_length=1, description="Buyer user ID")
    max_attempts: Optional[int] = Field(None, ge=1, le=30, description="Override the attempt ceiling")


class VerificationResponse(BaseModel):
    """Outcome of a verification poll."""

    status: PollOutcome = Field(..., description="confirmed, not_confirmed or cancelled")
    confirmed: bool = Field(..., description="True only when the webhook write was observed")
    attempts: int = Field(..., description="Store reads performed")
    message: str = Field(..., description="Buyer-facing status message")


class CheckoutCompleteRequest(BaseModel):
    """Request to finish a marketplace checkout after authorization."""

    product_id: str = Field(..., min_length=1, description="Marketplace product ID")
    payment_intent_id: str = Field(..., min_length=1, description="Authorized Stripe PaymentIntent ID")
    buyer_id: str = Field(..., min_length=1, description="Buyer user ID")


class CheckoutCompleteResponse(BaseModel):
    status: PollOutcome
    captured: bool = Field(..., description="Whether the card was charged")
    attempts: int
    payment_status: Optional[str] = Field(None, description="Stripe PaymentIntent status after capture")
    message: str


class CaptureRequest(BaseModel):
    payment_intent_id: str = Field(..., min_length=1, description="Stripe PaymentIntent ID")


class CaptureResponse(BaseModel):
    success: bool
    payment_intent_id: str
    status: str
