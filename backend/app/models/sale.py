"""Sale ledger model."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, DateTime, Integer, Float, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base


class Sale(Base):
    """Money side of a successful payment: what was charged and what the artist receives.

    Written by the webhook in the same commit as the artwork or purchase
    change it pays for, so a redelivered event adds no second row.
    """

    __tablename__ = "sales"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Stripe
    payment_intent_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # What was sold, to whom
    item_id: Mapped[str] = mapped_column(String(36), nullable=False)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_title: Mapped[str] = mapped_column(String(255), nullable=False, default="Untitled")
    buyer_id: Mapped[str] = mapped_column(String(36), nullable=False)
    artist_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # Amounts, in cents
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    product_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    application_fee_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    platform_commission: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    platform_commission_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    artist_payout: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_sale_artist_id", "artist_id"),
        Index("idx_sale_buyer_id", "buyer_id"),
    )

    def __repr__(self) -> str:
        return f"<Sale(uuid={self.uuid}, payment_intent_id={self.payment_intent_id}, amount={self.amount})>"
