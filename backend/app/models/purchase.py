"""Purchase model for marketplace product purchases."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, DateTime, Integer, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base


class Purchase(Base):
    """One row per confirmed marketplace purchase, written only by the webhook."""

    __tablename__ = "purchases"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Purchase key
    product_id: Mapped[str] = mapped_column(String(36), nullable=False)
    payment_intent_id: Mapped[str] = mapped_column(String(255), nullable=False)
    buyer_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # Sale info
    seller_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # cents
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # A redelivered webhook must not produce a second record
    __table_args__ = (
        UniqueConstraint("product_id", "payment_intent_id", "buyer_id", name="uq_purchase_intent"),
        Index("idx_purchase_buyer_id", "buyer_id"),
        Index("idx_purchase_payment_intent_id", "payment_intent_id"),
    )

    def __repr__(self) -> str:
        return f"<Purchase(uuid={self.uuid}, product_id={self.product_id}, buyer_id={self.buyer_id})>"
