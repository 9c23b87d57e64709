"""Failed payment log."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base


class FailedPayment(Base):
    """Record of a ``payment_intent.payment_failed`` event."""

    __tablename__ = "failed_payments"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    payment_intent_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    item_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    item_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    buyer_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
