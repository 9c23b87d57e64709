"""Artwork model: a unique sellable item."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, DateTime, Boolean, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base


class Artwork(Base):
    """A unique (or limited print) artwork listed for sale.

    Starts unsold with no payment intent. The Stripe webhook flips
    ``sold`` and stamps ``payment_intent_id`` in a single update; the
    purchase verifier watches for that pair.
    """

    __tablename__ = "artworks"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Listing info
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="Untitled")
    artist_id: Mapped[str] = mapped_column(String(36), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # cents
    item_type: Mapped[str] = mapped_column(String(20), nullable=False, default="original")
    stock: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Sale state
    sold: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    buyer_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    sold_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_artwork_artist_id", "artist_id"),
        Index("idx_artwork_payment_intent_id", "payment_intent_id"),
    )

    def __repr__(self) -> str:
        return f"<Artwork(uuid={self.uuid}, sold={self.sold}, payment_intent_id={self.payment_intent_id})>"
