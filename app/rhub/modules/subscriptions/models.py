from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.rhub.models import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"
    __table_args__ = (
        Index("idx_subscription_plans_active_price", "is_active", "price"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    interval: Mapped[str] = mapped_column(String(8), nullable=False)  # month, year
    features: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    max_clients: Mapped[int] = mapped_column(Integer, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # At most one plan is the default (the trial plan new therapists land on)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stripe_price_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "interval": self.interval,
            "features": list(self.features or []),
            "maxClients": self.max_clients,
            "isActive": self.is_active,
            "isDefault": self.is_default,
            "stripePriceId": self.stripe_price_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
