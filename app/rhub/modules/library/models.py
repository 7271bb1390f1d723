from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.rhub.models import Base
from app.rhub.utils import iso


class LibraryItemMixin:
    """Columns shared by the per-user resilience library tables."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Author; global items are shared with the author's clients and everyone else
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_global: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "isGlobal": self.is_global,
            "createdAt": iso(self.created_at),
        }


class ProtectiveFactor(LibraryItemMixin, Base):
    __tablename__ = "protective_factors"


class CopingStrategy(LibraryItemMixin, Base):
    __tablename__ = "coping_strategies"
