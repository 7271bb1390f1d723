from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.rhub.models import Base
from app.rhub.utils import iso


class JournalEntry(Base):
    __tablename__ = "journal_entries"
    __table_args__ = (
        Index("idx_journal_entries_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    mood: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-10

    # Analysis output; initial_ai_tags keeps the first suggestion after re-analysis
    ai_suggested_tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    initial_ai_tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    user_selected_tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    ai_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    emotions: Mapped[list | None] = mapped_column(JSON, nullable=True)
    topics: Mapped[list | None] = mapped_column(JSON, nullable=True)
    sentiment_positive: Mapped[float | None] = mapped_column(Float, nullable=True)
    sentiment_negative: Mapped[float | None] = mapped_column(Float, nullable=True)
    sentiment_neutral: Mapped[float | None] = mapped_column(Float, nullable=True)

    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    comments: Mapped[list["JournalComment"]] = relationship(
        "JournalComment",
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalComment.created_at",
    )

    @property
    def selected_tags(self) -> list[str]:
        """Tags the entry is filed under: the user's choice when made, otherwise the AI suggestion."""
        return list(self.user_selected_tags or self.ai_suggested_tags or [])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "content": self.content,
            "mood": self.mood,
            "aiSuggestedTags": list(self.ai_suggested_tags or []),
            "initialAiTags": list(self.initial_ai_tags or []),
            "userSelectedTags": list(self.user_selected_tags or []),
            "selectedTags": self.selected_tags,
            "aiAnalysis": self.ai_analysis,
            "emotions": list(self.emotions or []),
            "topics": list(self.topics or []),
            "sentimentPositive": self.sentiment_positive,
            "sentimentNegative": self.sentiment_negative,
            "sentimentNeutral": self.sentiment_neutral,
            "isPrivate": self.is_private,
            "comments": [c.to_dict() for c in self.comments],
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class JournalComment(Base):
    __tablename__ = "journal_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    journal_entry_id: Mapped[int] = mapped_column(ForeignKey("journal_entries.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Only populated when the commenter is a therapist
    therapist_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    entry: Mapped[JournalEntry] = relationship("JournalEntry", back_populates="comments", lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "journalEntryId": self.journal_entry_id,
            "userId": self.user_id,
            "therapistId": self.therapist_id,
            "comment": self.comment,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
