from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.rhub.models import Base
from app.rhub.utils import iso


class Goal(Base):
    """SMART goal set by a client and reviewed by their therapist."""

    __tablename__ = "goals"
    __table_args__ = (
        Index("idx_goals_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    specific: Mapped[str] = mapped_column(Text, nullable=False)
    measurable: Mapped[str] = mapped_column(Text, nullable=False)
    achievable: Mapped[str] = mapped_column(Text, nullable=False)
    relevant: Mapped[str] = mapped_column(Text, nullable=False)
    timebound: Mapped[str] = mapped_column(Text, nullable=False)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending, in_progress, approved, completed
    therapist_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    milestones: Mapped[list["GoalMilestone"]] = relationship(
        "GoalMilestone",
        back_populates="goal",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def progress(self) -> int:
        """Completed milestones as a whole percentage."""
        if not self.milestones:
            return 0
        done = sum(1 for m in self.milestones if m.is_completed)
        return round(done * 100 / len(self.milestones))

    def ordered_milestones(self) -> list["GoalMilestone"]:
        # Undated milestones sort last
        return sorted(self.milestones, key=lambda m: (m.due_date is None, m.due_date or date.min, m.id or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "specific": self.specific,
            "measurable": self.measurable,
            "achievable": self.achievable,
            "relevant": self.relevant,
            "timebound": self.timebound,
            "deadline": iso(self.deadline),
            "status": self.status,
            "therapistComments": self.therapist_comments,
            "progress": self.progress,
            "milestones": [m.to_dict() for m in self.ordered_milestones()],
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class GoalMilestone(Base):
    __tablename__ = "goal_milestones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    goal_id: Mapped[int] = mapped_column(ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    goal: Mapped[Goal] = relationship("Goal", back_populates="milestones")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "goalId": self.goal_id,
            "title": self.title,
            "description": self.description,
            "dueDate": iso(self.due_date),
            "isCompleted": self.is_completed,
            "createdAt": iso(self.created_at),
        }
