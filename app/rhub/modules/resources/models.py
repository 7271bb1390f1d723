from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.rhub.models import Base
from app.rhub.utils import iso


class EducationalResource(Base):
    __tablename__ = "resources"
    __table_args__ = (
        Index("idx_resources_category", "category"),
        Index("idx_resources_published", "is_published"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")  # markdown or HTML
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="article")  # article, pdf, video, exercise

    # Attachment (PDF) in the storage backend
    storage_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_filename: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    sha256: Mapped[str | None] = mapped_column(String(64), nullable=True)
    size_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    # Set on clones; points at the resource this one was copied from
    parent_resource_id: Mapped[int | None] = mapped_column(ForeignKey("resources.id", ondelete="SET NULL"), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    @property
    def has_attachment(self) -> bool:
        return bool(self.storage_key)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "category": self.category,
            "tags": list(self.tags or []),
            "type": self.type,
            "attachment": (
                {
                    "filename": self.original_filename,
                    "contentType": self.content_type,
                    "sha256": self.sha256,
                    "sizeBytes": self.size_bytes,
                }
                if self.has_attachment
                else None
            ),
            "createdBy": self.created_by,
            "parentResourceId": self.parent_resource_id,
            "isPublished": self.is_published,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class ResourceAssignment(Base):
    __tablename__ = "resource_assignments"
    __table_args__ = (
        Index("idx_resource_assignments_assigned_to", "assigned_to"),
        Index("idx_resource_assignments_assigned_by", "assigned_by"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id", ondelete="CASCADE"), nullable=False)
    assigned_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    assigned_to: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_priority: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="assigned")  # assigned, viewed, completed

    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    resource: Mapped[EducationalResource] = relationship("EducationalResource", lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resourceId": self.resource_id,
            "assignedBy": self.assigned_by,
            "assignedTo": self.assigned_to,
            "isPriority": self.is_priority,
            "notes": self.notes,
            "status": self.status,
            "assignedAt": iso(self.assigned_at),
            "completedAt": iso(self.completed_at),
            "resource": self.resource.to_dict() if self.resource else None,
        }
