"""
Document Control Platform
Document model.

Only the fields the approval workflow reads or writes are modelled here;
file storage, versions, chat and comments belong to other subsystems.

Status values touched by the approval engine:
    draft → pending_review → under_review → approved | rejected
"""

import uuid
from datetime import datetime, timezone

from doccontrol.models import db


def _uuid():
    return str(uuid.uuid4())


class Document(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    file_name = db.Column(db.String(300))
    status = db.Column(
        db.String(30), nullable=False, default="draft",
        comment="draft | pending_review | under_review | approved | rejected | …",
    )
    uploaded_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    uploaded_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "file_name": self.file_name,
            "status": self.status,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Document {self.id}: {self.status}>"
