"""
Document Control Platform
Project membership models.

Models:
    - Project:            container for documents
    - ProjectTeamMember:  user assigned to a project team
    - ProjectManager:     user managing a project

Team members and managers are the only users eligible to approve a
project's documents.
"""

import uuid
from datetime import datetime, timezone

from doccontrol.models import db


def _uuid():
    return str(uuid.uuid4())


class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class ProjectTeamMember(db.Model):
    __tablename__ = "project_team"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    joined_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_team_member"),
        db.Index("ix_project_team_project", "project_id"),
    )


class ProjectManager(db.Model):
    __tablename__ = "project_managers"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_manager"),
        db.Index("ix_project_managers_project", "project_id"),
    )
