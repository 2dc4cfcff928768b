"""
Document Control Platform
Document activity log model.

Models:
    - DocumentLog: immutable, append-only activity trail for a document.
"""

import json
from datetime import datetime, timezone

from doccontrol.models import db

# ── Constants ────────────────────────────────────────────────────────────────

DOCUMENT_LOG_ACTIONS = {
    "status_change",
    "approved",
    "rejected",
}


class DocumentLog(db.Model):
    """
    One row per document activity.

    ``details_json`` carries {oldValue, newValue, reason}; ``metadata_json``
    carries event-specific context such as {step, totalSteps}.
    """

    __tablename__ = "document_logs"
    __table_args__ = (
        db.Index("idx_document_logs_document", "document_id"),
        db.Index("idx_document_logs_action", "action"),
        db.Index("idx_document_logs_ts", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.String(36),
        db.ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Acting user (nullable for system entries)",
    )
    action = db.Column(
        db.String(40), nullable=False,
        comment="status_change | approved | rejected",
    )
    description = db.Column(db.String(500), nullable=False, default="")
    details_json = db.Column(db.Text, default="{}")
    metadata_json = db.Column(db.Text, default="{}")
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _load(raw) -> dict:
        try:
            return json.loads(raw or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    @property
    def details(self) -> dict:
        return self._load(self.details_json)

    @property
    def meta(self) -> dict:
        return self._load(self.metadata_json)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "user_id": self.user_id,
            "action": self.action,
            "description": self.description,
            "details": self.details,
            "metadata": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<DocumentLog {self.id}: {self.action} on {self.document_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_document_log(
    *,
    document_id: str,
    action: str,
    description: str,
    user_id: str | None = None,
    details: dict | None = None,
    metadata: dict | None = None,
) -> DocumentLog:
    """
    Append a single activity row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) DocumentLog instance.

    Raises:
        ValueError: ``action`` is not one of DOCUMENT_LOG_ACTIONS.
    """
    if action not in DOCUMENT_LOG_ACTIONS:
        raise ValueError(
            f"Invalid document log action '{action}'. "
            f"Allowed: {', '.join(sorted(DOCUMENT_LOG_ACTIONS))}"
        )
    log = DocumentLog(
        document_id=str(document_id),
        user_id=user_id,
        action=action,
        description=description,
        details_json=json.dumps(details or {}, default=str),
        metadata_json=json.dumps(metadata or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
