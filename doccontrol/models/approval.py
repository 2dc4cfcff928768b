"""
Document Control Platform
Approval workflow models.

Models:
    - ApprovalWorkflow: sequential sign-off request attached to a document
    - ApprovalStep:     one approver's slot in the workflow, ordered 1..total_steps

Architecture:
    Document ──1:N──▶ ApprovalWorkflow ──1:N──▶ ApprovalStep

Lifecycle states:
    ApprovalWorkflow.overall_status:  pending → under-review → approved | rejected
    ApprovalStep.status:              pending → approved | rejected

Invariants:
    - At most one workflow per document is active (pending / under-review);
      enforced by the partial unique index ``uq_approval_workflow_active``.
    - While active, steps before current_step are approved, steps after it
      are pending.
    - completed_at is set iff overall_status is terminal.
    - A user holding a step cannot be deleted (approver_id is ON DELETE RESTRICT).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import text

from doccontrol.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ACTIVE_WORKFLOW_STATUSES = ("pending", "under-review")

TERMINAL_WORKFLOW_STATUSES = ("approved", "rejected")

# Document status mirrored from the workflow status
DOCUMENT_STATUS_FOR_WORKFLOW = {
    "pending":      "pending_review",
    "under-review": "under_review",
    "approved":     "approved",
    "rejected":     "rejected",
}

_ACTIVE_SQL = "overall_status IN ('pending', 'under-review')"


def _uuid():
    return str(uuid.uuid4())


class ApprovalWorkflow(db.Model):
    """
    Sequential approval request for a single document.

    current_step points at the step expected to act next; it is not
    advanced on rejection and stays on the last step after final approval.
    """

    __tablename__ = "approval_workflows"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    document_id = db.Column(
        db.String(36),
        db.ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    requested_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    requested_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    comments = db.Column(db.Text, nullable=True)

    total_steps = db.Column(db.Integer, nullable=False)
    current_step = db.Column(db.Integer, nullable=False, default=1)
    overall_status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | under-review | approved | rejected",
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("total_steps >= 1", name="ck_approval_workflow_total_steps"),
        db.Index(
            "uq_approval_workflow_active",
            "document_id",
            unique=True,
            postgresql_where=text(_ACTIVE_SQL),
            sqlite_where=text(_ACTIVE_SQL),
        ),
    )

    steps = db.relationship(
        "ApprovalStep",
        back_populates="workflow",
        order_by="ApprovalStep.step_order",
        cascade="all, delete-orphan",
    )
    document = db.relationship("Document")
    requester = db.relationship("User", foreign_keys=[requested_by])

    def step_for(self, approver_id):
        """First step held by approver_id, or None."""
        for step in self.steps:
            if step.approver_id == approver_id:
                return step
        return None

    def to_dict(self, include_steps=True):
        d = {
            "id": self.id,
            "document_id": self.document_id,
            "requested_by": self.requested_by,
            "requested_by_name": self.requester.full_name if self.requester else None,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "comments": self.comments,
            "total_steps": self.total_steps,
            "current_step": self.current_step,
            "overall_status": self.overall_status,
            "document_status": DOCUMENT_STATUS_FOR_WORKFLOW.get(self.overall_status),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_steps:
            d["steps"] = [s.to_dict() for s in self.steps]
        return d

    def __repr__(self):
        return (
            f"<ApprovalWorkflow {self.id} doc={self.document_id} "
            f"{self.overall_status} {self.current_step}/{self.total_steps}>"
        )


class ApprovalStep(db.Model):
    """One approver's position in a workflow. Decided at most once."""

    __tablename__ = "approval_steps"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    workflow_id = db.Column(
        db.String(36),
        db.ForeignKey("approval_workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    approver_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
        index=True,
    )
    step_order = db.Column(db.Integer, nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | approved | rejected",
    )
    viewed_document = db.Column(db.Boolean, nullable=False, default=False)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    comments = db.Column(db.Text, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("workflow_id", "step_order", name="uq_approval_step_order"),
        db.CheckConstraint("step_order >= 1", name="ck_approval_step_order"),
    )

    workflow = db.relationship("ApprovalWorkflow", back_populates="steps")
    approver = db.relationship("User", foreign_keys=[approver_id])

    def to_dict(self):
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "approver_id": self.approver_id,
            "approver_name": self.approver.full_name if self.approver else None,
            "approver_email": self.approver.email if self.approver else None,
            "order": self.step_order,
            "status": self.status,
            "viewed_document": bool(self.viewed_document),
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "rejected_at": self.rejected_at.isoformat() if self.rejected_at else None,
            "comments": self.comments,
        }

    def __repr__(self):
        return f"<ApprovalStep {self.workflow_id}#{self.step_order} {self.status}>"
