"""
Document Approval Service.

Public entry points of the approval engine used by the HTTP layer:

    create_workflow(document_id, requested_by, approvers, comments=None)
    get_active_or_latest_workflow(document_id)
    act_on_workflow(document_id, acting_user_id, action, comments=None)

plus read queries for an approver's inbox:

    list_pending_approvals(user_id)
    count_pending_approvals(user_id)
    list_document_logs(document_id)

and a consistency check used by the ``flask check-approvals`` command:

    find_inconsistent_workflows(active_only=True)

Layer contract:
    - All writes go through WorkflowCreator / WorkflowActionProcessor.
    - Outcomes are raised as ``doccontrol.core.exceptions.ApprovalError``
      subclasses; the blueprint maps them to HTTP responses.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from doccontrol.core.exceptions import DocumentNotFound
from doccontrol.models import db
from doccontrol.models.approval import ACTIVE_WORKFLOW_STATUSES, ApprovalStep, ApprovalWorkflow
from doccontrol.models.audit import DocumentLog
from doccontrol.models.document import Document
from doccontrol.models.project import Project
from doccontrol.services import approval_status
from doccontrol.services.workflow_actions import ActionResult, WorkflowActionProcessor
from doccontrol.services.workflow_creation import CreationResult, WorkflowCreator

logger = logging.getLogger(__name__)


def create_workflow(document_id, requested_by, approvers, comments=None) -> CreationResult:
    """Send a document for sequential approval. See WorkflowCreator.create."""
    return WorkflowCreator().create(document_id, requested_by, approvers, comments)


def act_on_workflow(document_id, acting_user_id, action, comments=None) -> ActionResult:
    """Approve or reject on behalf of an approver. See WorkflowActionProcessor.act."""
    return WorkflowActionProcessor().act(document_id, acting_user_id, action, comments)


def get_active_or_latest_workflow(document_id) -> ApprovalWorkflow | None:
    """Return the active workflow of a document, else its most recent one, else None.

    Raises:
        DocumentNotFound: the document does not exist.
    """
    if db.session.get(Document, document_id) is None:
        raise DocumentNotFound(document_id)

    active = db.session.execute(
        select(ApprovalWorkflow).where(
            ApprovalWorkflow.document_id == document_id,
            ApprovalWorkflow.overall_status.in_(ACTIVE_WORKFLOW_STATUSES),
        )
    ).scalars().first()
    if active is not None:
        return active

    return db.session.execute(
        select(ApprovalWorkflow)
        .where(ApprovalWorkflow.document_id == document_id)
        .order_by(ApprovalWorkflow.created_at.desc(), ApprovalWorkflow.requested_at.desc())
        .limit(1)
    ).scalars().first()


def find_inconsistent_workflows(active_only=True) -> dict[str, list[str]]:
    """Workflows whose stored status disagrees with their steps, keyed by workflow id."""
    query = select(ApprovalWorkflow).order_by(ApprovalWorkflow.created_at)
    if active_only:
        query = query.where(ApprovalWorkflow.overall_status.in_(ACTIVE_WORKFLOW_STATUSES))

    report = {}
    for workflow in db.session.execute(query).scalars().all():
        problems = approval_status.find_drift(workflow, document=workflow.document)
        if problems:
            logger.warning(
                "Approval workflow drift detected",
                extra={
                    "workflow_id": workflow.id,
                    "document_id": workflow.document_id,
                    "event_type": "approval.drift",
                },
            )
            report[workflow.id] = problems
    return report


def list_pending_approvals(user_id) -> list[dict]:
    """Documents waiting on ``user_id``: their step is current and pending on an active workflow."""
    rows = db.session.execute(
        select(ApprovalStep, ApprovalWorkflow, Document, Project)
        .select_from(ApprovalStep)
        .join(ApprovalWorkflow, ApprovalStep.workflow_id == ApprovalWorkflow.id)
        .join(Document, ApprovalWorkflow.document_id == Document.id)
        .outerjoin(Project, Document.project_id == Project.id)
        .where(
            ApprovalStep.approver_id == user_id,
            ApprovalStep.status == "pending",
            ApprovalStep.step_order == ApprovalWorkflow.current_step,
            ApprovalWorkflow.overall_status.in_(ACTIVE_WORKFLOW_STATUSES),
        )
        .order_by(ApprovalWorkflow.requested_at.desc())
    ).all()

    items = []
    for step, workflow, document, project in rows:
        wf = workflow.to_dict(include_steps=False)
        wf["steps"] = [step.to_dict()]
        items.append({
            "document": document.to_dict(),
            "project_name": project.name if project else None,
            "workflow": wf,
        })
    return items


def count_pending_approvals(user_id) -> int:
    """Active workflows in which ``user_id`` holds any pending step."""
    workflow_ids = select(ApprovalStep.workflow_id).where(
        ApprovalStep.approver_id == user_id,
        ApprovalStep.status == "pending",
    )
    return db.session.execute(
        select(func.count(ApprovalWorkflow.id)).where(
            ApprovalWorkflow.id.in_(workflow_ids),
            ApprovalWorkflow.overall_status.in_(ACTIVE_WORKFLOW_STATUSES),
        )
    ).scalar_one()


def list_document_logs(document_id, limit=200, offset=0) -> tuple[list[DocumentLog], int]:
    """One page of a document's activity log, newest first, plus the total count.

    Raises:
        DocumentNotFound: the document does not exist.
    """
    if db.session.get(Document, document_id) is None:
        raise DocumentNotFound(document_id)

    total = db.session.execute(
        select(func.count(DocumentLog.id)).where(DocumentLog.document_id == document_id)
    ).scalar_one()
    items = db.session.execute(
        select(DocumentLog)
        .where(DocumentLog.document_id == document_id)
        .order_by(DocumentLog.created_at.desc(), DocumentLog.id.desc())
        .limit(limit)
        .offset(offset)
    ).scalars().all()
    return list(items), total
