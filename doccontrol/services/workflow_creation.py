"""
Approval workflow creation.

Creation is a saga, not a single transaction.  Each forward step commits on
its own and is paired with a compensating action; when a later step fails,
the compensations of the completed steps run in reverse order:

    1. document.status → pending_review     undo: restore previous status
    2. insert workflow (current_step=1)     undo: delete workflow row
    3. insert one step per approver         (no undo; failure rolls back itself)

Preconditions checked before any mutation, in order:
    DocumentNotFound → ActiveWorkflowExists → InvalidApprovers

The "no active workflow" precondition is re-checked by the storage layer:
the partial unique index on approval_workflows turns a concurrent duplicate
insert into an IntegrityError.  It is reported as ActiveWorkflowExists only
when an active workflow is visible after the rollback; any other violation
(e.g. an unknown requester) is a StorageFailure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from doccontrol.core.exceptions import (
    ActiveWorkflowExists,
    DocumentNotFound,
    InvalidApprovers,
    StorageFailure,
)
from doccontrol.models import db
from doccontrol.models.approval import ACTIVE_WORKFLOW_STATUSES, ApprovalStep, ApprovalWorkflow
from doccontrol.models.auth import User
from doccontrol.models.document import Document
from doccontrol.services.activity_notifier import ActivityNotifier
from doccontrol.services.approver_validation import ApproverValidator

logger = logging.getLogger(__name__)


# ── Saga ─────────────────────────────────────────────────────────────────────


@dataclass
class SagaStep:
    name: str
    forward: Callable[[], None]
    compensate: Callable[[], None] | None = None


@dataclass
class Saga:
    """Ordered forward steps with compensations executed in reverse on failure."""
    name: str
    steps: list[SagaStep] = field(default_factory=list)
    completed: list[SagaStep] = field(default_factory=list)
    failed_step: str | None = None

    def add(self, name, forward, compensate=None) -> "Saga":
        self.steps.append(SagaStep(name, forward, compensate))
        return self

    def run(self) -> None:
        for step in self.steps:
            try:
                step.forward()
            except Exception:
                self.failed_step = step.name
                logger.warning("Saga %s failed at step '%s'; compensating", self.name, step.name)
                self.compensate()
                raise
            self.completed.append(step)

    def compensate(self) -> None:
        for step in reversed(self.completed):
            if step.compensate is None:
                continue
            try:
                step.compensate()
            except Exception:
                # Keep undoing the remaining steps; the original failure is re-raised by run()
                logger.exception("Saga %s: compensation '%s' failed", self.name, step.name)
        self.completed.clear()


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


# ── Results ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Approver:
    id: str
    name: str | None = None


@dataclass
class CreationResult:
    workflow: ApprovalWorkflow
    document: Document

    def to_dict(self) -> dict:
        return {
            "success": True,
            "workflow": self.workflow.to_dict(),
            "document": self.document.to_dict(),
        }


def normalise_approvers(approvers) -> list[Approver]:
    """Accept ids or {"id", "name"} mappings; keep order and duplicates."""
    result = []
    for entry in approvers or []:
        if isinstance(entry, Approver):
            result.append(entry)
        elif isinstance(entry, dict):
            approver_id = entry.get("id")
            if not approver_id:
                raise InvalidApprovers("Every approver must have an id")
            result.append(Approver(str(approver_id), entry.get("name")))
        elif entry:
            result.append(Approver(str(entry)))
        else:
            raise InvalidApprovers("Every approver must have an id")
    return result


# ── Creator ──────────────────────────────────────────────────────────────────


class WorkflowCreator:
    def __init__(
        self,
        validator: ApproverValidator | None = None,
        notifier: ActivityNotifier | None = None,
    ):
        self.validator = validator or ApproverValidator()
        self.notifier = notifier or ActivityNotifier()

    def create(self, document_id, requested_by, approvers, comments=None) -> CreationResult:
        """Create a workflow with one ordered step per approver.

        Returns:
            CreationResult with the fully loaded workflow and updated document.

        Raises:
            DocumentNotFound, ActiveWorkflowExists, InvalidApprovers, StorageFailure.
        """
        document = db.session.get(Document, document_id)
        if document is None:
            raise DocumentNotFound(document_id)

        if self._find_active(document_id) is not None:
            raise ActiveWorkflowExists(document_id)

        approver_list = normalise_approvers(approvers)
        approver_ids = self.validator.validate(
            document.project_id, [a.id for a in approver_list]
        )

        previous_status = document.status
        state = {}

        def set_document_pending():
            document.status = "pending_review"
            document.updated_at = datetime.now(timezone.utc)
            _commit()

        def restore_document_status():
            document.status = previous_status
            document.updated_at = datetime.now(timezone.utc)
            _commit()

        def insert_workflow():
            workflow = ApprovalWorkflow(
                document_id=document_id,
                requested_by=requested_by,
                total_steps=len(approver_ids),
                current_step=1,
                overall_status="pending",
                comments=comments,
            )
            db.session.add(workflow)
            _commit()
            state["workflow"] = workflow

        def delete_workflow():
            workflow = state.pop("workflow")
            db.session.delete(workflow)
            _commit()

        def insert_steps():
            self._insert_steps(state["workflow"], approver_ids)

        saga = (
            Saga("create_approval_workflow")
            .add("document_status", set_document_pending, restore_document_status)
            .add("workflow", insert_workflow, delete_workflow)
            .add("steps", insert_steps)
        )
        try:
            saga.run()
        except IntegrityError as exc:
            if saga.failed_step == "workflow" and self._find_active(document_id) is not None:
                logger.info(
                    "Concurrent approval workflow creation rejected by unique index",
                    extra={"document_id": document_id},
                )
                raise ActiveWorkflowExists(document_id) from exc
            logger.exception(
                "Approval workflow creation hit a storage constraint at step %s",
                saga.failed_step,
                extra={"document_id": document_id},
            )
            if saga.failed_step == "steps":
                raise StorageFailure("Failed to create approval steps") from exc
            raise StorageFailure("Failed to create approval workflow") from exc
        except SQLAlchemyError as exc:
            logger.exception(
                "Approval workflow creation failed", extra={"document_id": document_id},
            )
            raise StorageFailure("Failed to create approval workflow") from exc

        workflow = state["workflow"]
        db.session.refresh(workflow)
        db.session.refresh(document)

        logger.info(
            "Approval workflow created",
            extra={
                "document_id": document_id,
                "workflow_id": workflow.id,
                "total_steps": workflow.total_steps,
                "user_id": requested_by,
            },
        )

        names = self._display_names(approver_list)
        self.notifier.log(
            document_id,
            action="status_change",
            description=f"Document sent for approval to {len(approver_list)} approvers",
            details={
                "oldValue": previous_status,
                "newValue": "pending_review",
                "reason": f"Approvers: {', '.join(names)}",
            },
            user_id=requested_by,
        )
        return CreationResult(workflow=workflow, document=document)

    # ── helpers ──────────────────────────────────────────────────────────

    def _find_active(self, document_id):
        return db.session.execute(
            select(ApprovalWorkflow).where(
                ApprovalWorkflow.document_id == document_id,
                ApprovalWorkflow.overall_status.in_(ACTIVE_WORKFLOW_STATUSES),
            )
        ).scalars().first()

    def _insert_steps(self, workflow, approver_ids):
        for index, approver_id in enumerate(approver_ids):
            db.session.add(ApprovalStep(
                workflow_id=workflow.id,
                approver_id=approver_id,
                step_order=index + 1,
                status="pending",
            ))
        _commit()

    def _display_names(self, approvers: list[Approver]) -> list[str]:
        missing = {a.id for a in approvers if not a.name}
        users = {}
        if missing:
            users = {
                u.id: u.full_name
                for u in db.session.execute(
                    select(User).where(User.id.in_(missing))
                ).scalars()
            }
        return [a.name or users.get(a.id, a.id) for a in approvers]
