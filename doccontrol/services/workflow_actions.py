"""
Approval workflow state machine.

Processes an approver's decision against the active workflow of a document:

    pending ──view──▶ under-review ──approve (not last)──▶ under-review
                                   ──approve (last)──────▶ approved   (terminal)
                                   ──reject──────────────▶ rejected   (terminal)

Order of checks in ``act()``:
    1. active workflow exists                    else NoActiveWorkflow
    2. acting user holds a step                  else NotAnApprover
    3. view side effect when the user's step is current and unviewed
       (committed on its own; kept even if the checks below fail)
    4. user's step is the current step           else NotYourTurn
    5. user's step is still pending              else AlreadyActed
    6. decision written with a conditional UPDATE (status = 'pending');
       zero rows → AlreadyActed.  Step, workflow and document change in one
       transaction.

Every transition is computed by projecting the would-be step states through
``approval_status.project`` rather than by assigning status literals.
A rejection leaves later steps pending on the terminal workflow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from doccontrol.core.exceptions import (
    AlreadyActed,
    NoActiveWorkflow,
    NotAnApprover,
    NotYourTurn,
    StorageFailure,
    ValidationError,
)
from doccontrol.models import db
from doccontrol.models.approval import ACTIVE_WORKFLOW_STATUSES, ApprovalStep, ApprovalWorkflow
from doccontrol.models.document import Document
from doccontrol.services import approval_status
from doccontrol.services.activity_notifier import ActivityNotifier

logger = logging.getLogger(__name__)


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @classmethod
    def parse(cls, value) -> "ApprovalAction":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                'Action must be either "approve" or "reject"',
                details={"action": value},
            ) from None

    @property
    def step_status(self) -> str:
        return {ApprovalAction.APPROVE: "approved", ApprovalAction.REJECT: "rejected"}[self]

    @property
    def timestamp_field(self) -> str:
        return {ApprovalAction.APPROVE: "approved_at", ApprovalAction.REJECT: "rejected_at"}[self]


@dataclass(frozen=True)
class WorkflowTransition:
    """Field updates for one step, its workflow and its document, applied together."""
    step_values: dict = field(default_factory=dict)
    workflow_values: dict = field(default_factory=dict)
    document_values: dict = field(default_factory=dict)
    projected: approval_status.ProjectedStatus | None = None


@dataclass
class ActionResult:
    action: ApprovalAction
    overall_status: str
    document_status: str
    step: int
    total_steps: int

    @property
    def is_terminal(self) -> bool:
        return self.overall_status in ("approved", "rejected")

    def to_dict(self) -> dict:
        approved = self.action is ApprovalAction.APPROVE
        return {
            "success": True,
            "action": self.action.value,
            "status": self.overall_status,
            "document_status": self.document_status,
            "step": self.step,
            "total_steps": self.total_steps,
            "message": (
                "Document approved successfully" if approved
                else "Document rejected successfully"
            ),
        }


# ── Transition planning (pure) ───────────────────────────────────────────────


def plan_view(workflow, step, now) -> WorkflowTransition:
    """Transition for the first touch of the current step by its approver."""
    projected = approval_status.project(
        approval_status.with_step(workflow.steps, step, viewed=True)
    )
    return WorkflowTransition(
        step_values={"viewed_document": True, "updated_at": now},
        workflow_values={"overall_status": projected.overall_status, "updated_at": now},
        document_values={"status": projected.document_status, "updated_at": now},
        projected=projected,
    )


def plan_decision(workflow, step, action: ApprovalAction, comments, now) -> WorkflowTransition:
    """Transition for approving or rejecting ``step``."""
    projected = approval_status.project(
        approval_status.with_step(workflow.steps, step, status=action.step_status, viewed=True)
    )
    step_values = {
        "status": action.step_status,
        action.timestamp_field: now,
        "updated_at": now,
    }
    if comments is not None:
        step_values["comments"] = comments

    workflow_values = {
        "overall_status": projected.overall_status,
        "current_step": projected.current_step,
        "updated_at": now,
    }
    if projected.is_terminal:
        workflow_values["completed_at"] = now

    return WorkflowTransition(
        step_values=step_values,
        workflow_values=workflow_values,
        document_values={"status": projected.document_status, "updated_at": now},
        projected=projected,
    )


# ── Processor ────────────────────────────────────────────────────────────────


class WorkflowActionProcessor:
    def __init__(self, notifier: ActivityNotifier | None = None, clock=None):
        self.notifier = notifier or ActivityNotifier()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def act(self, document_id, acting_user_id, action, comments=None) -> ActionResult:
        """Apply ``action`` on behalf of ``acting_user_id``.

        Raises:
            ValidationError: unknown action.
            NoActiveWorkflow, NotAnApprover, NotYourTurn, AlreadyActed, StorageFailure.
        """
        action = ApprovalAction.parse(action)

        workflow = self.find_active(document_id)
        if workflow is None:
            raise NoActiveWorkflow(document_id)

        step = workflow.step_for(acting_user_id)
        if step is None:
            raise NotAnApprover(acting_user_id)

        if step.step_order == workflow.current_step and not step.viewed_document:
            self._record_view(workflow, step)

        if step.step_order != workflow.current_step:
            raise NotYourTurn(expected_step=workflow.current_step)

        if step.status != "pending":
            raise AlreadyActed(step.step_order)

        transition = plan_decision(workflow, step, action, comments, self.clock())
        self._apply(
            transition, workflow, step,
            guard=ApprovalStep.status == "pending",
            on_miss=lambda: AlreadyActed(step.step_order),
        )

        logger.info(
            "Approval step decided",
            extra={
                "document_id": document_id,
                "workflow_id": workflow.id,
                "step_order": step.step_order,
                "total_steps": workflow.total_steps,
                "user_id": acting_user_id,
                "action": action.value,
                "overall_status": workflow.overall_status,
            },
        )

        self.notifier.log(
            document_id,
            action=action.step_status,
            description=(
                "Document approved" if action is ApprovalAction.APPROVE else "Document rejected"
            ),
            details={"reason": comments or ""},
            metadata={"step": step.step_order, "totalSteps": workflow.total_steps},
            user_id=acting_user_id,
        )

        return ActionResult(
            action=action,
            overall_status=transition.projected.overall_status,
            document_status=transition.projected.document_status,
            step=step.step_order,
            total_steps=workflow.total_steps,
        )

    def find_active(self, document_id) -> ApprovalWorkflow | None:
        return db.session.execute(
            select(ApprovalWorkflow)
            .where(
                ApprovalWorkflow.document_id == document_id,
                ApprovalWorkflow.overall_status.in_(ACTIVE_WORKFLOW_STATUSES),
            )
            .order_by(ApprovalWorkflow.created_at.desc())
        ).scalars().first()

    # ── internals ────────────────────────────────────────────────────────

    def _record_view(self, workflow, step):
        transition = plan_view(workflow, step, self.clock())
        applied = self._apply(
            transition, workflow, step,
            guard=ApprovalStep.viewed_document == False,  # noqa: E712
            on_miss=None,
        )
        if applied:
            logger.info(
                "Approval step viewed",
                extra={
                    "document_id": workflow.document_id,
                    "workflow_id": workflow.id,
                    "step_order": step.step_order,
                    "user_id": step.approver_id,
                },
            )

    def _apply(self, transition: WorkflowTransition, workflow, step, guard, on_miss) -> bool:
        """Write the step conditionally, then workflow and document, in one commit.

        When the conditional step update matches no row, nothing is written;
        ``on_miss()`` is raised if given, otherwise False is returned.
        """
        try:
            result = db.session.execute(
                update(ApprovalStep)
                .where(ApprovalStep.id == step.id, guard)
                .values(**transition.step_values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.session.rollback()
                if on_miss is not None:
                    raise on_miss()
                return False

            for name, value in transition.workflow_values.items():
                setattr(workflow, name, value)

            document = db.session.get(Document, workflow.document_id)
            if document is not None:
                for name, value in transition.document_values.items():
                    setattr(document, name, value)

            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception(
                "Failed to apply approval transition",
                extra={"workflow_id": workflow.id, "step_order": step.step_order},
            )
            raise StorageFailure("Failed to update approval workflow") from exc

        db.session.refresh(step)
        return True
