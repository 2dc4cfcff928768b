"""
Approval status projection.

Derives the externally visible state of a workflow from its step records
alone.  Used in two places:

    - the action processor computes every transition through ``project()``
      instead of assigning status literals per branch, so the stored
      workflow/document fields are always the projection of the steps;
    - read paths and tests call ``find_drift()`` to detect disagreement
      between stored and derived state.

Derivation rules (steps taken in ``step_order``):
    any step rejected           → rejected,      current = rejected step
    every step approved         → approved,      current = last step
    otherwise                   → current = first pending step, and
        under-review if any step was viewed or approved, else pending
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from doccontrol.models.approval import (
    ACTIVE_WORKFLOW_STATUSES,
    DOCUMENT_STATUS_FOR_WORKFLOW,
    TERMINAL_WORKFLOW_STATUSES,
)


@dataclass(frozen=True)
class StepSnapshot:
    """Projection input: the three step fields the status depends on."""
    order: int
    status: str
    viewed: bool = False

    @classmethod
    def of(cls, step) -> "StepSnapshot":
        return cls(order=step.step_order, status=step.status, viewed=bool(step.viewed_document))


@dataclass(frozen=True)
class ProjectedStatus:
    overall_status: str
    current_step: int

    @property
    def is_terminal(self) -> bool:
        return self.overall_status in TERMINAL_WORKFLOW_STATUSES

    @property
    def document_status(self) -> str:
        return DOCUMENT_STATUS_FOR_WORKFLOW[self.overall_status]


def snapshots(steps: Iterable, override: StepSnapshot | None = None) -> list[StepSnapshot]:
    """Snapshot ORM steps, substituting ``override`` for the step with the same order."""
    result = []
    for step in steps:
        snap = step if isinstance(step, StepSnapshot) else StepSnapshot.of(step)
        if override is not None and snap.order == override.order:
            snap = override
        result.append(snap)
    return result


def project(steps: Iterable) -> ProjectedStatus:
    """Derive {overall_status, current_step} from a workflow's steps.

    Accepts ORM ``ApprovalStep`` rows or ``StepSnapshot`` values.

    Raises:
        ValueError: no steps supplied (a workflow always has at least one).
    """
    ordered = sorted(snapshots(steps), key=lambda s: s.order)
    if not ordered:
        raise ValueError("Cannot project status of a workflow without steps")

    for snap in ordered:
        if snap.status == "rejected":
            return ProjectedStatus("rejected", snap.order)

    first_pending = next((s for s in ordered if s.status == "pending"), None)
    if first_pending is None:
        return ProjectedStatus("approved", ordered[-1].order)

    touched = any(s.viewed or s.status == "approved" for s in ordered)
    return ProjectedStatus("under-review" if touched else "pending", first_pending.order)


def with_step(steps: Iterable, step, **changes) -> list[StepSnapshot]:
    """Snapshots of ``steps`` with ``changes`` applied to ``step`` only."""
    changed = replace(StepSnapshot.of(step), **changes)
    return snapshots(steps, override=changed)


def find_drift(workflow, steps=None, document=None) -> list[str]:
    """Compare stored workflow (and optionally document) state with the projection.

    Returns a list of human-readable discrepancies; empty means consistent.
    """
    steps = list(workflow.steps if steps is None else steps)
    problems: list[str] = []

    orders = sorted(s.step_order for s in steps)
    if orders != list(range(1, workflow.total_steps + 1)):
        problems.append(
            f"step orders {orders} are not contiguous 1..{workflow.total_steps}"
        )
    if not steps:
        return problems

    derived = project(steps)
    if derived.overall_status != workflow.overall_status:
        problems.append(
            f"overall_status stored={workflow.overall_status} derived={derived.overall_status}"
        )
    if derived.current_step != workflow.current_step:
        problems.append(
            f"current_step stored={workflow.current_step} derived={derived.current_step}"
        )

    terminal = workflow.overall_status in TERMINAL_WORKFLOW_STATUSES
    if terminal and workflow.completed_at is None:
        problems.append("terminal workflow has no completed_at")
    if not terminal and workflow.completed_at is not None:
        problems.append("active workflow has completed_at set")

    if workflow.overall_status in ACTIVE_WORKFLOW_STATUSES:
        for step in steps:
            if step.step_order < workflow.current_step and step.status != "approved":
                problems.append(f"step {step.step_order} before current is {step.status}")
            if step.step_order > workflow.current_step and step.status != "pending":
                problems.append(f"step {step.step_order} after current is {step.status}")

    for step in steps:
        if step.approved_at is not None and step.rejected_at is not None:
            problems.append(f"step {step.step_order} has both approved_at and rejected_at")
        if step.status == "approved" and step.approved_at is None:
            problems.append(f"step {step.step_order} approved without approved_at")
        if step.status == "rejected" and step.rejected_at is None:
            problems.append(f"step {step.step_order} rejected without rejected_at")
        if step.status == "pending" and (step.approved_at or step.rejected_at):
            problems.append(f"step {step.step_order} pending with a decision timestamp")

    if document is not None:
        expected = DOCUMENT_STATUS_FOR_WORKFLOW.get(workflow.overall_status)
        if document.status != expected:
            problems.append(f"document status stored={document.status} expected={expected}")

    return problems
