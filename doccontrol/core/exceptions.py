"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and map them to consistent HTTP status codes.

Usage:
    from doccontrol.core.exceptions import NotYourTurn, StorageFailure

    raise NotYourTurn(expected_step=2)
    raise StorageFailure("Failed to create approval steps")

Approval outcomes:
    Every ``ApprovalError`` subclass is an expected, caller-visible result of
    a workflow operation and carries a stable machine-readable ``code``.
    Only ``StorageFailure`` signals that persistence itself went wrong.
"""

from doccontrol.utils.errors import E


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Document").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness rule.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


# ── Approval workflow outcomes ───────────────────────────────────────────────


class ApprovalError(Exception):
    """Base class for approval workflow outcomes."""

    code = E.INTERNAL
    status = 500

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        Exception.__init__(self, message)


class DocumentNotFound(ApprovalError, NotFoundError):
    code = E.NOT_FOUND
    status = 404

    def __init__(self, document_id: str) -> None:
        self.resource = "Document"
        self.resource_id = document_id
        ApprovalError.__init__(
            self, "Document not found", details={"document_id": document_id},
        )


class InvalidApprovers(ApprovalError, ValidationError):
    """Empty approver list, or approvers outside the project's team/managers."""

    code = E.INVALID_APPROVERS
    status = 400

    def __init__(self, message: str, invalid_ids: list | None = None) -> None:
        self.invalid_ids = list(invalid_ids or [])
        details = {"invalid_approver_ids": self.invalid_ids} if self.invalid_ids else None
        ApprovalError.__init__(self, message, details=details)


class ActiveWorkflowExists(ApprovalError, ConflictError):
    code = E.ACTIVE_WORKFLOW_EXISTS
    status = 409

    def __init__(self, document_id: str) -> None:
        self.resource = "ApprovalWorkflow"
        self.field = "document_id"
        self.value = document_id
        ApprovalError.__init__(
            self,
            "Document already has an active approval workflow",
            details={"document_id": document_id},
        )


class NoActiveWorkflow(ApprovalError):
    code = E.NO_ACTIVE_WORKFLOW
    status = 404

    def __init__(self, document_id: str) -> None:
        super().__init__(
            "No active approval workflow found for this document",
            details={"document_id": document_id},
        )


class NotAnApprover(ApprovalError):
    code = E.NOT_AN_APPROVER
    status = 403

    def __init__(self, user_id: str) -> None:
        super().__init__(
            "You are not an approver for this document",
            details={"user_id": user_id},
        )


class NotYourTurn(ApprovalError):
    code = E.NOT_YOUR_TURN
    status = 403

    def __init__(self, expected_step: int) -> None:
        self.expected_step = expected_step
        super().__init__(
            "It's not your turn to approve. "
            f"Currently waiting for approval from step {expected_step}",
            details={"expected_step": expected_step},
        )


class AlreadyActed(ApprovalError):
    code = E.ALREADY_ACTED
    status = 409

    def __init__(self, step_order: int | None = None) -> None:
        super().__init__(
            "You have already acted on this document",
            details={"step": step_order} if step_order is not None else None,
        )


class StorageFailure(ApprovalError):
    code = E.DATABASE
    status = 500
