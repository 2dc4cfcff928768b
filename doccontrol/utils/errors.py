"""JSON error responses for the approval API.

Every error body has the shape::

    {"error": "<human readable>", "code": "<E.* constant>", "details": {...}}

``details`` is omitted when empty.  Clients branch on ``code``; ``error`` is
meant for people.

    from doccontrol.utils.errors import api_error, E

    return api_error(E.NOT_YOUR_TURN, "Not your turn", details={"expected_step": 2})
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Machine-readable error codes.

    ``ERR_*`` are generic request/server errors, ``APPROVAL_*`` are the
    refusals of the approval workflow.
    """

    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    NOT_FOUND = "ERR_NOT_FOUND"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"

    INVALID_APPROVERS = "APPROVAL_INVALID_APPROVERS"
    ACTIVE_WORKFLOW_EXISTS = "APPROVAL_ACTIVE_WORKFLOW_EXISTS"
    NO_ACTIVE_WORKFLOW = "APPROVAL_NO_ACTIVE_WORKFLOW"
    NOT_AN_APPROVER = "APPROVAL_NOT_AN_APPROVER"
    NOT_YOUR_TURN = "APPROVAL_NOT_YOUR_TURN"
    ALREADY_ACTED = "APPROVAL_ALREADY_ACTED"


HTTP_STATUS: dict[str, int] = {
    E.VALIDATION_INVALID: 400,
    E.INVALID_APPROVERS: 400,
    E.UNAUTHORIZED: 401,
    E.NOT_AN_APPROVER: 403,
    E.NOT_YOUR_TURN: 403,
    E.NOT_FOUND: 404,
    E.NO_ACTIVE_WORKFLOW: 404,
    E.ACTIVE_WORKFLOW_EXISTS: 409,
    E.ALREADY_ACTED: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def status_for(code: str) -> int:
    """Usual HTTP status of ``code``; 400 for codes not in the table."""
    return HTTP_STATUS.get(code, 400)


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Return ``(response, status)`` for a view or error handler."""
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or status_for(code)
