"""
Document Approval Workflow Blueprint.

Routes:
  POST   /documents/<doc_id>/approvals     – send a document for approval
  GET    /documents/<doc_id>/approvals     – active (or latest) workflow
  PUT    /documents/<doc_id>/approvals     – approve / reject as the current approver
  GET    /documents/<doc_id>/logs          – document activity log
  GET    /approvals                        – documents waiting on the caller
  GET    /approvals/count                  – number of workflows waiting on the caller

The acting user is read from the X-User-Id header; authentication itself is
handled upstream.

Layer contract:
    - Blueprint: parse input, call approval_service, return JSON.
    - NO db.session calls here; all writes are owned by the services.
    - Approval outcomes arrive as exceptions and are mapped by the
      error handlers below.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from doccontrol.core.exceptions import ApprovalError, ValidationError
from doccontrol.services import approval_service
from doccontrol.utils.errors import E, api_error

logger = logging.getLogger(__name__)

approval_bp = Blueprint("approval_bp", __name__, url_prefix="/api/v1")

_LOG_PAGE_DEFAULT = 200
_LOG_PAGE_MAX = 1000


# ── helpers ──────────────────────────────────────────────────────────────


def _current_user_id():
    header = current_app.config.get("USER_ID_HEADER", "X-User-Id")
    return (request.headers.get(header) or "").strip() or None


@approval_bp.before_request
def _require_user():
    if _current_user_id() is None:
        return api_error(E.UNAUTHORIZED, "Unauthorized")
    return None


# ── Error handlers ───────────────────────────────────────────────────────


@approval_bp.errorhandler(ApprovalError)
def _handle_approval_error(error: ApprovalError):
    if error.status >= 500:
        logger.error("Approval storage failure endpoint=%s: %s", request.endpoint, error)
    return api_error(error.code, error.message, status=error.status, details=error.details)


@approval_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


@approval_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return error
    logger.exception("Unexpected error in approval_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


# ═════════════════════════════════════════════════════════════════════════════
# WORKFLOW
# ═════════════════════════════════════════════════════════════════════════════


@approval_bp.route("/documents/<doc_id>/approvals", methods=["POST"])
def create_workflow(doc_id):
    """Send a document for sequential approval.

    Body: { approvers: [ "<user id>" | {id, name} , ... ], comments? }
    """
    data = request.get_json(silent=True) or {}
    approvers = data.get("approvers")
    if not isinstance(approvers, list) or len(approvers) == 0:
        return api_error(
            E.INVALID_APPROVERS, "Approvers array is required and cannot be empty",
        )

    result = approval_service.create_workflow(
        doc_id, _current_user_id(), approvers, data.get("comments"),
    )
    return jsonify(result.to_dict()), 201


@approval_bp.route("/documents/<doc_id>/approvals", methods=["GET"])
def get_workflow(doc_id):
    """Active workflow with steps, or the most recent finished one."""
    workflow = approval_service.get_active_or_latest_workflow(doc_id)
    return jsonify({"workflow": workflow.to_dict() if workflow else None})


@approval_bp.route("/documents/<doc_id>/approvals", methods=["PUT"])
def act_on_workflow(doc_id):
    """Approve or reject the current step.

    Body: { action: "approve"|"reject", comments? }
    """
    data = request.get_json(silent=True) or {}
    result = approval_service.act_on_workflow(
        doc_id, _current_user_id(), data.get("action"), data.get("comments"),
    )
    return jsonify(result.to_dict())


@approval_bp.route("/documents/<doc_id>/logs", methods=["GET"])
def document_logs(doc_id):
    """Activity log of a document, newest first.

    Query: limit (default 200, max 1000), offset (default 0)
    """
    limit = request.args.get("limit", default=_LOG_PAGE_DEFAULT, type=int)
    offset = request.args.get("offset", default=0, type=int)
    items, total = approval_service.list_document_logs(
        doc_id,
        limit=min(max(limit, 1), _LOG_PAGE_MAX),
        offset=max(offset, 0),
    )
    return jsonify({"items": [log.to_dict() for log in items], "total": total})


# ═════════════════════════════════════════════════════════════════════════════
# APPROVER INBOX
# ═════════════════════════════════════════════════════════════════════════════


@approval_bp.route("/approvals", methods=["GET"])
def pending_approvals():
    """Documents whose current step belongs to the caller."""
    items = approval_service.list_pending_approvals(_current_user_id())
    return jsonify({
        "documents": items,
        "total_count": len(items),
        "message": (
            "No documents pending your approval" if not items
            else f"{len(items)} document(s) pending your approval"
        ),
    })


@approval_bp.route("/approvals/count", methods=["GET"])
def pending_approvals_count():
    return jsonify({"count": approval_service.count_pending_approvals(_current_user_id())})
