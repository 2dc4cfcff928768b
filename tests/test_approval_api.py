"""
Tests: approval HTTP API (blueprints/approval_bp.py).

Covers request handling and the mapping of approval outcomes to HTTP
status codes and machine-readable error codes:

    InvalidApprovers 400 · missing X-User-Id 401 · NotAnApprover / NotYourTurn 403
    DocumentNotFound / NoActiveWorkflow 404 · ActiveWorkflowExists 409 · StorageFailure 500

Uses shared fixtures from conftest.py: client, users, project, document.
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from doccontrol.services.workflow_creation import WorkflowCreator

BASE = "/api/v1"


def _headers(user):
    return {"X-User-Id": user.id}


def _send_for_approval(client, document, requester, approvers, **extra):
    payload = {"approvers": [a.id for a in approvers]}
    payload.update(extra)
    return client.post(
        f"{BASE}/documents/{document.id}/approvals", json=payload, headers=_headers(requester),
    )


def _decide(client, document, user, action, comments=None):
    payload = {"action": action}
    if comments is not None:
        payload["comments"] = comments
    return client.put(
        f"{BASE}/documents/{document.id}/approvals", json=payload, headers=_headers(user),
    )


@pytest.fixture()
def sent(client, users, document):
    """Document sent to A then B."""
    res = _send_for_approval(client, document, users["requester"], [users["a"], users["b"]])
    assert res.status_code == 201
    return res.get_json()


def test_health(client):
    res = client.get(f"{BASE}/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_missing_user_header_is_unauthorized(client, document):
    res = client.get(f"{BASE}/documents/{document.id}/approvals")
    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_UNAUTHORIZED"


# ═════════════════════════════════════════════════════════════════════════════
# POST /documents/<id>/approvals
# ═════════════════════════════════════════════════════════════════════════════


class TestSendForApproval:
    def test_created(self, sent, users):
        assert sent["success"] is True
        assert sent["document"]["status"] == "pending_review"
        wf = sent["workflow"]
        assert wf["total_steps"] == 2
        assert wf["current_step"] == 1
        assert wf["overall_status"] == "pending"
        assert [s["approver_id"] for s in wf["steps"]] == [users["a"].id, users["b"].id]

    def test_empty_approvers(self, client, users, document):
        res = _send_for_approval(client, document, users["requester"], [])
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "APPROVAL_INVALID_APPROVERS"
        assert body["error"] == "Approvers array is required and cannot be empty"

    def test_approvers_must_be_a_list(self, client, users, document):
        res = client.post(
            f"{BASE}/documents/{document.id}/approvals",
            json={"approvers": users["a"].id},
            headers=_headers(users["requester"]),
        )
        assert res.status_code == 400

    def test_non_member_approver(self, client, users, document):
        res = _send_for_approval(client, document, users["requester"], [users["requester"]])
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "APPROVAL_INVALID_APPROVERS"
        assert body["details"] == {"invalid_approver_ids": [users["requester"].id]}

    def test_unknown_document(self, client, users):
        res = client.post(
            f"{BASE}/documents/nope/approvals",
            json={"approvers": [users["a"].id]},
            headers=_headers(users["requester"]),
        )
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_second_request_conflicts(self, client, sent, users, document):
        res = _send_for_approval(client, document, users["requester"], [users["b"]])
        assert res.status_code == 409
        assert res.get_json()["code"] == "APPROVAL_ACTIVE_WORKFLOW_EXISTS"

    def test_storage_failure(self, client, users, document, monkeypatch):
        def _fail(self, workflow, approver_ids):
            raise SQLAlchemyError("steps table unavailable")

        monkeypatch.setattr(WorkflowCreator, "_insert_steps", _fail)

        res = _send_for_approval(client, document, users["requester"], [users["a"]])
        assert res.status_code == 500
        assert res.get_json()["code"] == "ERR_DATABASE"

        res = client.get(f"{BASE}/documents/{document.id}/approvals", headers=_headers(users["a"]))
        assert res.get_json()["workflow"] is None

    def test_unknown_requester_is_not_a_conflict(self, client, users, document):
        res = client.post(
            f"{BASE}/documents/{document.id}/approvals",
            json={"approvers": [users["a"].id]},
            headers={"X-User-Id": "ghost-user"},
        )
        assert res.status_code == 500
        assert res.get_json()["code"] == "ERR_DATABASE"


# ═════════════════════════════════════════════════════════════════════════════
# GET / PUT /documents/<id>/approvals
# ═════════════════════════════════════════════════════════════════════════════


class TestWorkflowEndpoints:
    def test_no_workflow_yet(self, client, users, document):
        res = client.get(f"{BASE}/documents/{document.id}/approvals", headers=_headers(users["a"]))
        assert res.status_code == 200
        assert res.get_json() == {"workflow": None}

    def test_get_unknown_document(self, client, users):
        res = client.get(f"{BASE}/documents/nope/approvals", headers=_headers(users["a"]))
        assert res.status_code == 404

    def test_approve(self, client, sent, users, document):
        res = _decide(client, document, users["a"], "approve")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "under-review"
        assert body["document_status"] == "under_review"
        assert body["step"] == 1
        assert body["total_steps"] == 2
        assert body["message"] == "Document approved successfully"

        wf = client.get(
            f"{BASE}/documents/{document.id}/approvals", headers=_headers(users["a"]),
        ).get_json()["workflow"]
        assert wf["current_step"] == 2
        assert [s["status"] for s in wf["steps"]] == ["approved", "pending"]

    def test_latest_terminal_workflow_returned(self, client, sent, users, document):
        _decide(client, document, users["a"], "reject", "wrong sheet")

        wf = client.get(
            f"{BASE}/documents/{document.id}/approvals", headers=_headers(users["b"]),
        ).get_json()["workflow"]
        assert wf["overall_status"] == "rejected"
        assert wf["document_status"] == "rejected"
        assert wf["completed_at"] is not None
        assert wf["steps"][0]["comments"] == "wrong sheet"

    def test_not_your_turn(self, client, sent, users, document):
        res = _decide(client, document, users["b"], "approve")
        assert res.status_code == 403
        body = res.get_json()
        assert body["code"] == "APPROVAL_NOT_YOUR_TURN"
        assert body["details"] == {"expected_step": 1}

    def test_not_an_approver(self, client, sent, users, document):
        res = _decide(client, document, users["c"], "approve")
        assert res.status_code == 403
        assert res.get_json()["code"] == "APPROVAL_NOT_AN_APPROVER"

    def test_no_active_workflow(self, client, users, document):
        res = _decide(client, document, users["a"], "approve")
        assert res.status_code == 404
        assert res.get_json()["code"] == "APPROVAL_NO_ACTIVE_WORKFLOW"

    def test_invalid_action(self, client, sent, users, document):
        res = _decide(client, document, users["a"], "maybe")
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_missing_action(self, client, sent, users, document):
        res = client.put(
            f"{BASE}/documents/{document.id}/approvals", json={}, headers=_headers(users["a"]),
        )
        assert res.status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Approver inbox
# ═════════════════════════════════════════════════════════════════════════════


class TestPendingApprovals:
    def test_only_current_approver_sees_document(self, client, sent, users, document):
        a_inbox = client.get(f"{BASE}/approvals", headers=_headers(users["a"])).get_json()
        b_inbox = client.get(f"{BASE}/approvals", headers=_headers(users["b"])).get_json()

        assert a_inbox["total_count"] == 1
        assert a_inbox["message"] == "1 document(s) pending your approval"
        item = a_inbox["documents"][0]
        assert item["document"]["id"] == document.id
        assert item["project_name"] == "Tower A"
        assert [s["approver_id"] for s in item["workflow"]["steps"]] == [users["a"].id]

        assert b_inbox == {
            "documents": [],
            "total_count": 0,
            "message": "No documents pending your approval",
        }

    def test_inbox_moves_with_current_step(self, client, sent, users, document):
        _decide(client, document, users["a"], "approve")

        a_inbox = client.get(f"{BASE}/approvals", headers=_headers(users["a"])).get_json()
        b_inbox = client.get(f"{BASE}/approvals", headers=_headers(users["b"])).get_json()
        assert a_inbox["total_count"] == 0
        assert b_inbox["total_count"] == 1

    def test_count_includes_waiting_steps(self, client, sent, users):
        for key, expected in (("a", 1), ("b", 1), ("c", 0)):
            res = client.get(f"{BASE}/approvals/count", headers=_headers(users[key]))
            assert res.get_json() == {"count": expected}

    def test_count_ignores_terminal_workflows(self, client, sent, users, document):
        _decide(client, document, users["a"], "reject")

        res = client.get(f"{BASE}/approvals/count", headers=_headers(users["b"]))
        assert res.get_json() == {"count": 0}


# ═════════════════════════════════════════════════════════════════════════════
# Activity log
# ═════════════════════════════════════════════════════════════════════════════


class TestDocumentLogs:
    def test_logs_newest_first(self, client, sent, users, document):
        _decide(client, document, users["a"], "approve", "ok")

        res = client.get(f"{BASE}/documents/{document.id}/logs", headers=_headers(users["a"]))
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 2
        assert [i["action"] for i in body["items"]] == ["approved", "status_change"]
        assert body["items"][0]["details"] == {"reason": "ok"}
        assert body["items"][0]["metadata"] == {"step": 1, "totalSteps": 2}

    def test_logs_paginated(self, client, sent, users, document):
        _decide(client, document, users["a"], "approve")

        res = client.get(
            f"{BASE}/documents/{document.id}/logs?limit=1", headers=_headers(users["a"]),
        )
        body = res.get_json()
        assert body["total"] == 2
        assert len(body["items"]) == 1

    def test_logs_unknown_document(self, client, users):
        res = client.get(f"{BASE}/documents/nope/logs", headers=_headers(users["a"]))
        assert res.status_code == 404
