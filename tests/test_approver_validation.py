"""
Tests: approver eligibility (services/approver_validation.py).

Uses the `users` / `project` fixtures from conftest.py:
A and B are team members, C is the project manager, the requester is neither.
"""

import pytest

from doccontrol.core.exceptions import InvalidApprovers, ValidationError
from doccontrol.services.approver_validation import ApproverValidator, SqlMembershipProvider


class _StaticMembership:
    def __init__(self, eligible):
        self.eligible = set(eligible)
        self.calls = []

    def eligible_user_ids(self, project_id, user_ids):
        self.calls.append((project_id, list(user_ids)))
        return self.eligible & set(user_ids)


def test_empty_list_rejected_without_membership_lookup():
    membership = _StaticMembership([])
    with pytest.raises(InvalidApprovers) as exc:
        ApproverValidator(membership).validate("p-1", [])
    assert str(exc.value) == "Approvers array is required and cannot be empty"
    assert membership.calls == []


def test_team_members_and_managers_are_eligible(users, project):
    ids = [users["c"].id, users["a"].id, users["b"].id]
    assert ApproverValidator().validate(project.id, ids) == ids


def test_order_and_duplicates_are_preserved(users, project):
    ids = [users["b"].id, users["a"].id, users["b"].id]
    assert ApproverValidator().validate(project.id, ids) == ids


def test_non_member_rejected_with_offending_ids(users, project):
    outsider = users["requester"].id
    with pytest.raises(InvalidApprovers) as exc:
        ApproverValidator().validate(project.id, [users["a"].id, outsider, "ghost"])
    err = exc.value
    assert err.message == "All approvers must be members of the project"
    assert err.invalid_ids == [outsider, "ghost"]
    assert err.details == {"invalid_approver_ids": [outsider, "ghost"]}
    assert err.status == 400
    assert isinstance(err, ValidationError)


def test_membership_is_per_project(users, project):
    from doccontrol.models import db
    from doccontrol.models.project import Project

    other = Project(name="Tower B")
    db.session.add(other)
    db.session.commit()

    with pytest.raises(InvalidApprovers):
        ApproverValidator().validate(other.id, [users["a"].id])


def test_sql_provider_returns_union_of_team_and_managers(users, project):
    ids = [users["a"].id, users["c"].id, users["requester"].id]
    assert SqlMembershipProvider().eligible_user_ids(project.id, ids) == {
        users["a"].id,
        users["c"].id,
    }


def test_sql_provider_empty_input():
    assert SqlMembershipProvider().eligible_user_ids("p-1", []) == set()
