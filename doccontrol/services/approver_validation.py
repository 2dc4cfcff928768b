"""
Approver eligibility checks.

An approver list is valid when it is non-empty and every id belongs to the
project's team members or project managers.  The list order is the approval
sequence and is returned verbatim: no deduplication, no reordering.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import select

from doccontrol.core.exceptions import InvalidApprovers
from doccontrol.models import db
from doccontrol.models.project import ProjectManager, ProjectTeamMember

logger = logging.getLogger(__name__)


class MembershipProvider(Protocol):
    def eligible_user_ids(self, project_id: str, user_ids: list[str]) -> set[str]:
        """Return the subset of user_ids that are team members or managers."""


class SqlMembershipProvider:
    """Reads membership from the project_team and project_managers tables."""

    def eligible_user_ids(self, project_id: str, user_ids: list[str]) -> set[str]:
        if not user_ids:
            return set()
        wanted = set(user_ids)
        team = db.session.execute(
            select(ProjectTeamMember.user_id).where(
                ProjectTeamMember.project_id == project_id,
                ProjectTeamMember.user_id.in_(wanted),
            )
        ).scalars()
        managers = db.session.execute(
            select(ProjectManager.user_id).where(
                ProjectManager.project_id == project_id,
                ProjectManager.user_id.in_(wanted),
            )
        ).scalars()
        return set(team) | set(managers)


class ApproverValidator:
    def __init__(self, membership: MembershipProvider | None = None):
        self.membership = membership or SqlMembershipProvider()

    def validate(self, project_id: str, approver_ids: list[str]) -> list[str]:
        """Return approver_ids unchanged if all are eligible for project_id.

        Raises:
            InvalidApprovers: empty list, or at least one ineligible id.
        """
        if not approver_ids:
            raise InvalidApprovers("Approvers array is required and cannot be empty")

        eligible = self.membership.eligible_user_ids(project_id, list(approver_ids))
        invalid = [a for a in approver_ids if a not in eligible]
        if invalid:
            logger.info(
                "Approver validation failed",
                extra={"event_type": "approval.invalid_approvers", "user_id": invalid[0]},
            )
            raise InvalidApprovers("All approvers must be members of the project", invalid)
        return list(approver_ids)
