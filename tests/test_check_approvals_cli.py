"""
Tests: ``flask check-approvals`` consistency command.

Rows are corrupted directly through the ORM to simulate drift between the
stored workflow status and the status derived from its steps.
"""

from doccontrol.models import db
from doccontrol.services.approval_service import find_inconsistent_workflows
from doccontrol.services.workflow_actions import WorkflowActionProcessor
from doccontrol.services.workflow_creation import WorkflowCreator


def _send(users, document):
    return WorkflowCreator().create(
        document.id, users["requester"].id, [users["a"].id, users["b"].id],
    ).workflow


def test_consistent_workflows_pass(app, users, document):
    _send(users, document)

    result = app.test_cli_runner().invoke(args=["check-approvals"])

    assert result.exit_code == 0
    assert "All approval workflows are consistent." in result.output


def test_drift_reported_with_failing_exit_code(app, users, document):
    workflow = _send(users, document)
    workflow.current_step = 2
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["check-approvals"])

    assert result.exit_code == 1
    assert workflow.id in result.output
    assert "current_step stored=2 derived=1" in result.output


def test_finished_workflows_checked_only_with_all_flag(app, users, document):
    workflow = _send(users, document)
    WorkflowActionProcessor().act(document.id, users["a"].id, "reject", "no")
    workflow.completed_at = None
    db.session.commit()

    assert find_inconsistent_workflows() == {}
    assert find_inconsistent_workflows(active_only=False) == {
        workflow.id: ["terminal workflow has no completed_at"],
    }

    result = app.test_cli_runner().invoke(args=["check-approvals", "--all"])
    assert result.exit_code == 1
    assert "terminal workflow has no completed_at" in result.output
