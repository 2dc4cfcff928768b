"""
Shared pytest fixtures for the Document Control Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - project / users / document: a project whose team holds three approvers
"""

import pytest

from doccontrol import create_app
from doccontrol.models import db as _db
from doccontrol.models.auth import User
from doccontrol.models.document import Document
from doccontrol.models.project import Project, ProjectManager, ProjectTeamMember


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── ORM helpers ──────────────────────────────────────────────────────────
# Rows are committed: services roll back the session on failure paths.


def _make_user(email: str, first_name: str | None = None, last_name: str | None = None) -> User:
    u = User(email=email, first_name=first_name, last_name=last_name)
    _db.session.add(u)
    _db.session.commit()
    return u


def _make_project(name: str = "Tower A", team=(), managers=()) -> Project:
    p = Project(name=name)
    _db.session.add(p)
    _db.session.flush()
    for user in team:
        _db.session.add(ProjectTeamMember(project_id=p.id, user_id=user.id))
    for user in managers:
        _db.session.add(ProjectManager(project_id=p.id, user_id=user.id))
    _db.session.commit()
    return p


def _make_document(project: Project, status: str = "draft", title: str = "Structural drawings") -> Document:
    d = Document(project_id=project.id, title=title, file_name="drawings.pdf", status=status)
    _db.session.add(d)
    _db.session.commit()
    return d


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def users():
    """Requester plus approvers A, B, C."""
    return {
        "requester": _make_user("requester@example.com", "Rita", "Requester"),
        "a": _make_user("a@example.com", "Alice", "Archer"),
        "b": _make_user("b@example.com", "Bob", "Baker"),
        "c": _make_user("c@example.com", "Cara", "Cole"),
    }


@pytest.fixture()
def project(users):
    """Project with A and B on the team and C as project manager."""
    return _make_project(team=[users["a"], users["b"]], managers=[users["c"]])


@pytest.fixture()
def document(project):
    return _make_document(project)
