"""
Document Control Platform
Flask Application Factory.

Usage:
    from doccontrol import create_app
    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")  # explicit config

CLI (``flask --app wsgi ...``):
    db upgrade          apply migrations (Flask-Migrate)
    check-approvals     report workflows whose stored status drifted from their steps
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from doccontrol.config import config
from doccontrol.middleware.logging_config import configure_logging
from doccontrol.models import db

logger = logging.getLogger(__name__)

migrate = Migrate()


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Foreign key actions (step cascade, approver restrict) need the pragma on SQLite."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: "development", "testing" or "production".
                     Defaults to the APP_ENV env var, or "development".

    Returns:
        Configured Flask application instance.

    Raises:
        RuntimeError: production settings are incomplete.
    """
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    _init_extensions(app)

    if config_name == "development":
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            try:
                db.create_all()
            except Exception:
                app.logger.warning("db.create_all() failed; run `flask db upgrade`", exc_info=True)

    from doccontrol.blueprints.approval_bp import approval_bp
    app.register_blueprint(approval_bp)

    _register_cli(app)
    _register_error_handlers(app)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Document Control Platform"}

    return app


def _init_extensions(app):
    db.init_app(app)
    migrate.init_app(app, db)

    origins = app.config.get("CORS_ORIGINS", "*")
    if origins and origins != "*":
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])
    else:
        CORS(app)

    # Model modules must be imported for create_all() and Alembic autogenerate
    from doccontrol.models import approval, audit, auth, document, project  # noqa: F401


def _register_cli(app):
    @app.cli.command("check-approvals")
    @click.option("--all", "include_finished", is_flag=True, help="Also check approved/rejected workflows.")
    def check_approvals_cmd(include_finished):
        """Compare stored workflow/document status with the status derived from the steps."""
        from doccontrol.services.approval_service import find_inconsistent_workflows

        report = find_inconsistent_workflows(active_only=not include_finished)
        if not report:
            click.echo("All approval workflows are consistent.")
            return
        for workflow_id, problems in report.items():
            click.echo(f"{workflow_id}:")
            for problem in problems:
                click.echo(f"  - {problem}")
        raise SystemExit(1)


def _register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error on %s", request.path, exc_info=True)
        return {"error": "Internal server error"}, 500
