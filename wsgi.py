"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    gunicorn wsgi:app
"""

from doccontrol import create_app

app = create_app()
