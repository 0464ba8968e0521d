"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db init       # first time only (creates migrations/ scaffolding)
    flask --app wsgi db upgrade
    gunicorn wsgi:app
"""

from sample_tracker import create_app

app = create_app()
