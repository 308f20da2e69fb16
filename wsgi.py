"""
WSGI / Flask-Migrate entry point.

Usage:
    flask db upgrade                     # apply workflow schema
    gunicorn wsgi:app                    # serve the workflow API
"""

from app import create_app

app = create_app()
