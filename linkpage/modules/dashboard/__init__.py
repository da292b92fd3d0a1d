"""
Dashboard Module
================

Admin dashboard interface for LinkPage.

Provides:
- Admin sign-in/sign-out against the configured identity provider
- First-admin setup while no admin exists (bootstrap mode)
- Link list management with recent activity

Authorization lives in authorization.py and is re-checked by the link
service on every change, so the pages here are only the presentation.
"""

from flask import Blueprint

# Note: Blueprint name is 'admin' so url_for('admin.login') works across modules
dashboard_bp = Blueprint(
    'admin',
    __name__,
    url_prefix='/admin',
    template_folder='templates'
)

# Import routes after blueprint is created
from . import routes

__all__ = ['dashboard_bp']
