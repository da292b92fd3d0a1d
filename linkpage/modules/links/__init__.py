"""
Links Module
============

Public link page and the link list API (linktree-style).
Two blueprints: the public page/feed and the admin JSON editor API.
"""

from flask import Blueprint

# Public page, JSON feed and live stream
links_bp = Blueprint(
    'links',
    __name__,
    url_prefix='',
    template_folder='templates'
)

# Admin JSON API for editing links
links_admin_bp = Blueprint(
    'links_admin',
    __name__,
    url_prefix='/admin/api/links'
)

from . import routes

__all__ = ['links_bp', 'links_admin_bp']
