"""
LinkPage Modules
================

Flask blueprint modules: the public link page, the admin dashboard and ops.
"""

__all__ = ['dashboard', 'links', 'ops']
