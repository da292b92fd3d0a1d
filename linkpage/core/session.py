"""
Request helpers shared by the blueprints: the LinkPage extension for the
current app and the signed-in identity kept in the Flask session.
"""

from flask import current_app, session

from .identity import Identity

SESSION_KEY = 'linkpage_identity'


def get_linkpage():
    """The LinkPage extension registered on the current app"""
    return current_app.extensions['linkpage']


def current_identity():
    return Identity.from_session(session.get(SESSION_KEY))


def remember_identity(identity):
    session[SESSION_KEY] = identity.to_session()
    session['admin_email'] = identity.email


def forget_identity():
    session.pop(SESSION_KEY, None)
    session.pop('admin_email', None)
