"""
LinkPage - A Flask link-in-bio page
===================================

A public page showing a profile and an ordered list of links, kept live for
every viewer, plus an admin dashboard for managing the links. Links and
admins live in a hosted document store (Firestore) with Firebase Auth for
sign-in, or in a local sqlite database for development.

Usage:
    from flask import Flask
    from linkpage import LinkPage

    app = Flask(__name__)
    LinkPage(app)

    # or with the application factory pattern
    linkpage = LinkPage()
    linkpage.init_app(app, {'features': {'ops': False}})
"""

import logging
import os
import time

from .core.config import resolve_config
from .core.context import ClientContext
from .modules.dashboard.authorization import AdminAuthorization
from .modules.links.service import LinkService, LinkSync

__version__ = '0.1.0'

logger = logging.getLogger(__name__)

DEFAULT_FEATURES = {
    'links': True,
    'dashboard': True,
    'ops': True,
}

# Local database files derived from DB_DIR when not set explicitly
DB_FILES = {
    'LINKS_DB': 'linkpage.db',
    'LOG_DB': 'app_logs.db',
}


class LinkPage:
    """Flask extension wiring the link services and blueprints into an app"""

    def __init__(self, app=None, config=None):
        self._config = {}
        self._registered = []
        self.settings = {}
        self.context = None
        self.admins = None
        self.sync = None
        self.links = None
        self.started_at = time.time()
        if app is not None:
            self.init_app(app, config)

    def init_app(self, app, config=None):
        """Resolve settings, connect the services and register blueprints"""
        self._config = dict(config or {})
        self._registered = []
        self.settings = self._resolve_settings(app)

        if not app.config.get('SECRET_KEY'):
            app.config['SECRET_KEY'] = self.settings['SECRET_KEY']
        for key in ('DB_DIR',) + tuple(DB_FILES):
            if not app.config.get(key):
                app.config[key] = self.settings[key]

        if self.settings['LINKPAGE_BACKEND'] == 'local':
            self._setup_database_dir()

        self.context = ClientContext.from_settings(self.settings)
        self.admins = AdminAuthorization(self.context)
        self.sync = LinkSync(self.context)
        self.links = LinkService(self.context, self.admins, sync=self.sync)
        self.started_at = time.time()

        self._register_blueprints(app)
        app.context_processor(self._inject_template_context)

        app.extensions['linkpage'] = self
        logger.info(f"LinkPage initialised with modules: {', '.join(self._registered)}")
        return self

    def _resolve_settings(self, app):
        """Explicit config dict first, then app config, then Config defaults"""
        source = dict(app.config)
        source.update({k: v for k, v in self._config.items() if k.isupper()})
        settings = resolve_config(source)

        for key, filename in DB_FILES.items():
            if not source.get(key) and source.get('DB_DIR') and not os.getenv(key):
                settings[key] = os.path.join(settings['DB_DIR'], filename)
        return settings

    def _setup_database_dir(self):
        """Create the local database directory (and any custom DB parents)"""
        paths = [self.settings['DB_DIR']]
        paths += [os.path.dirname(self.settings[key]) for key in DB_FILES if self.settings.get(key)]
        for path in paths:
            if path:
                os.makedirs(path, exist_ok=True)

    @property
    def features(self):
        features = dict(DEFAULT_FEATURES)
        features.update(self._config.get('features') or {})
        return features

    def _register_blueprints(self, app):
        features = self.features

        if features.get('dashboard'):
            from .modules.dashboard import dashboard_bp
            app.register_blueprint(dashboard_bp)
            self._registered.append('dashboard')

        if features.get('links'):
            from .modules.links import links_bp, links_admin_bp
            app.register_blueprint(links_bp)
            app.register_blueprint(links_admin_bp)
            self._registered.append('links')

        if features.get('ops'):
            from .modules.ops import ops_health_bp
            app.register_blueprint(ops_health_bp)
            self._registered.append('ops')

    def get_registered_modules(self):
        return list(self._registered)

    @property
    def profile(self):
        name = self.settings.get('PROFILE_NAME') or ''
        return {
            'name': name,
            'bio': self.settings.get('PROFILE_BIO') or '',
            'avatar_url': self.settings.get('PROFILE_AVATAR_URL') or '',
            'initial': name[:1].upper(),
        }

    def _inject_template_context(self):
        return {
            'linkpage_config': {
                'backend': self.settings.get('LINKPAGE_BACKEND'),
                'features': self.features,
            },
            'profile': self.profile,
        }


__all__ = ['LinkPage', '__version__']
