"""
Shared fixtures: temporary sqlite directories, a LinkPage app on the local
backend, and services wired directly onto a local store.
"""

import os
import shutil
import tempfile

import pytest
from flask import Flask

from linkpage import LinkPage
from linkpage.core.context import ClientContext
from linkpage.core.identity import Identity, LocalIdentityProvider
from linkpage.core.logging_service import LoggingService
from linkpage.core.session import SESSION_KEY
from linkpage.core.sqlite_store import SqliteStore
from linkpage.modules.dashboard.authorization import AdminAuthorization
from linkpage.modules.links.service import LinkService, LinkSync


@pytest.fixture
def tmp_db_dir():
    """Create a temporary directory for test databases, cleaned up after."""
    d = tempfile.mkdtemp(prefix="linkpage-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


def make_app(db_dir, config=None, **settings):
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    app.config["LINKPAGE_BACKEND"] = "local"
    app.config["DB_DIR"] = db_dir
    app.config["LINKS_DB"] = os.path.join(db_dir, "linkpage.db")
    app.config["LOG_DB"] = os.path.join(db_dir, "app_logs.db")
    app.config["SYNC_POLL_INTERVAL"] = 0.05
    app.config.update(settings)
    LinkPage(app, config)
    return app


@pytest.fixture
def app(tmp_db_dir):
    """Flask app with every LinkPage module registered on the local backend."""
    return make_app(tmp_db_dir)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ext(app):
    return app.extensions["linkpage"]


@pytest.fixture
def context(tmp_db_dir):
    """Services context on a fresh local store, without a Flask app."""
    db_path = os.path.join(tmp_db_dir, "linkpage.db")
    return ClientContext(
        store=SqliteStore(db_path),
        identity_provider=LocalIdentityProvider(db_path),
        settings={"SYNC_POLL_INTERVAL": 0.05},
        audit=LoggingService(os.path.join(tmp_db_dir, "app_logs.db")),
    )


@pytest.fixture
def admins(context):
    return AdminAuthorization(context)


@pytest.fixture
def sync(context):
    return LinkSync(context)


@pytest.fixture
def service(context, admins, sync):
    return LinkService(context, admins, sync=sync)


@pytest.fixture
def admin_identity(admins):
    """An identity that has been bootstrapped as the first admin."""
    identity = Identity(uid="admin-uid", email="admin@example.com")
    admins.bootstrap(identity)
    return identity


@pytest.fixture
def visitor_identity():
    return Identity(uid="visitor-uid", email="visitor@example.com")


def sign_in(client, identity):
    """Put an identity in the test client's session."""
    with client.session_transaction() as sess:
        sess[SESSION_KEY] = identity.to_session()


@pytest.fixture
def app_admin(ext):
    """The first admin of the app fixture's store."""
    identity = Identity(uid="owner-uid", email="owner@example.com")
    ext.admins.bootstrap(identity)
    return identity
