"""
Critical Integration Tests for LinkPage
=======================================

Focused tests covering the integration points most likely to break.
Run with: pytest tests/test_critical.py -v

NOTE: pytest is listed under extras_require["dev"] in setup.py.
Install with: pip install -e ".[dev]"
"""

import os
import shutil
import tempfile
from unittest.mock import patch

import pytest
from flask import Flask

from linkpage import LinkPage
from linkpage.core.config import check_required, resolve_config
from linkpage.core.errors import ConfigError, StoreError
from linkpage.core.logging_service import LoggingService

from conftest import make_app


# ---------------------------------------------------------------------------
# 1. Extension initialisation -- LinkPage(app) does not raise
# ---------------------------------------------------------------------------

def test_extension_initialisation(tmp_db_dir):
    """LinkPage(app) boots without errors and stores itself on the app."""
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    app.config["LINKPAGE_BACKEND"] = "local"
    app.config["DB_DIR"] = tmp_db_dir

    linkpage = LinkPage(app)

    assert "linkpage" in app.extensions
    assert app.extensions["linkpage"] is linkpage
    assert linkpage.links.authorization is linkpage.admins
    assert linkpage.sync.context is linkpage.context


def test_init_app_factory_pattern(tmp_db_dir):
    """LinkPage() then init_app(app) wires the same services."""
    app = Flask(__name__)
    app.config["SECRET_KEY"] = "test-secret"
    app.config["LINKPAGE_BACKEND"] = "local"
    app.config["DB_DIR"] = tmp_db_dir

    linkpage = LinkPage()
    assert linkpage.context is None

    linkpage.init_app(app)
    assert app.extensions["linkpage"] is linkpage
    assert linkpage.context.store.name == "sqlite"


def test_init_app_twice_lists_each_module_once(tmp_db_dir):
    """Reusing one LinkPage across apps reports the last app's modules only."""
    linkpage = LinkPage()
    for _ in range(2):
        app = Flask(__name__)
        app.config["SECRET_KEY"] = "test-secret"
        app.config["LINKPAGE_BACKEND"] = "local"
        app.config["DB_DIR"] = tmp_db_dir
        linkpage.init_app(app)

    assert sorted(linkpage.get_registered_modules()) == sorted(EXPECTED_MODULES)


# ---------------------------------------------------------------------------
# 2. Config resolution -- DB paths derive from DB_DIR
# ---------------------------------------------------------------------------

def test_config_db_paths(tmp_db_dir):
    """LINKS_DB and LOG_DB default to files inside the configured DB_DIR."""
    app = Flask(__name__)
    app.config["SECRET_KEY"] = "test-secret"
    app.config["LINKPAGE_BACKEND"] = "local"
    app.config["DB_DIR"] = tmp_db_dir

    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("LINKS_DB", None)
        os.environ.pop("LOG_DB", None)
        LinkPage(app)

    assert app.config["LINKS_DB"] == os.path.join(tmp_db_dir, "linkpage.db")
    assert app.config["LOG_DB"] == os.path.join(tmp_db_dir, "app_logs.db")


def test_resolve_config_prefers_app_values():
    """App config wins over Config defaults; None and '' fall through."""
    settings = resolve_config({
        "PROFILE_NAME": "Someone",
        "PROFILE_BIO": "",
        "LINKS_COLLECTION": None,
    })

    assert settings["PROFILE_NAME"] == "Someone"
    assert settings["PROFILE_BIO"] == "One link to rule them all"
    assert settings["LINKS_COLLECTION"] == "links"


def test_missing_firebase_settings_raise_config_error():
    """The firebase backend names every missing key at startup."""
    with pytest.raises(ConfigError) as exc:
        check_required({
            "LINKPAGE_BACKEND": "firebase",
            "SECRET_KEY": "s",
            "FIREBASE_API_KEY": "",
            "FIREBASE_PROJECT_ID": None,
        })

    assert "FIREBASE_API_KEY" in exc.value.message
    assert "FIREBASE_PROJECT_ID" in exc.value.message


def test_unknown_backend_raises_config_error():
    with pytest.raises(ConfigError):
        check_required({"LINKPAGE_BACKEND": "mongo", "SECRET_KEY": "s"})


def test_init_app_fails_fast_without_settings(tmp_db_dir):
    """LinkPage(app) raises ConfigError before registering anything."""
    app = Flask(__name__)
    app.config["SECRET_KEY"] = "test-secret"
    app.config["LINKPAGE_BACKEND"] = "firebase"
    app.config["DB_DIR"] = tmp_db_dir

    with patch("linkpage.core.config.Config.FIREBASE_API_KEY", None), \
            patch("linkpage.core.config.Config.FIREBASE_PROJECT_ID", None):
        with pytest.raises(ConfigError):
            LinkPage(app)

    assert "linkpage" not in app.extensions


# ---------------------------------------------------------------------------
# 3. Blueprint registration -- feature flags control modules
# ---------------------------------------------------------------------------

EXPECTED_MODULES = [
    "dashboard",
    "links",
    "ops",
]


def test_all_blueprints_registered(app):
    """All feature modules should be registered as blueprints."""
    registered = app.extensions["linkpage"].get_registered_modules()

    for mod in EXPECTED_MODULES:
        assert mod in registered, (
            f"Module '{mod}' was not registered. Registered: {registered}"
        )

    assert len(registered) == len(EXPECTED_MODULES)


def test_feature_flags_disable_modules(tmp_db_dir):
    """A disabled feature leaves its routes out of the URL map."""
    app = make_app(tmp_db_dir, {"features": {"ops": False}})

    rules = [rule.rule for rule in app.url_map.iter_rules()]
    assert "/health" not in rules
    assert "/api/links" in rules
    assert app.extensions["linkpage"].get_registered_modules() == ["dashboard", "links"]


def test_routes_registered(app):
    rules = [rule.rule for rule in app.url_map.iter_rules()]

    for rule in ["/", "/api/links", "/api/links/stream", "/admin/", "/admin/login",
                 "/admin/setup", "/admin/bootstrap", "/admin/links",
                 "/admin/api/links", "/admin/api/links/<link_id>", "/health"]:
        assert rule in rules, f"{rule} missing. Routes: {sorted(rules)}"


# ---------------------------------------------------------------------------
# 4. Template context -- linkpage_config and profile are injected
# ---------------------------------------------------------------------------

def test_template_context_injection(app):
    """Context processor injects linkpage_config and profile."""
    with app.test_request_context("/"):
        ctx = {}
        for func in app.template_context_processors[None]:
            ctx.update(func())

        assert "linkpage_config" in ctx, "linkpage_config missing from template context"
        assert "profile" in ctx, "profile missing from template context"
        assert ctx["linkpage_config"]["backend"] == "local"
        assert ctx["profile"]["name"] == "CSE B"
        assert ctx["profile"]["initial"] == "C"


# ---------------------------------------------------------------------------
# 5. Database directory creation -- _setup_database_dir creates the dir
# ---------------------------------------------------------------------------

def test_database_dir_creation():
    """_setup_database_dir creates the configured DB_DIR on disk."""
    d = tempfile.mkdtemp(prefix="linkpage-dbtest-")
    target = os.path.join(d, "sub", "databases")

    try:
        app = Flask(__name__)
        app.config["TESTING"] = True
        app.config["SECRET_KEY"] = "test-secret"
        app.config["LINKPAGE_BACKEND"] = "local"
        app.config["DB_DIR"] = target
        app.config["LINKS_DB"] = os.path.join(target, "linkpage.db")
        app.config["LOG_DB"] = os.path.join(target, "app_logs.db")

        LinkPage(app)

        assert os.path.isdir(target), f"DB_DIR was not created at {target}"
        assert os.path.exists(os.path.join(target, "linkpage.db"))
    finally:
        shutil.rmtree(d, ignore_errors=True)


# ---------------------------------------------------------------------------
# 6. Health endpoint -- GET /health reports store and uptime
# ---------------------------------------------------------------------------

def test_health_endpoint(client):
    """GET /health returns JSON with status field and checks dict."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "ok"
    assert data["checks"]["store"]["ok"] is True
    assert data["checks"]["store"]["backend"] == "sqlite"
    assert "uptime" in data["checks"]


def test_health_endpoint_store_down(client, ext):
    """An unreachable store makes the health check critical (503)."""
    with patch.object(ext.context.store, "ping", side_effect=StoreError("disk gone")):
        response = client.get("/health")

    assert response.status_code == 503
    data = response.get_json()
    assert data["status"] == "critical"
    assert data["checks"]["store"]["ok"] is False
    assert data["checks"]["store"]["error"] == "disk gone"


# ---------------------------------------------------------------------------
# 7. Admin auth guard -- unauthenticated requests go to login
# ---------------------------------------------------------------------------

def test_admin_auth_redirect(client, app_admin):
    """Unauthenticated GET to /admin/ should redirect to login once an admin exists."""
    response = client.get("/admin/", follow_redirects=False)
    assert response.status_code == 302
    assert "/admin/login" in response.headers.get("Location", "")


def test_admin_form_action_requires_login(client):
    response = client.post("/admin/links", data={"title": "x", "url": "https://x.com"})
    assert response.status_code == 302
    assert "/admin/login" in response.headers.get("Location", "")


# ---------------------------------------------------------------------------
# 8. Audit log -- entries persist and come back newest first
# ---------------------------------------------------------------------------

def test_audit_log_recent(tmp_db_dir):
    audit = LoggingService(os.path.join(tmp_db_dir, "logs", "app_logs.db"))
    audit.log_user_action("links", "created link a", user_id="u1", details={"title": "A"})
    audit.log_security_event("Rejected link change from non-admin", user_id="u2")

    entries = audit.recent(10)

    assert [e["level"] for e in entries] == ["WARNING", "INFO"]
    assert entries[0]["message"] == "Rejected link change from non-admin"
    assert entries[1]["user_id"] == "u1"


def test_audit_log_without_database():
    """Without a database path the log only goes to the standard logger."""
    audit = LoggingService()
    audit.info("links", "nothing persisted")
    assert audit.recent() == []
