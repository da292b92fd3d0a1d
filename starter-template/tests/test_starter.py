"""
Critical tests for the LinkPage starter template.
Run with: pytest tests/test_starter.py -v
"""

import os
import sys
import pytest

# Add parent directory to path so we can import the app
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


@pytest.fixture
def app():
    """Create application for testing."""
    from app import app
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def test_app_starts(app):
    """App should start with LinkPage registered."""
    assert 'linkpage' in app.extensions


def test_health_endpoint(client):
    """Health endpoint should return 200 with the local store."""
    response = client.get('/health')
    assert response.status_code == 200


def test_homepage(client):
    """Public link page should return 200."""
    response = client.get('/')
    assert response.status_code == 200


def test_admin_redirects_when_signed_out(client):
    """Admin panel sends signed-out visitors to login or first-admin setup."""
    response = client.get('/admin/', follow_redirects=False)
    assert response.status_code == 302
    assert '/admin/' in response.headers['Location']
