import os
from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv(override=True)


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Base configuration for LinkPage.
    Every value can be overridden through the Flask app config.
    """
    # Flask settings
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY') or os.getenv('SECRET_KEY')

    # Backend: 'firebase' (hosted Firestore + Firebase Auth) or 'local' (sqlite)
    LINKPAGE_BACKEND = os.getenv('LINKPAGE_BACKEND', 'local')

    # Firebase settings
    FIREBASE_API_KEY = os.getenv('FIREBASE_API_KEY')
    FIREBASE_PROJECT_ID = os.getenv('FIREBASE_PROJECT_ID')
    FIRESTORE_DATABASE = os.getenv('FIRESTORE_DATABASE', '(default)')
    FIRESTORE_EMULATOR_HOST = os.getenv('FIRESTORE_EMULATOR_HOST')
    FIREBASE_AUTH_EMULATOR_HOST = os.getenv('FIREBASE_AUTH_EMULATOR_HOST')

    # Get DB_DIR from environment, or use a default if not set
    DB_DIR = os.getenv('DB_DIR', os.path.join(os.getcwd(), 'databases'))

    # Database paths - use environment variables or fallback to DB_DIR
    LINKS_DB = os.getenv('LINKS_DB', os.path.join(DB_DIR, 'linkpage.db'))
    LOG_DB = os.getenv('LOG_DB', os.path.join(DB_DIR, 'app_logs.db'))

    # Collection names
    LINKS_COLLECTION = os.getenv('LINKS_COLLECTION', 'links')
    ADMINS_COLLECTION = os.getenv('ADMINS_COLLECTION', 'admins')
    META_COLLECTION = os.getenv('META_COLLECTION', 'meta')

    # Public profile
    PROFILE_NAME = os.getenv('PROFILE_NAME', 'CSE B')
    PROFILE_BIO = os.getenv('PROFILE_BIO', 'One link to rule them all')
    PROFILE_AVATAR_URL = os.getenv('PROFILE_AVATAR_URL', '')

    # Sync and network
    SYNC_POLL_INTERVAL = float(os.getenv('SYNC_POLL_INTERVAL', '5'))
    REQUEST_TIMEOUT = float(os.getenv('REQUEST_TIMEOUT', '10'))

    # Only match admins by email when the provider has verified that email
    ADMIN_EMAIL_REQUIRES_VERIFIED = _env_bool('ADMIN_EMAIL_REQUIRES_VERIFIED')


# Settings each backend cannot start without
REQUIRED_SETTINGS = {
    'firebase': ['SECRET_KEY', 'FIREBASE_API_KEY', 'FIREBASE_PROJECT_ID'],
    'local': ['SECRET_KEY', 'LINKS_DB'],
}

SETTING_KEYS = [key for key in vars(Config) if key.isupper()]


def resolve_config(app_config=None):
    """
    Build the effective settings dict: Flask app config first, then Config
    class defaults (which already include environment variables).
    """
    app_config = app_config or {}
    settings = {}
    for key in SETTING_KEYS:
        value = app_config.get(key)
        settings[key] = value if value not in (None, '') else getattr(Config, key)
    return settings


def check_required(settings):
    """Raise ConfigError naming every required setting that is missing"""
    backend = settings.get('LINKPAGE_BACKEND')
    if backend not in REQUIRED_SETTINGS:
        raise ConfigError(
            f"Unknown LINKPAGE_BACKEND '{backend}' (expected one of: "
            f"{', '.join(sorted(REQUIRED_SETTINGS))})"
        )

    missing = [key for key in REQUIRED_SETTINGS[backend] if not settings.get(key)]
    if missing:
        raise ConfigError(
            f"Missing required configuration for the {backend} backend: {', '.join(missing)}"
        )
    return settings
