"""
Client Context
==============

Holds the handles to the hosted services (document store, identity provider)
plus the change hub and audit log. Created once per app by LinkPage and passed
into the link and admin services; nothing reaches these through module globals.
"""

import logging

from .config import check_required
from .firestore import FirestoreStore
from .identity import FirebaseIdentityProvider, LocalIdentityProvider
from .logging_service import LoggingService
from .sqlite_store import SqliteStore
from .store import ChangeHub

logger = logging.getLogger(__name__)


class ClientContext:
    """Process-wide handles shared by the sync, CRUD and authorization services"""

    def __init__(self, store, identity_provider, settings=None, hub=None, audit=None):
        self.store = store
        self.identity_provider = identity_provider
        self.settings = settings or {}
        self.hub = hub or ChangeHub()
        self.audit = audit or LoggingService()

    @property
    def links_collection(self):
        return self.settings.get('LINKS_COLLECTION') or 'links'

    @property
    def admins_collection(self):
        return self.settings.get('ADMINS_COLLECTION') or 'admins'

    @property
    def meta_collection(self):
        return self.settings.get('META_COLLECTION') or 'meta'

    @property
    def poll_interval(self):
        return float(self.settings.get('SYNC_POLL_INTERVAL') or 5)

    @classmethod
    def from_settings(cls, settings):
        """Validate settings and connect to the configured backend"""
        check_required(settings)
        backend = settings['LINKPAGE_BACKEND']

        if backend == 'firebase':
            timeout = float(settings.get('REQUEST_TIMEOUT') or 10)
            store = FirestoreStore(
                project_id=settings['FIREBASE_PROJECT_ID'],
                api_key=settings['FIREBASE_API_KEY'],
                database=settings.get('FIRESTORE_DATABASE'),
                emulator_host=settings.get('FIRESTORE_EMULATOR_HOST'),
                timeout=timeout,
            )
            identity_provider = FirebaseIdentityProvider(
                api_key=settings['FIREBASE_API_KEY'],
                emulator_host=settings.get('FIREBASE_AUTH_EMULATOR_HOST'),
                timeout=timeout,
            )
        else:
            store = SqliteStore(settings['LINKS_DB'])
            identity_provider = LocalIdentityProvider(settings['LINKS_DB'])

        logger.info(f"LinkPage using {store.name} store and {identity_provider.name} identity provider")
        return cls(
            store=store,
            identity_provider=identity_provider,
            settings=settings,
            audit=LoggingService(settings.get('LOG_DB')),
        )
