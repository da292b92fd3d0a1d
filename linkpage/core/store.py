"""
Document Store
==============

Shared pieces of the store clients: the document tuple every backend
returns, the base client interface and the in-process change hub that
wakes link subscriptions after a write.
"""

import threading
from collections import namedtuple

# id: store-assigned key, data: field dict, created_at: datetime or None
Document = namedtuple('Document', ['id', 'data', 'created_at'])


class DocumentStore:
    """
    Minimal document-collection client used by the link and admin services.

    Backends raise NotFoundError, AlreadyExistsError, PermissionDeniedError
    or StoreError from linkpage.core.errors. ``token`` is the signed-in
    user's ID token, forwarded to hosted stores that enforce access rules.
    """

    name = 'base'

    def list_documents(self, collection, order_by=None, token=None):
        """Return every document in a collection, ascending by ``order_by`` if given"""
        raise NotImplementedError

    def get_document(self, collection, doc_id, token=None):
        """Return a Document or None"""
        raise NotImplementedError

    def create_document(self, collection, data, doc_id=None, token=None):
        """Create a document; with ``doc_id`` this is a create-if-absent"""
        raise NotImplementedError

    def update_document(self, collection, doc_id, data, token=None):
        """Overwrite the given fields of an existing document"""
        raise NotImplementedError

    def delete_document(self, collection, doc_id, token=None):
        """Delete an existing document"""
        raise NotImplementedError

    def ping(self):
        """Cheap connectivity check, raises StoreError when unreachable"""
        raise NotImplementedError


class ChangeHub:
    """Version counter bumped after every write made through this process"""

    def __init__(self):
        self._condition = threading.Condition()
        self._version = 0

    @property
    def version(self):
        with self._condition:
            return self._version

    def publish(self):
        """Record a change and wake every waiting subscription"""
        with self._condition:
            self._version += 1
            self._condition.notify_all()
            return self._version

    def wake(self):
        """Wake waiters without recording a change (used on unsubscribe)"""
        with self._condition:
            self._condition.notify_all()

    def wait(self, since, timeout=None, cancelled=None):
        """
        Block until the version moves past ``since``, ``cancelled()`` turns
        true or ``timeout`` seconds pass. Returns the current version.
        """
        def ready():
            return self._version != since or (cancelled is not None and cancelled())

        with self._condition:
            self._condition.wait_for(ready, timeout=timeout)
            return self._version
