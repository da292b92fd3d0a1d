"""
Admin Authorization
===================

Decides who may manage links: members of the admins collection, matched by
uid or (as a fallback for admins pre-provisioned by email) by email.

On the hosted backend the access rules can only look an admin up by document
key, so there the email fallback needs a verified email and a record keyed
by that lowercased email, which is exactly what the rules accept.

While the admins collection is empty the site is in bootstrap mode and the
first signed-in account may promote itself. The promotion claims a singleton
``meta/bootstrap`` document with a create-if-absent write first, so two
simultaneous first sign-ups cannot both become admin.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from linkpage.core.errors import (
    AlreadyExistsError, AuthError, BootstrapClosedError, LinkPageError, PermissionDeniedError
)

logger = logging.getLogger(__name__)

ADMIN_ROLE = 'admin'
BOOTSTRAP_DOC_ID = 'bootstrap'


@dataclass(frozen=True)
class Admin:
    """A member of the admins collection"""

    uid: str
    email: Optional[str]
    role: str = ADMIN_ROLE
    created_at: Any = None
    key: Optional[str] = None

    @classmethod
    def from_document(cls, document) -> 'Admin':
        data = document.data
        return cls(
            uid=data.get('uid') or document.id,
            email=data.get('email'),
            role=data.get('role') or ADMIN_ROLE,
            created_at=data.get('createdAt') or document.created_at,
            key=document.id,
        )


def _same_email(left, right):
    return bool(left and right) and left.strip().lower() == right.strip().lower()


class AdminAuthorization:
    """Admin Set membership checks and the one-time bootstrap"""

    def __init__(self, context):
        self.context = context
        # Hosted rules resolve email-provisioned admins by document key only
        self.email_keyed = getattr(context.store, 'name', None) == 'firestore'
        self.require_verified_email = self.email_keyed or bool(
            context.settings.get('ADMIN_EMAIL_REQUIRES_VERIFIED')
        )

    def _admins(self, identity=None) -> List[Admin]:
        token = identity.id_token if identity else None
        documents = self.context.store.list_documents(
            self.context.admins_collection, token=token
        )
        return [Admin.from_document(doc) for doc in documents]

    def is_bootstrap(self, identity=None) -> bool:
        """True iff there are no admins yet (full scan, the set is tiny)"""
        return len(self._admins(identity)) == 0

    def is_authorized(self, identity) -> bool:
        """True iff the identity's uid or email belongs to an admin record"""
        if identity is None or not identity.uid:
            return False

        email_match_allowed = identity.email_verified or not self.require_verified_email
        for admin in self._admins(identity):
            if admin.uid == identity.uid:
                return True
            if email_match_allowed and self._email_matches(admin, identity):
                return True
        return False

    def _email_matches(self, admin, identity):
        if self.email_keyed:
            return _same_email(admin.key, identity.email)
        return _same_email(admin.email, identity.email)

    def is_claimed(self) -> bool:
        """True once someone holds the bootstrap claim; readable while signed out"""
        claim = self.context.store.get_document(self.context.meta_collection, BOOTSTRAP_DOC_ID)
        return claim is not None

    def require_authorized(self, identity):
        """Raise unless the identity is an admin"""
        if identity is None:
            raise AuthError('Please sign in to manage links')
        if not self.is_authorized(identity):
            self.context.audit.log_security_event(
                'Rejected link change from non-admin',
                {'email': identity.email}, user_id=identity.uid
            )
            raise PermissionDeniedError("You don't have permission to manage links")

    def bootstrap(self, identity) -> Admin:
        """Make the identity the first admin; only allowed while no admin exists"""
        if identity is None:
            raise AuthError('Please sign in to create the first admin')

        if not self.is_bootstrap(identity):
            raise BootstrapClosedError('An administrator already exists')

        store = self.context.store
        token = identity.id_token
        now = datetime.now(timezone.utc)

        try:
            store.create_document(
                self.context.meta_collection,
                {'uid': identity.uid, 'claimedAt': now},
                doc_id=BOOTSTRAP_DOC_ID, token=token,
            )
        except AlreadyExistsError:
            logger.warning(f"Bootstrap claim by {identity.email} lost to an earlier claim")
            raise BootstrapClosedError('An administrator already exists')

        record = {
            'uid': identity.uid,
            'email': identity.email,
            'role': ADMIN_ROLE,
            'createdAt': now,
        }
        try:
            document = store.create_document(
                self.context.admins_collection, record, doc_id=identity.uid, token=token
            )
        except LinkPageError:
            # Release the claim so bootstrap can be retried
            try:
                store.delete_document(self.context.meta_collection, BOOTSTRAP_DOC_ID, token=token)
            except LinkPageError as e:
                logger.error(f"Could not release bootstrap claim: {e}")
            raise

        self.context.audit.log_user_action(
            'admin', 'bootstrapped first admin', user_id=identity.uid,
            details={'email': identity.email}
        )
        return Admin.from_document(document)
