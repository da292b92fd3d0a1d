"""
Admin authorization and first-admin bootstrap tests.
"""

import threading
from unittest.mock import MagicMock

import pytest

from linkpage.core.context import ClientContext
from linkpage.core.errors import AuthError, BootstrapClosedError, PermissionDeniedError, StoreError
from linkpage.core.identity import Identity
from linkpage.core.sqlite_store import SqliteStore
from linkpage.core.store import Document
from linkpage.modules.dashboard.authorization import AdminAuthorization


def test_empty_admin_set_is_bootstrap_mode(admins):
    assert admins.is_bootstrap() is True


def test_nobody_is_authorized_on_empty_set(admins, visitor_identity):
    assert admins.is_authorized(visitor_identity) is False


def test_none_identity_is_not_authorized(admins, admin_identity):
    assert admins.is_authorized(None) is False


def test_bootstrap_makes_first_admin(admins, visitor_identity):
    admin = admins.bootstrap(visitor_identity)

    assert admin.uid == visitor_identity.uid
    assert admin.email == visitor_identity.email
    assert admin.role == "admin"
    assert admins.is_bootstrap() is False
    assert admins.is_authorized(visitor_identity) is True


def test_bootstrap_writes_admin_record_and_claim(context, admins, visitor_identity):
    admins.bootstrap(visitor_identity)

    record = context.store.get_document(context.admins_collection, visitor_identity.uid)
    assert record.data["email"] == visitor_identity.email
    assert record.data["role"] == "admin"

    claim = context.store.get_document(context.meta_collection, "bootstrap")
    assert claim.data["uid"] == visitor_identity.uid


def test_second_bootstrap_is_rejected(admins):
    first = Identity(uid="a", email="a@example.com")
    second = Identity(uid="b", email="b@example.com")

    admins.bootstrap(first)
    with pytest.raises(BootstrapClosedError):
        admins.bootstrap(second)

    assert admins.is_authorized(second) is False


def test_bootstrap_requires_identity(admins):
    with pytest.raises(AuthError):
        admins.bootstrap(None)
    assert admins.is_bootstrap() is True


def test_concurrent_bootstrap_has_single_winner(admins):
    """Two simultaneous first sign-ups: exactly one becomes admin."""
    identities = [Identity(uid=f"user-{i}", email=f"user{i}@example.com") for i in range(2)]
    barrier = threading.Barrier(len(identities))
    results = {}

    def claim(identity):
        barrier.wait()
        try:
            results[identity.uid] = admins.bootstrap(identity)
        except BootstrapClosedError as e:
            results[identity.uid] = e

    threads = [threading.Thread(target=claim, args=(identity,)) for identity in identities]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [uid for uid, result in results.items() if not isinstance(result, Exception)]
    assert len(winners) == 1
    assert len(results) == 2
    assert sum(admins.is_authorized(identity) for identity in identities) == 1


def test_claim_blocks_bootstrap_even_if_admins_emptied(context, admins, visitor_identity):
    admins.bootstrap(visitor_identity)
    context.store.delete_document(context.admins_collection, visitor_identity.uid)

    assert admins.is_bootstrap() is True
    with pytest.raises(BootstrapClosedError):
        admins.bootstrap(Identity(uid="late", email="late@example.com"))


class FailingAdminStore(SqliteStore):
    """Local store that refuses to write admin records."""

    def create_document(self, collection, data, doc_id=None, token=None):
        if collection == "admins":
            raise StoreError("write rejected")
        return super().create_document(collection, data, doc_id=doc_id, token=token)


def test_failed_admin_write_releases_claim(context, tmp_db_dir, visitor_identity):
    context.store = FailingAdminStore(context.store.db_path)
    admins = AdminAuthorization(context)

    with pytest.raises(StoreError):
        admins.bootstrap(visitor_identity)

    assert context.store.get_document(context.meta_collection, "bootstrap") is None
    assert admins.is_bootstrap() is True


def test_email_fallback_matches_case_insensitively(context, admins):
    context.store.create_document(context.admins_collection,
                                  {"email": "Boss@Example.com", "role": "admin"}, doc_id="pre")

    assert admins.is_authorized(Identity(uid="new-uid", email="boss@example.com")) is True
    assert admins.is_authorized(Identity(uid="new-uid", email="other@example.com")) is False


def test_email_fallback_can_require_verified_email(context):
    context.settings["ADMIN_EMAIL_REQUIRES_VERIFIED"] = True
    admins = AdminAuthorization(context)
    context.store.create_document(context.admins_collection,
                                  {"email": "boss@example.com"}, doc_id="pre")

    unverified = Identity(uid="u", email="boss@example.com", email_verified=False)
    verified = Identity(uid="u", email="boss@example.com", email_verified=True)

    assert admins.is_authorized(unverified) is False
    assert admins.is_authorized(verified) is True


def test_uid_match_ignores_email(admins, admin_identity):
    renamed = Identity(uid=admin_identity.uid, email="changed@example.com")
    assert admins.is_authorized(renamed) is True


def test_require_authorized_logs_security_event(context, admins, admin_identity, visitor_identity):
    with pytest.raises(PermissionDeniedError):
        admins.require_authorized(visitor_identity)

    entry = context.audit.recent(1)[0]
    assert entry["level"] == "WARNING"
    assert entry["user_id"] == visitor_identity.uid


# ---------------------------------------------------------------------------
# Hosted backend: email fallback follows the access rules
# ---------------------------------------------------------------------------

def _hosted_admins(*documents):
    store = MagicMock()
    store.name = "firestore"
    store.list_documents.return_value = list(documents)
    context = ClientContext(store=store, identity_provider=MagicMock(), audit=MagicMock())
    return AdminAuthorization(context)


def test_hosted_email_fallback_needs_email_keyed_record():
    admins = _hosted_admins(Document(id="someId", data={"email": "boss@example.com"},
                                     created_at=None))

    verified = Identity(uid="u", email="boss@example.com", email_verified=True)
    assert admins.is_authorized(verified) is False


def test_hosted_email_fallback_accepts_verified_email_key():
    admins = _hosted_admins(Document(id="boss@example.com", data={"role": "admin"},
                                     created_at=None))

    assert admins.is_authorized(Identity(uid="u", email="Boss@Example.com",
                                         email_verified=True)) is True
    assert admins.is_authorized(Identity(uid="u", email="boss@example.com",
                                         email_verified=False)) is False


def test_hosted_uid_match_is_unchanged():
    admins = _hosted_admins(Document(id="u1", data={"uid": "u1", "email": "a@example.com"},
                                     created_at=None))
    assert admins.is_authorized(Identity(uid="u1", email="other@example.com")) is True


# ---------------------------------------------------------------------------
# Bootstrap claim visibility
# ---------------------------------------------------------------------------

def test_is_claimed_tracks_bootstrap_claim(admins, visitor_identity):
    assert admins.is_claimed() is False

    admins.bootstrap(visitor_identity)

    assert admins.is_claimed() is True


def test_claim_document_holds_no_email(context, admins, visitor_identity):
    admins.bootstrap(visitor_identity)

    claim = context.store.get_document(context.meta_collection, "bootstrap")
    assert set(claim.data) == {"uid", "claimedAt"}
