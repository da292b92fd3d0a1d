"""
Links Service
=============

The link list contract shared by the public page and the admin dashboard:

- LinkSync reads the links collection as one ordered list and streams a fresh
  copy of the whole list after every change (LinkSubscription).
- LinkService validates and performs create/update/delete. Every call checks
  that the acting identity is an admin before touching the store.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from linkpage.core.errors import StoreError, SubscriptionError, ValidationError

logger = logging.getLogger(__name__)

TARGETS = ('_blank', '_self')
DEFAULT_TARGET = '_blank'

# Schemes that can run script when used as an href
BLOCKED_SCHEMES = {'javascript', 'data', 'vbscript'}
# Schemes that are meaningless without a host
HOST_SCHEMES = {'http', 'https', 'ftp'}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Link:
    """One entry in the public link list"""

    id: str
    title: str
    url: str
    order: int
    target: str = DEFAULT_TARGET
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document) -> 'Link':
        data = document.data
        target = data.get('target')
        return cls(
            id=document.id,
            title=data.get('title') or '',
            url=data.get('url') or '',
            order=_coerce_order(data.get('order')),
            target=target if target in TARGETS else DEFAULT_TARGET,
            created_at=document.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'url': self.url,
            'order': self.order,
            'target': self.target,
        }


def _coerce_order(value) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def sort_links(links: List[Link]) -> List[Link]:
    """Display order: ascending ``order``, ties by creation time, then id"""
    return sorted(links, key=lambda link: (link.order, link.created_at or _EPOCH, link.id))


# ===== Validation =====

def validate_title(title) -> str:
    title = (title or '').strip() if isinstance(title, str) else ''
    if not title:
        raise ValidationError('Title is required', field='title')
    return title


def validate_url(url) -> str:
    url = (url or '').strip() if isinstance(url, str) else ''
    if not url:
        raise ValidationError('URL is required', field='url')

    try:
        parsed = urlparse(url)
    except ValueError:
        raise ValidationError('Invalid URL format', field='url')

    scheme = parsed.scheme.lower()
    if not scheme or any(ch.isspace() for ch in url):
        raise ValidationError('Invalid URL format', field='url')
    if scheme in BLOCKED_SCHEMES:
        raise ValidationError(f'{scheme}: links are not allowed', field='url')
    if scheme in HOST_SCHEMES and not parsed.hostname:
        raise ValidationError('Invalid URL format', field='url')
    if scheme not in HOST_SCHEMES and not (parsed.netloc or parsed.path):
        raise ValidationError('Invalid URL format', field='url')
    return url


def validate_target(target) -> str:
    if target in (None, ''):
        return DEFAULT_TARGET
    if target not in TARGETS:
        raise ValidationError(f"Target must be one of: {', '.join(TARGETS)}", field='target')
    return target


def validate_order(order) -> int:
    if isinstance(order, bool):
        raise ValidationError('Order must be a whole number', field='order')
    if isinstance(order, int):
        return order
    if isinstance(order, float) and order.is_integer():
        return int(order)
    if isinstance(order, str):
        try:
            return int(order.strip())
        except ValueError:
            pass
    raise ValidationError('Order must be a whole number', field='order')


# ===== Sync =====

class LinkSubscription:
    """
    Iterator over successive snapshots of the ordered link list.

    The first ``next()`` returns the current list immediately. After that it
    blocks until a write goes through the change hub, or the poll interval
    passes and the stored list differs from the last one delivered. Call
    ``close()`` (or leave the ``with`` block) to stop delivery.

    ``poll()`` is the single-step form: it waits at most one poll interval
    and returns None when nothing changed, so a caller can do other work
    (such as writing a keep-alive) between deliveries.

    On a store failure the subscription yields one empty list and then
    raises SubscriptionError; it is finished after that.
    """

    def __init__(self, fetch, hub, poll_interval):
        self._fetch = fetch
        self._hub = hub
        self._poll_interval = poll_interval
        self._closed = False
        self._version = None
        self._last = None
        self.error = None

    @property
    def closed(self):
        return self._closed

    def __iter__(self):
        return self

    def poll(self) -> Optional[List[Link]]:
        """Next list, or None if the interval passed with no change or the subscription closed"""
        if self.error is not None:
            error, self.error = self.error, None
            self._closed = True
            raise error
        if self._closed:
            return None

        first = self._version is None
        if first:
            version = self._hub.version
        else:
            version = self._hub.wait(self._version, timeout=self._poll_interval,
                                     cancelled=lambda: self._closed)
            if self._closed:
                return None
        changed = version != self._version
        self._version = version

        try:
            links = self._fetch()
        except StoreError as e:
            logger.error(f"Link subscription failed: {e}")
            self.error = e if isinstance(e, SubscriptionError) else SubscriptionError(str(e))
            return []

        if first or changed or links != self._last:
            self._last = links
            return links
        return None

    def __next__(self) -> List[Link]:
        while not self._closed or self.error is not None:
            links = self.poll()
            if links is not None:
                return links
        raise StopIteration

    def close(self):
        """Stop delivery; safe to call more than once"""
        if not self._closed:
            self._closed = True
            self._hub.wake()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class LinkSync:
    """Reads the links collection as one ordered list"""

    def __init__(self, context):
        self.context = context

    def current(self) -> List[Link]:
        """The ordered list right now; raises SubscriptionError if the store fails"""
        try:
            documents = self.context.store.list_documents(
                self.context.links_collection, order_by='order'
            )
        except StoreError as e:
            if isinstance(e, SubscriptionError):
                raise
            raise SubscriptionError(str(e))
        return sort_links([Link.from_document(doc) for doc in documents])

    def subscribe(self) -> LinkSubscription:
        """Open a fresh subscription; the caller owns it and must close it"""
        return LinkSubscription(self.current, self.context.hub, self.context.poll_interval)


# ===== CRUD =====

class LinkService:
    """Validated link mutations, restricted to admins"""

    def __init__(self, context, authorization, sync=None):
        self.context = context
        self.authorization = authorization
        self.sync = sync or LinkSync(context)

    @property
    def _collection(self):
        return self.context.links_collection

    def _changed(self, identity, action, link_id, details=None):
        self.context.hub.publish()
        self.context.audit.log_user_action(
            'links', f"{action} link {link_id}", user_id=identity.uid, details=details
        )

    def create(self, identity, title, url, target=None) -> Link:
        """Append a new link at the end of the list"""
        self.authorization.require_authorized(identity)
        title = validate_title(title)
        url = validate_url(url)
        target = validate_target(target)

        # Append semantics: order is the current list length, siblings untouched
        order = len(self.context.store.list_documents(self._collection, token=identity.id_token))
        document = self.context.store.create_document(
            self._collection,
            {'title': title, 'url': url, 'order': order, 'target': target},
            token=identity.id_token,
        )
        link = Link.from_document(document)
        self._changed(identity, 'created', link.id, {'title': title, 'url': url, 'order': order})
        return link

    def update(self, identity, link_id, title, url, order=None, target=None) -> Link:
        """Overwrite a link's fields; order/target of None keep the stored value"""
        self.authorization.require_authorized(identity)
        data = {'title': validate_title(title), 'url': validate_url(url)}
        if order is not None and order != '':
            data['order'] = validate_order(order)
        if target is not None and target != '':
            data['target'] = validate_target(target)

        document = self.context.store.update_document(
            self._collection, link_id, data, token=identity.id_token
        )
        link = Link.from_document(document)
        self._changed(identity, 'updated', link_id, data)
        return link

    def delete(self, identity, link_id) -> None:
        """Remove a link permanently; remaining order values are left as they are"""
        self.authorization.require_authorized(identity)
        self.context.store.delete_document(self._collection, link_id, token=identity.id_token)
        self._changed(identity, 'deleted', link_id)
