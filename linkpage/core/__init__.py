"""
LinkPage Core
=============

Configuration, errors, audit logging and the clients for the hosted
document store and identity provider.
"""

from .config import Config, resolve_config, check_required
from .context import ClientContext
from .errors import (
    LinkPageError, ValidationError, NotFoundError, AuthError, PermissionDeniedError,
    BootstrapClosedError, AlreadyExistsError, StoreError, SubscriptionError, ConfigError
)
from .identity import Identity
from .logging_service import LoggingService
from .session import get_linkpage, current_identity, remember_identity, forget_identity

__all__ = [
    'Config', 'resolve_config', 'check_required', 'ClientContext', 'Identity', 'LoggingService',
    'get_linkpage', 'current_identity', 'remember_identity', 'forget_identity',
    'LinkPageError', 'ValidationError', 'NotFoundError', 'AuthError', 'PermissionDeniedError',
    'BootstrapClosedError', 'AlreadyExistsError', 'StoreError', 'SubscriptionError', 'ConfigError',
]
