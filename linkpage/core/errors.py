"""
LinkPage Errors
===============

Exception taxonomy shared by the store clients, the identity providers and
the link/admin services. Routes turn these into flashes or JSON responses.
"""


class LinkPageError(Exception):
    """Base class for all LinkPage errors"""

    status_code = 500

    def __init__(self, message=None, field=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        self.field = field

    def to_dict(self):
        data = {'error': self.message}
        if self.field:
            data['field'] = self.field
        return data


class ValidationError(LinkPageError):
    """Invalid input"""

    status_code = 400


class NotFoundError(LinkPageError):
    """Record not found"""

    status_code = 404


class AuthError(LinkPageError):
    """Authentication failed"""

    status_code = 401


class PermissionDeniedError(LinkPageError):
    """You don't have permission to perform this action"""

    status_code = 403


class BootstrapClosedError(PermissionDeniedError):
    """An administrator already exists"""


class AlreadyExistsError(LinkPageError):
    """Record already exists"""

    status_code = 409


class StoreError(LinkPageError):
    """The link store is unavailable"""

    status_code = 503


class SubscriptionError(StoreError):
    """Lost connection to the link store"""


class ConfigError(LinkPageError):
    """Missing or invalid configuration"""
