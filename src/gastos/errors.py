"""Exception hierarchy shared by the clients, the store and the query layer."""


class GastosError(Exception):
    """Base class for every error raised by this package."""


class TransportError(GastosError):
    """Network or HTTP failure while talking to an upstream API."""


class NotFoundError(GastosError):
    """The requested resource does not exist (registry 404, unknown deputy)."""


class DataIntegrityError(GastosError):
    """A record violated a store constraint and was not written."""


class ConfigurationError(GastosError):
    """A required setting is missing or malformed."""


class InvalidFilterError(GastosError, ValueError):
    """A query filter value is outside its documented domain."""
