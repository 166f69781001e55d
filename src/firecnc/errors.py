"""Exception taxonomy for the supervisor core."""


class SupervisorError(Exception):
    """Base class for supervisor failures."""


class ConfigError(SupervisorError):
    """Raised when a configuration file exists but cannot be validated."""


class PersistenceReadError(SupervisorError):
    """Raised by a store when a persisted record cannot be read or decoded."""
