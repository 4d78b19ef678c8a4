class IdleWardenError(Exception):
    """Base class for errors that stop the daemon."""


class ConfigError(IdleWardenError):
    """Malformed configuration file."""


class StartupError(IdleWardenError):
    """A required resource (e.g. the idle-notify protocol) is unavailable."""
