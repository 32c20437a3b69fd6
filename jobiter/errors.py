class JobIterError(Exception):
    """Base class for jobiter errors."""


class ConfigurationError(JobIterError, ValueError):
    """A job or data source is wired up wrong. Raised immediately, never retried."""


class CursorError(ConfigurationError):
    """A cursor value cannot be serialized without losing its ordering."""


class JobClassNotFound(JobIterError, LookupError):
    pass
