"""Domain errors for vmmover."""


class MigrationError(RuntimeError):
    """Raised when the migration cannot continue safely."""


class MalformedIdentifier(MigrationError):
    """Raised when a resource id is missing a required path segment."""


class ResourceNotFound(MigrationError):
    """Raised when Azure reports that a required resource does not exist."""


class PollTimeoutError(MigrationError):
    """Raised when a long-running Azure operation does not finish in time."""
