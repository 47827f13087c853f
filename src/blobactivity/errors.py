class BlobActivityError(Exception):
    """Base class for failures of a blob activity invocation."""

    pass


class InvalidSettingsError(BlobActivityError, ValueError):
    """Raised when connection settings are missing or malformed."""

    pass


class UnsupportedMethodError(InvalidSettingsError):
    """Raised when the configured method is not one of the supported operations."""

    pass


class InvalidCredentialError(BlobActivityError):
    """Raised when the account name or access key cannot form a shared-key credential."""

    pass


class ContainerConflictError(BlobActivityError):
    """Raised when creating a container that already exists."""

    pass


class LocalIOError(BlobActivityError):
    """Raised when the local staging file cannot be written or opened."""

    pass


class TransportError(BlobActivityError):
    """Raised for any other service or network failure."""

    pass


class OperationTimeoutError(TransportError):
    """Raised when an operation exceeds the configured deadline."""

    pass
