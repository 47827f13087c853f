import logging

from azure.core.exceptions import AzureError, ClientAuthenticationError, HttpResponseError
from azure.storage.blob import StorageErrorCode

from .errors import (
    BlobActivityError,
    ContainerConflictError,
    LocalIOError,
    TransportError,
)

logger = logging.getLogger(__name__)


def is_container_conflict(error: BaseException) -> bool:
    return (
        isinstance(error, HttpResponseError)
        and getattr(error, "error_code", None)
        == StorageErrorCode.CONTAINER_ALREADY_EXISTS
    )


def classify_error(error: Exception) -> BlobActivityError:
    """
    Map a raw failure to a typed activity error.
    Always returns an error: nothing is downgraded to success.
    """
    if isinstance(error, BlobActivityError):
        return error

    if is_container_conflict(error):
        classified: BlobActivityError = ContainerConflictError(
            "Received 409. Container already exists"
        )
    elif isinstance(error, ClientAuthenticationError):
        classified = TransportError(f"Authentication failed: {error}")
    elif isinstance(error, AzureError):
        classified = TransportError(str(error))
    elif isinstance(error, OSError):
        classified = LocalIOError(str(error))
    else:
        classified = TransportError(f"{type(error).__name__}: {error}")

    logger.info("Classified %s as %s", type(error).__name__, type(classified).__name__)
    return classified
