"""
blobactivity
============

Workflow activity that uploads a file to, or lists the blobs of, an Azure Blob Storage container.

Main entry points:
- BlobActivity: dispatches the configured method (upload or list)
- ConnectionSettings, Method, UploadTuning: validated activity settings
- AzureBlobAdapter, LocalFileAdapter: storage backends
- classify_error: maps raw failures to typed activity errors
- BlobActivityError and subclasses: exceptions

Example:
    from blobactivity import BlobActivity

    async with BlobActivity.from_mapping(
        {
            "azure_storage_account": "myaccount",
            "azure_storage_access_key": "<base64 key>",
            "method": "list",
            "container_name": "sample",
        }
    ) as activity:
        output = await activity.eval()
"""

import logging

from .activity import BlobActivity, ListOutput, UploadInput, blob_name_for, run_activity
from .azure_blob_adapter import (
    AzureBlobAdapter,
    build_account_url,
    build_container_url,
)
from .classifier import classify_error
from .credentials import resolve_credential
from .errors import (
    BlobActivityError,
    ContainerConflictError,
    InvalidCredentialError,
    InvalidSettingsError,
    LocalIOError,
    OperationTimeoutError,
    TransportError,
    UnsupportedMethodError,
)
from .local_file_adapter import LocalFileAdapter
from .settings import ConnectionSettings, Method, UploadTuning
from .storage_protocols import (
    AsyncContainerHandle,
    AsyncStorageAdapter,
    BlobItem,
    BlobSegment,
)

import importlib.metadata

try:
    __version__ = importlib.metadata.version(__name__)
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BlobActivity",
    "UploadInput",
    "ListOutput",
    "blob_name_for",
    "run_activity",
    "ConnectionSettings",
    "Method",
    "UploadTuning",
    "AzureBlobAdapter",
    "LocalFileAdapter",
    "build_account_url",
    "build_container_url",
    "resolve_credential",
    "classify_error",
    "AsyncStorageAdapter",
    "AsyncContainerHandle",
    "BlobItem",
    "BlobSegment",
    "BlobActivityError",
    "InvalidSettingsError",
    "UnsupportedMethodError",
    "InvalidCredentialError",
    "ContainerConflictError",
    "LocalIOError",
    "TransportError",
    "OperationTimeoutError",
]
