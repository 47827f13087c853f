import logging
import mimetypes
from typing import Any, BinaryIO

from azure.core.exceptions import AzureError
from azure.storage.blob import BlobType, ContentSettings
from azure.storage.blob.aio import BlobServiceClient, ContainerClient

from .classifier import classify_error
from .credentials import resolve_credential
from .settings import (
    DEFAULT_BLOCK_SIZE,
    DEFAULT_ENDPOINT_SUFFIX,
    DEFAULT_MAX_CONCURRENCY,
    ConnectionSettings,
)
from .storage_protocols import (
    AsyncContainerHandle,
    AsyncStorageAdapter,
    BlobItem,
    BlobSegment,
)

logger = logging.getLogger(__name__)


def build_account_url(account: str, endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX) -> str:
    return f"https://{account}.{endpoint_suffix}"


def build_container_url(
    account: str, container_name: str, endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX
) -> str:
    return f"{build_account_url(account, endpoint_suffix)}/{container_name}"


def describe_blob(blob: Any) -> dict[str, Any]:
    """Flatten blob properties into the descriptor returned by a listing."""
    content_settings = getattr(blob, "content_settings", None)
    blob_type = getattr(blob, "blob_type", None)
    return {
        "name": blob.name,
        "size": blob.size,
        "last_modified": blob.last_modified,
        "etag": blob.etag,
        "content_type": getattr(content_settings, "content_type", None),
        "blob_type": getattr(blob_type, "value", blob_type),
    }


class AzureBlobAdapter(AsyncStorageAdapter):
    """Azure Blob Storage adapter for BlobActivity."""

    def __init__(
        self,
        blob_service_client: BlobServiceClient,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        """
        Create an adapter from an existing BlobServiceClient.
        Block size is client configuration; parallelism is applied per upload.
        """
        self._client = blob_service_client
        self._max_concurrency = max_concurrency

    @classmethod
    def from_shared_key(
        cls,
        account: str,
        access_key: str,
        endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX,
        block_size: int = DEFAULT_BLOCK_SIZE,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        timeout: float | None = None,
    ) -> "AzureBlobAdapter":
        """
        Build an adapter that signs requests with the account's shared key.
        Raises InvalidCredentialError before any request is made.
        """
        credential = resolve_credential(account, access_key)
        kwargs: dict[str, Any] = {
            "max_block_size": block_size,
            "max_single_put_size": block_size,
        }
        if timeout is not None:
            kwargs["connection_timeout"] = timeout
            kwargs["read_timeout"] = timeout
        client = BlobServiceClient(
            account_url=build_account_url(account, endpoint_suffix),
            credential=credential,
            **kwargs,
        )
        return cls(client, max_concurrency=max_concurrency)

    @classmethod
    def from_settings(cls, settings: ConnectionSettings) -> "AzureBlobAdapter":
        return cls.from_shared_key(
            settings.account,
            settings.access_key,
            endpoint_suffix=settings.endpoint_suffix,
            block_size=settings.upload_tuning.block_size,
            max_concurrency=settings.upload_tuning.max_concurrency,
            timeout=settings.timeout,
        )

    def get_container(self, container_name: str) -> AsyncContainerHandle:
        return _AzureContainerHandle(
            self._client.get_container_client(container_name),
            max_concurrency=self._max_concurrency,
        )

    async def close(self) -> None:
        await self._client.close()


class _AzureContainerHandle(AsyncContainerHandle):
    def __init__(self, container_client: ContainerClient, max_concurrency: int):
        self._container_client = container_client
        self._max_concurrency = max_concurrency

    @property
    def url(self) -> str:
        return self._container_client.url

    async def create(self) -> None:
        try:
            await self._container_client.create_container(public_access=None)
        except AzureError as e:
            raise classify_error(e) from e

    async def upload_file(self, blob_name: str, stream: BinaryIO) -> None:
        guessed, _ = mimetypes.guess_type(blob_name)
        content_settings = ContentSettings(
            content_type=guessed or "application/octet-stream"
        )
        try:
            await self._container_client.upload_blob(
                blob_name,
                stream,
                blob_type=BlobType.BLOCKBLOB,
                overwrite=True,
                max_concurrency=self._max_concurrency,
                content_settings=content_settings,
            )
        except AzureError as e:
            raise classify_error(e) from e

    async def list_blob_segment(self, marker: str | None = None) -> BlobSegment:
        pages = self._container_client.list_blobs().by_page(
            continuation_token=marker or None
        )
        try:
            page = await anext(pages)
            items = [BlobItem(blob.name, describe_blob(blob)) async for blob in page]
        except StopAsyncIteration:
            return BlobSegment()
        except AzureError as e:
            raise classify_error(e) from e
        return BlobSegment(items=items, next_marker=pages.continuation_token or None)
