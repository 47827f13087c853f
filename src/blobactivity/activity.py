import asyncio
import logging
import os
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Any, TypeVar

from .azure_blob_adapter import AzureBlobAdapter
from .errors import LocalIOError, OperationTimeoutError, UnsupportedMethodError
from .settings import ConnectionSettings, Method
from .storage_protocols import AsyncStorageAdapter

logger = logging.getLogger(__name__)

STAGING_FILE_MODE = 0o700

T = TypeVar("T")


def _coerce_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


@dataclass
class UploadInput:
    file: str = ""
    data: str | bytes = ""

    @classmethod
    def from_map(cls, values: Mapping[str, Any]) -> "UploadInput":
        data = values.get("data")
        return cls(
            file=_coerce_str(values.get("file")),
            data=data if isinstance(data, bytes) else _coerce_str(data),
        )

    def to_map(self) -> dict[str, Any]:
        return {"file": self.file, "data": self.data}

    @property
    def payload(self) -> bytes:
        if isinstance(self.data, bytes):
            return self.data
        return self.data.encode("utf-8")


@dataclass
class ListOutput:
    result: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_map(cls, values: Mapping[str, Any]) -> "ListOutput":
        return cls(result=dict(values.get("result") or {}))

    def to_map(self) -> dict[str, Any]:
        return {"result": self.result}


def blob_name_for(file_path: str) -> str:
    """
    Blob name for an uploaded file: its path in POSIX form, without a leading slash.
    Paths that climb out of their directory have no blob name.
    """
    parts = [p for p in PurePath(file_path).as_posix().split("/") if p not in ("", ".")]
    if not parts or ".." in parts:
        raise LocalIOError(f"Cannot derive a blob name from file path '{file_path}'")
    return "/".join(parts)


def _stage_file(path: Path, payload: bytes) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, STAGING_FILE_MODE)
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
    except (OSError, ValueError) as e:
        raise LocalIOError(f"Could not write staging file '{path}': {e}") from e


class BlobActivity:
    """
    Runs the configured method against one container.

    One invocation performs exactly one operation:
    - upload: write the input data to a local file and stream it to a block blob
    - list: page through the container and return every blob's properties
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        adapter: AsyncStorageAdapter | None = None,
    ) -> None:
        self.settings = settings
        self.adapter = adapter or AzureBlobAdapter.from_settings(settings)
        self.container = self.adapter.get_container(settings.container_name)

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        adapter: AsyncStorageAdapter | None = None,
    ) -> "BlobActivity":
        return cls(ConnectionSettings.from_mapping(values), adapter=adapter)

    async def __aenter__(self) -> "BlobActivity":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.adapter.close()

    async def eval(self, inputs: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Host entry point: generic input map in, generic output map out."""
        output = await self.dispatch(UploadInput.from_map(inputs or {}))
        return output.to_map() if output is not None else {}

    async def dispatch(self, upload_input: UploadInput | None = None) -> ListOutput | None:
        method = self.settings.method
        logger.info(
            "Executing method %s on container %s", method.value, self.settings.container_name
        )
        if method is Method.UPLOAD:
            await self._with_deadline(self.upload(upload_input or UploadInput()))
            return None
        if method is Method.LIST:
            return await self._with_deadline(self.list_blobs())
        raise UnsupportedMethodError(f"Unsupported method '{method}'")

    async def _with_deadline(self, operation: Awaitable[T]) -> T:
        if self.settings.timeout is None:
            return await operation
        try:
            return await asyncio.wait_for(operation, self.settings.timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"Method {self.settings.method.value} did not finish within {self.settings.timeout}s"
            ) from e

    async def upload(self, upload_input: UploadInput) -> None:
        """
        Stage the input data locally, then upload it as a block blob.
        Local failures are raised before the service is contacted.
        """
        if not upload_input.file:
            raise LocalIOError("No file path given for upload")

        blob_name = blob_name_for(upload_input.file)
        try:
            payload = upload_input.payload
        except UnicodeEncodeError as e:
            raise LocalIOError(f"Upload data is not encodable as UTF-8: {e}") from e

        path = Path(upload_input.file)
        await asyncio.to_thread(_stage_file, path, payload)
        try:
            stream = open(path, "rb")
        except (OSError, ValueError) as e:
            raise LocalIOError(f"Could not open staging file '{path}': {e}") from e

        with stream:
            logger.info("Creating a container named %s", self.settings.container_name)
            await self.container.create()

            logger.info("Uploading the file with blob name: %s", blob_name)
            await self.container.upload_file(blob_name, stream)

    async def list_blobs(self) -> ListOutput:
        """
        Page through the container until the continuation marker is exhausted.
        A name seen twice keeps its latest properties.
        """
        logger.info("Listing the blobs in container %s", self.settings.container_name)
        output = ListOutput()
        marker: str | None = None
        while True:
            segment = await self.container.list_blob_segment(marker)
            for item in segment.items:
                logger.debug("Blob name: %s", item.name)
                output.result[item.name] = item.properties
            marker = segment.next_marker
            if segment.done:
                return output


def run_activity(
    settings: Mapping[str, Any],
    inputs: Mapping[str, Any] | None = None,
    adapter: AsyncStorageAdapter | None = None,
) -> dict[str, Any]:
    """Synchronous wrapper for hosts without an event loop."""

    async def _run() -> dict[str, Any]:
        async with BlobActivity.from_mapping(settings, adapter=adapter) as activity:
            return await activity.eval(inputs)

    return asyncio.run(_run())
