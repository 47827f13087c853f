from dataclasses import dataclass, field
from typing import Any, BinaryIO, Protocol


@dataclass(frozen=True)
class BlobItem:
    name: str
    properties: dict[str, Any]


@dataclass
class BlobSegment:
    """One page of a container listing. A falsy next_marker means the listing is complete."""

    items: list[BlobItem] = field(default_factory=list)
    next_marker: str | None = None

    @property
    def done(self) -> bool:
        return not self.next_marker


class AsyncContainerHandle(Protocol):
    """Represents a container bound to its endpoint and credential."""

    @property
    def url(self) -> str:
        """Endpoint URL of the container."""
        ...

    async def create(self) -> None:
        """Create the container with no public access."""
        ...

    async def upload_file(self, blob_name: str, stream: BinaryIO) -> None:
        """Stream an open file to a block blob."""
        ...

    async def list_blob_segment(self, marker: str | None = None) -> BlobSegment:
        """Fetch one segment of the flat blob listing, starting at marker."""
        ...


class AsyncStorageAdapter(Protocol):
    """Protocol for a storage backend adapter."""

    def get_container(self, container_name: str) -> AsyncContainerHandle:
        """Return a handle to a container."""
        ...

    async def close(self) -> None:
        """Close any resources/connections."""
        ...
