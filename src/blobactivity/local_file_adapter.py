import asyncio
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO

from .errors import ContainerConflictError, TransportError
from .settings import DEFAULT_BLOCK_SIZE
from .storage_protocols import (
    AsyncContainerHandle,
    AsyncStorageAdapter,
    BlobItem,
    BlobSegment,
)

DEFAULT_PAGE_SIZE = 5000


def _ensure_within(base: Path, target: Path, strict: bool = True) -> Path:
    """
    Resolve target path and ensure it is inside base path.
    strict=True will fail if the target does not exist (good for listing).
    strict=False allows non-existing targets (good for upload), but still checks parent dir strictly.
    """
    base_resolved = base.resolve(strict=True)
    if strict:
        target_resolved = target.resolve(strict=True)
    else:
        # Resolve parent strictly to catch symlink escapes
        target.parent.resolve(strict=True)
        target_resolved = target.resolve()
    if not target_resolved.is_relative_to(base_resolved):
        raise ValueError(
            f"Path {target_resolved} escapes base directory {base_resolved}"
        )
    return target_resolved


class LocalFileAdapter(AsyncStorageAdapter):
    """Local filesystem adapter: containers are directories, blobs are files."""

    def __init__(
        self,
        base_path: str,
        block_size: int = DEFAULT_BLOCK_SIZE,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._block_size = block_size
        self._page_size = page_size

    def get_container(self, container_name: str) -> AsyncContainerHandle:
        container_path = _ensure_within(
            self._base_path, self._base_path / container_name, strict=False
        )
        return _LocalContainerHandle(
            container_path, block_size=self._block_size, page_size=self._page_size
        )

    async def close(self) -> None:
        pass


# Global lock registry for concurrency safety
_lock_registry: dict[str, asyncio.Lock] = {}


def _get_global_lock(path: Path) -> asyncio.Lock:
    key = str(path.resolve())
    if key not in _lock_registry:
        _lock_registry[key] = asyncio.Lock()
    return _lock_registry[key]


class _LocalContainerHandle(AsyncContainerHandle):
    def __init__(self, container_path: Path, block_size: int, page_size: int):
        self._container_path = container_path
        self._block_size = block_size
        self._page_size = page_size
        self._etag_cache: dict[tuple[Path, float, int], str] = {}

    @property
    def url(self) -> str:
        return self._container_path.as_uri()

    def _require_container(self) -> None:
        if not self._container_path.is_dir():
            raise TransportError(
                f"ContainerNotFound: container '{self._container_path.name}' does not exist"
            )

    async def create(self) -> None:
        try:
            self._container_path.mkdir(parents=True, exist_ok=False)
        except FileExistsError:
            raise ContainerConflictError("Received 409. Container already exists")

    def _blob_path(self, blob_name: str) -> Path:
        target = self._container_path / blob_name
        # Lexical check first so no directory is created outside the container
        if not target.resolve().is_relative_to(self._container_path.resolve()):
            raise ValueError(
                f"Path {target} escapes base directory {self._container_path}"
            )
        target.parent.mkdir(parents=True, exist_ok=True)
        return _ensure_within(self._container_path, target, strict=False)

    async def upload_file(self, blob_name: str, stream: BinaryIO) -> None:
        self._require_container()
        blob_path = self._blob_path(blob_name)
        async with _get_global_lock(blob_path):
            with open(blob_path, "wb") as out:
                while block := stream.read(self._block_size):
                    out.write(block)

    async def list_blob_segment(self, marker: str | None = None) -> BlobSegment:
        self._require_container()
        names: list[str] = []
        for path in self._container_path.rglob("*"):
            if path.is_file():
                # Strict resolve to catch symlink escapes
                _ensure_within(self._container_path, path, strict=True)
                names.append(path.relative_to(self._container_path).as_posix())
        names.sort()
        if marker:
            names = [name for name in names if name > marker]

        page = names[: self._page_size]
        items = [BlobItem(name, self._describe(name)) for name in page]
        next_marker = page[-1] if len(names) > len(page) else None
        return BlobSegment(items=items, next_marker=next_marker)

    def _describe(self, blob_name: str) -> dict[str, Any]:
        path = self._container_path / blob_name
        stat = path.stat()
        return {
            "name": blob_name,
            "size": stat.st_size,
            "last_modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            "etag": self._get_etag(path, stat.st_mtime, stat.st_size),
            "content_type": None,
            "blob_type": "BlockBlob",
        }

    def _get_etag(self, path: Path, mtime: float, size: int) -> str:
        # Use mtime+size cache to avoid recomputing MD5 unnecessarily
        cache_key = (path.resolve(), mtime, size)
        if cache_key in self._etag_cache:
            return self._etag_cache[cache_key]
        etag = hashlib.md5(path.read_bytes()).hexdigest()
        self._etag_cache[cache_key] = etag
        return etag
