import base64

import pytest

from blobactivity import BlobItem, BlobSegment

TEST_ACCOUNT = "blobtestaccount"
TEST_KEY = base64.b64encode(bytes(range(64))).decode("ascii")


class RecordingContainer:
    """In-memory container double that records every call made against it."""

    url = "memory://blobtestaccount/sample"

    def __init__(self):
        self.calls: list[tuple] = []
        self.segments: dict[str | None, BlobSegment] = {None: BlobSegment()}
        self.uploads: dict[str, bytes] = {}
        self.create_error: Exception | None = None
        self.list_errors: dict[str | None, Exception] = {}

    async def create(self) -> None:
        self.calls.append(("create",))
        if self.create_error is not None:
            raise self.create_error

    async def upload_file(self, blob_name, stream) -> None:
        self.calls.append(("upload_file", blob_name))
        self.uploads[blob_name] = stream.read()

    async def list_blob_segment(self, marker=None) -> BlobSegment:
        self.calls.append(("list_blob_segment", marker))
        if marker in self.list_errors:
            raise self.list_errors[marker]
        return self.segments[marker]


class RecordingAdapter:
    def __init__(self):
        self.container = RecordingContainer()
        self.requested: list[str] = []
        self.closed = False

    def get_container(self, container_name):
        self.requested.append(container_name)
        return self.container

    async def close(self) -> None:
        self.closed = True


def blob(name: str, size: int = 1) -> BlobItem:
    return BlobItem(name, {"name": name, "size": size})


@pytest.fixture
def recording_adapter():
    return RecordingAdapter()


@pytest.fixture
def make_blob():
    return blob


@pytest.fixture
def settings_map():
    def _settings(method="list", **overrides):
        values = {
            "azure_storage_account": TEST_ACCOUNT,
            "azure_storage_access_key": TEST_KEY,
            "method": method,
            "container_name": "sample",
        }
        values.update(overrides)
        return values

    return _settings
