import hashlib
import io
import os
import sys

import pytest
import pytest_asyncio

from blobactivity import ContainerConflictError, LocalFileAdapter, TransportError
from blobactivity.local_file_adapter import _LocalContainerHandle

LOCAL_CONTAINER = "test_container"


@pytest.fixture
def adapter(tmp_path):
    # Use pytest's tmp_path for safe temporary storage
    return LocalFileAdapter(str(tmp_path / "store"), block_size=4, page_size=2)


@pytest_asyncio.fixture
async def container(adapter):
    handle = adapter.get_container(LOCAL_CONTAINER)
    await handle.create()
    return handle


@pytest.mark.asyncio
@pytest.mark.local
async def test_create_twice_conflicts(adapter):
    handle = adapter.get_container(LOCAL_CONTAINER)
    await handle.create()
    with pytest.raises(ContainerConflictError):
        await handle.create()


@pytest.mark.asyncio
@pytest.mark.local
async def test_missing_container_is_transport_error(adapter):
    handle = adapter.get_container("never_created")
    with pytest.raises(TransportError):
        await handle.list_blob_segment()
    with pytest.raises(TransportError):
        await handle.upload_file("a.txt", io.BytesIO(b"x"))


@pytest.mark.asyncio
@pytest.mark.local
async def test_upload_copies_in_blocks(container):
    payload = b"0123456789abcdef-tail"
    await container.upload_file("nested/dir/data.bin", io.BytesIO(payload))
    segment = await container.list_blob_segment()
    [item] = segment.items
    assert item.name == "nested/dir/data.bin"
    assert item.properties["size"] == len(payload)
    assert item.properties["etag"] == hashlib.md5(payload).hexdigest()


@pytest.mark.asyncio
@pytest.mark.local
async def test_listing_pages_by_marker(container):
    for name in ("c.txt", "a.txt", "b.txt"):
        await container.upload_file(name, io.BytesIO(b"x"))

    first = await container.list_blob_segment()
    assert [i.name for i in first.items] == ["a.txt", "b.txt"]
    assert first.next_marker == "b.txt"

    second = await container.list_blob_segment(first.next_marker)
    assert [i.name for i in second.items] == ["c.txt"]
    assert second.done


@pytest.mark.asyncio
@pytest.mark.local
async def test_empty_container_is_single_terminal_segment(container):
    segment = await container.list_blob_segment()
    assert segment.items == []
    assert segment.done


@pytest.mark.asyncio
@pytest.mark.local
async def test_etag_caching(container, monkeypatch):
    await container.upload_file("etag_test.txt", io.BytesIO(b"hello world"))

    call_count = {"md5": 0}

    original_md5 = hashlib.md5

    def counting_md5(*args, **kwargs):
        call_count["md5"] += 1
        return original_md5(*args, **kwargs)

    monkeypatch.setattr(hashlib, "md5", counting_md5)

    # First listing computes MD5
    etag1 = (await container.list_blob_segment()).items[0].properties["etag"]
    assert call_count["md5"] == 1

    # Second listing uses cache
    etag2 = (await container.list_blob_segment()).items[0].properties["etag"]
    assert call_count["md5"] == 1
    assert etag1 == etag2

    # Changing size invalidates the cache
    await container.upload_file("etag_test.txt", io.BytesIO(b"changed"))
    etag3 = (await container.list_blob_segment()).items[0].properties["etag"]
    assert call_count["md5"] == 2
    assert etag3 != etag1


@pytest.mark.asyncio
@pytest.mark.local
async def test_local_path_traversal_protection(adapter, container, tmp_path):
    with pytest.raises(ValueError) as excinfo:
        await container.upload_file("../../escaped.txt", io.BytesIO(b"x"))
    assert "escapes base directory" in str(excinfo.value)
    assert not (tmp_path / "escaped.txt").exists()

    # Also test malicious container name
    with pytest.raises((ValueError, FileNotFoundError)):
        adapter.get_container("../outside_container")


@pytest.mark.asyncio
@pytest.mark.local
async def test_symlink_outside_protection(container, tmp_path):
    if not hasattr(os, "symlink"):
        pytest.skip("Symlinks not supported on this platform")
    if sys.platform == "win32":
        pytest.skip("Symlink creation needs elevated rights on Windows")

    assert isinstance(container, _LocalContainerHandle)

    # Create a file outside the container
    outside_file = tmp_path / "outside.txt"
    outside_file.write_text("secret")

    # Create a symlink inside the container pointing to the outside file
    symlink_path = container._container_path / "link.txt"
    symlink_path.symlink_to(outside_file)

    # Listing should fail due to symlink escape
    with pytest.raises(ValueError):
        await container.list_blob_segment()

    # Uploading through the link should also fail
    with pytest.raises(ValueError):
        await container.upload_file("link.txt", io.BytesIO(b"overwrite"))
    assert outside_file.read_text() == "secret"
