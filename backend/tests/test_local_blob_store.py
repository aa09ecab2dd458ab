"""
Local-disk blob store and storage configuration tests.
"""
from __future__ import annotations

import io
import os
import re

import pytest

from backend.errors import ValidationError
from backend.storage.config import (
    MAX_UPLOAD_BYTES_DEFAULT,
    UPLOAD_DIR_DEFAULT,
    get_max_upload_bytes,
    get_upload_dir,
)
from backend.storage.local import LocalDiskBlobStore, storage_name


pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("report.pdf", "1700000000000_ab12cd34_report.pdf"),
        ("my  final report.docx", "1700000000000_ab12cd34_my_final_report.docx"),
        ("../../etc/passwd", "1700000000000_ab12cd34_passwd"),
        ("C:\\Users\\ada\\notes.txt", "1700000000000_ab12cd34_notes.txt"),
        ("", "1700000000000_ab12cd34_upload"),
    ],
)
def test_storage_name(filename, expected):
    assert storage_name(filename, 1_700_000_000_000, "ab12cd34") == expected


@pytest.mark.anyio
async def test_store_writes_file_under_upload_dir(tmp_path):
    store = LocalDiskBlobStore(str(tmp_path / "up"), clock=lambda: 1_700_000_000.0)

    ref = await store.store(io.BytesIO(b"hello"), "hello world.txt")

    assert os.path.dirname(ref) == str(tmp_path / "up")
    assert re.fullmatch(r"1700000000000_[0-9a-f]{8}_hello_world\.txt", os.path.basename(ref))
    with open(ref, "rb") as fh:
        assert fh.read() == b"hello"


@pytest.mark.anyio
async def test_same_millisecond_uploads_get_distinct_files(tmp_path):
    store = LocalDiskBlobStore(str(tmp_path), clock=lambda: 1_700_000_000.0)

    first = await store.store(io.BytesIO(b"ada"), "hw.pdf")
    second = await store.store(io.BytesIO(b"grace"), "hw.pdf")
    await store.discard(second)

    assert first != second
    with open(first, "rb") as fh:
        assert fh.read() == b"ada"


@pytest.mark.anyio
async def test_oversized_upload_is_rejected_without_leftovers(tmp_path):
    store = LocalDiskBlobStore(str(tmp_path), max_bytes=1024)

    with pytest.raises(ValidationError) as exc:
        await store.store(io.BytesIO(b"x" * 200_000), "big.bin")

    assert exc.value.code == "file_too_large"
    assert os.listdir(tmp_path) == []


@pytest.mark.anyio
async def test_discard_removes_own_files_only(tmp_path):
    outside = tmp_path / "keep.txt"
    outside.write_bytes(b"keep")
    store = LocalDiskBlobStore(str(tmp_path / "up"))
    ref = await store.store(io.BytesIO(b"x"), "x.txt")

    await store.discard(ref)
    await store.discard(ref)
    await store.discard(str(outside))

    assert not os.path.exists(ref)
    assert outside.exists()


def test_upload_dir_config():
    assert get_upload_dir({}) == UPLOAD_DIR_DEFAULT
    assert get_upload_dir({"UPLOAD_DIR": "/srv/files"}) == "/srv/files"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, MAX_UPLOAD_BYTES_DEFAULT),
        ("1048576", 1048576),
        ("0", MAX_UPLOAD_BYTES_DEFAULT),
        ("-5", MAX_UPLOAD_BYTES_DEFAULT),
        ("lots", MAX_UPLOAD_BYTES_DEFAULT),
        (str(10 * MAX_UPLOAD_BYTES_DEFAULT), MAX_UPLOAD_BYTES_DEFAULT),
    ],
)
def test_max_upload_bytes_is_clamped(raw, expected):
    env = {} if raw is None else {"MAX_UPLOAD_BYTES": raw}
    assert get_max_upload_bytes(env) == expected
