"""
Local-disk blob store (default for dev and single-host deployments).

Files land in `<upload_dir>/<epoch-ms>_<token>_<base><ext>`. `token` is 8
random hex characters; `base` is the client's filename without directory
parts and with whitespace runs replaced by `_`. The returned reference is
that relative path; the web app serves the directory under `/uploads`.
"""
from __future__ import annotations

import logging
import os
import re
import secrets
import time
from typing import BinaryIO, Callable, Optional

import anyio.to_thread

from backend.errors import ValidationError
from backend.storage.config import get_max_upload_bytes, get_upload_dir

logger = logging.getLogger("learnhub.storage")

_CHUNK_SIZE = 64 * 1024
_WS_RE = re.compile(r"\s+")


def storage_name(filename: str, now_ms: int, token: str) -> str:
    """Build the on-disk name for an upload; `token` keeps same-millisecond uploads apart."""
    # Clients may send Windows-style paths; keep only the last component.
    leaf = os.path.basename((filename or "").replace("\\", "/"))
    base, ext = os.path.splitext(leaf)
    base = _WS_RE.sub("_", base.strip()) or "upload"
    return f"{now_ms}_{token}_{base}{ext}"


class LocalDiskBlobStore:
    def __init__(
        self,
        upload_dir: Optional[str] = None,
        *,
        max_bytes: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = upload_dir or get_upload_dir()
        self._max_bytes = max_bytes or get_max_upload_bytes()
        self._clock = clock

    @property
    def upload_dir(self) -> str:
        return self._dir

    def ensure_dir(self) -> None:
        os.makedirs(self._dir, exist_ok=True)

    async def store(self, stream: BinaryIO, filename: str) -> str:
        name = storage_name(filename, int(self._clock() * 1000), secrets.token_hex(4))
        path = os.path.join(self._dir, name)
        await anyio.to_thread.run_sync(self._write, stream, path)
        logger.info("Stored upload %s", name)
        return path

    async def discard(self, file_ref: str) -> None:
        # Only files inside our own directory are ever removed.
        root = os.path.realpath(self._dir)
        target = os.path.realpath(file_ref)
        if os.path.dirname(target) != root:
            logger.warning("Refusing to discard file outside the upload dir")
            return
        try:
            await anyio.to_thread.run_sync(os.remove, target)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Could not discard upload: %s", exc.__class__.__name__)

    def _write(self, stream: BinaryIO, path: str) -> None:
        self.ensure_dir()
        written = 0
        # Exclusive create: an existing file is never overwritten or removed here.
        out = open(path, "xb")
        try:
            with out:
                while True:
                    chunk = stream.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self._max_bytes:
                        raise ValidationError("file_too_large", "Uploaded file exceeds the size limit")
                    out.write(chunk)
        except BaseException:
            # No partial files on disk.
            try:
                os.remove(path)
            except OSError:
                logger.warning("Could not remove partial upload %s", os.path.basename(path))
            raise


__all__ = ["LocalDiskBlobStore", "storage_name"]
