"""
Storage ports used by the teaching/learning contexts.

Keep these small and framework-agnostic so tests can supply simple fakes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Protocol


@dataclass
class Upload:
    """An incoming file as handed over by the web adapter."""

    stream: BinaryIO
    filename: str


class BlobStore(Protocol):
    """Persist an uploaded file and return an opaque reference to it.

    Intent:
        Services hand over the raw upload stream; the returned `file_ref` is
        stored verbatim on assignments, materials and submissions.

    Errors:
        Implementations raise `ValidationError("file_too_large")` when the
        stream exceeds their size limit and leave nothing behind.
    """

    async def store(self, stream: BinaryIO, filename: str) -> str: ...

    async def discard(self, file_ref: str) -> None:
        """Best-effort removal of a stored file whose row was never written."""
        ...


__all__ = ["BlobStore", "Upload"]
