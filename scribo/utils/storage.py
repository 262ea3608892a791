from __future__ import annotations

import logging
import os
import tempfile

from fastapi import HTTPException, UploadFile

from scribo.core.config import settings

logger = logging.getLogger("scribo.storage")

_CHUNK = 1024 * 1024


async def read_upload(up: UploadFile, max_bytes: int | None = None) -> bytes:
    """Read an uploaded file in chunks, refusing anything above the size limit."""
    limit = max_bytes or settings.max_upload_bytes
    chunks: list[bytes] = []
    size = 0
    while True:
        chunk = await up.read(_CHUNK)
        if not chunk:
            break
        size += len(chunk)
        if size > limit:
            raise HTTPException(status_code=400, detail=f"File too large (max {settings.MAX_UPLOAD_MB}MB)")
        chunks.append(chunk)
    return b"".join(chunks)


def export_path(filename: str) -> str:
    return os.path.join(settings.EXPORT_DIR, os.path.basename(filename))


def write_export(filename: str, data: bytes) -> str:
    """Write an export atomically and return its reference path (relative to EXPORT_DIR).

    The bytes go to a temp file in the same directory first, so readers never
    see a half-written export.
    """
    os.makedirs(settings.EXPORT_DIR, exist_ok=True)
    dest = export_path(filename)
    fd, tmp = tempfile.mkstemp(dir=settings.EXPORT_DIR, prefix=".tmp_", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as out:
            out.write(data)
        os.replace(tmp, dest)
    except OSError:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise
    logger.info("Export written: %s (%d bytes)", dest, len(data))
    return os.path.basename(dest)


def remove_export(filename: str) -> None:
    path = export_path(filename)
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except OSError:
        logger.exception("Could not remove export %s", path)
