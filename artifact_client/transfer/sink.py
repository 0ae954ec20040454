"""
Writes downloaded bytes to local files.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import aiofiles
from pathvalidate import sanitize_filename

log = logging.getLogger(__name__)

FALLBACK_FILENAME = "downloaded-file"


def resolve_destination(destination: Path, suggested_name: Optional[str]) -> Path:
    """
    Picks the output path for a download.

    A directory destination gets a sanitized file name appended: the
    suggested name when there is one, otherwise a generic fallback.
    """
    if destination.is_dir():
        name = sanitize_filename(suggested_name or "") or FALLBACK_FILENAME
        return destination / name
    return destination


class FileSink:
    """
    Async file writer for a single download.

    Bytes go to a ``.part`` file that is renamed into place on success and
    removed on failure, so a cancelled or failed download never leaves a
    truncated file at the destination.
    """

    def __init__(self, path: Path):
        self.path = path
        self._part_path = path.with_name(path.name + ".part")
        self._file = None
        self.bytes_written = 0

    async def __aenter__(self) -> "FileSink":
        await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)
        self._file = await aiofiles.open(self._part_path, "wb")
        return self

    async def write(self, chunk: bytes) -> None:
        await self._file.write(chunk)
        self.bytes_written += len(chunk)

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._file.close()
        if exc_type is None:
            await asyncio.to_thread(os.replace, self._part_path, self.path)
            log.debug(f"Saved {self.bytes_written} bytes to '{self.path}'")
        else:
            await asyncio.to_thread(self._part_path.unlink, missing_ok=True)
            log.debug(f"Discarded partial download '{self._part_path.name}'")
