# taskboard/utils/blobs.py
import asyncio
import base64
import binascii
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Optional

from taskboard.errors import InvalidInput, NotFound, StorageFailure

logger = logging.getLogger("taskboard.blobs")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def decode_payload(data: str) -> bytes:
    """Decode a base64 attachment payload, accepting data-URL prefixes."""
    if "," in data and data.startswith("data:"):
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput("Attachment data must be base64") from exc


def make_filename(originalname: Optional[str]) -> str:
    """Storage name: nanosecond timestamp plus a filesystem-safe copy of the original name."""
    base = _UNSAFE_CHARS.sub("_", os.path.basename(originalname or "")).strip("._") or "file"
    return f"{time.time_ns()}-{base}"


class BlobDirectory:
    """Attachment content directory, keyed by storage filename."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        # reject anything that would escape the uploads directory
        if not filename or filename != os.path.basename(filename) or filename in (".", ".."):
            raise NotFound("file not found")
        return self.root / filename

    def _write_sync(self, filename: str, content: bytes) -> None:
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.root / filename)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    async def write(self, filename: str, content: bytes) -> None:
        """Durably write a blob; returns only once the file is in place."""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write_sync, filename, content)
        except OSError as exc:
            logger.error("Failed to write attachment %s: %s", filename, exc)
            raise StorageFailure("Failed to write attachment") from exc
        logger.info("Stored attachment %s (%d bytes)", filename, len(content))

    def existing(self, filename: str) -> Path:
        path = self.path_for(filename)
        if not path.is_file():
            raise NotFound("file not found")
        return path
