"""File storage gateway.

Stores uploaded originals on disk under ``settings.upload_dir`` and hands back
a public URL served by the ``/files`` static mount. Documents only reference
the URL; the bytes are owned by storage.
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse
from uuid import uuid4

from core.errors import UploadError

logger = logging.getLogger("simplidoc.gateway.storage")

EXTENSIONS_BY_MIME = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
}


@dataclass
class StoredFile:
    """Result of a successful upload."""
    file_url: str
    path: Path
    mime_type: str
    size: int


class LocalFileStorage:
    """Disk-backed storage addressed by public URL."""

    def __init__(self, upload_dir: str | Path, base_url: str) -> None:
        self.upload_dir = Path(upload_dir)
        self.base_url = base_url.rstrip("/")

    def _build_name(self, mime_type: str) -> str:
        """Name stored files by the validated MIME type. The client file name is never used."""
        suffix = EXTENSIONS_BY_MIME.get(mime_type)
        if suffix is None:
            raise UploadError(f"Refusing to store unsupported file type: {mime_type}")
        return f"{uuid4().hex}{suffix}"

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def upload_file(
        self,
        content: bytes,
        mime_type: str,
        size: int,
        filename: str = "",
    ) -> StoredFile:
        """Store raw bytes and return their public URL.

        Raises:
            UploadError: If the type is not storable or the file could not be written.
        """
        name = self._build_name(mime_type)
        path = self.upload_dir / name
        try:
            await asyncio.get_running_loop().run_in_executor(None, self._write, path, content)
        except OSError as e:
            logger.error(f"Failed to store upload {filename!r}: {e}")
            raise UploadError(f"Failed to store file: {e}") from e

        logger.info(f"Stored upload {filename!r} ({size} bytes) as {name}")
        return StoredFile(
            file_url=f"{self.base_url}/{name}",
            path=path,
            mime_type=mime_type,
            size=size,
        )

    def resolve_path(self, file_url: str) -> Path:
        """Map a URL issued by this storage back to its file on disk."""
        name = Path(urlparse(file_url).path).name
        if not name:
            raise FileNotFoundError(file_url)
        return self.upload_dir / name

    def read_bytes(self, file_url: str) -> bytes:
        return self.resolve_path(file_url).read_bytes()

    @staticmethod
    def guess_mime_type(file_url: str) -> str:
        mime_type, _ = mimetypes.guess_type(urlparse(file_url).path)
        return mime_type or "application/octet-stream"
