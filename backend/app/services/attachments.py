from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from typing import Optional

import anyio
import structlog
from fastapi import UploadFile

from app.core.config import Settings
from app.core.errors import AttachmentRejectedError, StorageError

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 64 * 1024
FALLBACK_EXTENSION = "bin"


@dataclass(frozen=True)
class StoredAttachment:
    filename: str
    path: str
    url: str
    content_type: str
    size_bytes: int


def has_attachment(upload: Optional[UploadFile]) -> bool:
    # Browsers send an empty, unnamed file part when no file was chosen.
    return upload is not None and bool(upload.filename)


class AttachmentHandler:
    """Stores at most one uploaded image per submission under a generated name."""

    def __init__(self, settings: Settings):
        self.upload_dir = settings.UPLOAD_DIR
        self.url_prefix = settings.UPLOAD_URL_PREFIX.rstrip("/")
        self.max_bytes = settings.MAX_UPLOAD_BYTES
        self.allowed_types = dict(settings.ALLOWED_UPLOAD_TYPES)

    def extension_for(self, content_type: Optional[str]) -> str:
        return self.allowed_types.get((content_type or "").lower(), FALLBACK_EXTENSION)

    def generate_filename(self, content_type: Optional[str]) -> str:
        return f"{int(time.time() * 1000)}-{uuid.uuid4()}.{self.extension_for(content_type)}"

    def public_url(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def check_declared(self, upload: UploadFile) -> None:
        content_type = (upload.content_type or "").lower()
        if content_type not in self.allowed_types:
            raise AttachmentRejectedError("Screenshot must be a JPEG, PNG or WEBP image")
        if upload.size is not None and upload.size > self.max_bytes:
            raise AttachmentRejectedError(self._too_large_msg())

    async def save(self, upload: UploadFile) -> StoredAttachment:
        """Check the upload and stream it to the upload directory.

        Raises AttachmentRejectedError for a disallowed type or an upload over
        the size ceiling. Any partially written file is removed before the
        error (or a cancellation) propagates.
        """
        self.check_declared(upload)

        filename = self.generate_filename(upload.content_type)
        path = os.path.join(self.upload_dir, filename)
        written = 0
        try:
            async with await anyio.open_file(path, "wb") as out:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise AttachmentRejectedError(self._too_large_msg())
                    await out.write(chunk)
        except OSError as e:
            self.discard(path)
            raise StorageError(f"Could not write attachment {filename}: {e}") from e
        except BaseException:
            self.discard(path)
            raise

        logger.info("attachment_stored", filename=filename, content_type=upload.content_type, size_bytes=written)
        return StoredAttachment(
            filename=filename,
            path=path,
            url=self.public_url(filename),
            content_type=(upload.content_type or "").lower(),
            size_bytes=written,
        )

    def discard(self, path: Optional[str]) -> None:
        if not path:
            return
        try:
            os.remove(path)
            logger.info("attachment_discarded", filename=os.path.basename(path))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("attachment_discard_failed", path=path, error=str(e))

    def _too_large_msg(self) -> str:
        return f"Screenshot exceeds the {self.max_bytes // (1024 * 1024)} MB limit"
