"""
Image intake: validate uploaded bytes and turn them into permanent URLs.
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from storybook.errors import UnsupportedMediaError
from storybook.forms import UploadedImage
from storybook.storage import StorageClient

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024

EXTENSIONS_BY_TYPE = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
}
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png"}


@dataclass
class ImageIntake:
    """Stores JPEG/PNG uploads under ``<prefix>/<uuid><ext>``.

    When ``public_base_url`` is set the URL is ``<public_base_url>/<uuid><ext>``
    (files are served from that path); otherwise the storage client decides.
    """

    storage: StorageClient
    public_base_url: Optional[str] = None
    max_bytes: int = MAX_UPLOAD_BYTES
    prefix: str = "uploads"

    def validate(self, data: bytes, content_type: str, filename: str = "") -> str:
        """Return the file extension to store under, or raise."""
        content_type = (content_type or "").split(";")[0].strip().lower()
        if content_type not in EXTENSIONS_BY_TYPE:
            raise UnsupportedMediaError(
                "Only JPEG/PNG images are allowed",
                details=f"{filename or 'upload'}: {content_type or 'unknown type'}",
            )
        extension = os.path.splitext(filename or "")[1].lower()
        if extension and extension not in ALLOWED_EXTENSIONS:
            raise UnsupportedMediaError(
                "Only JPEG/PNG images are allowed", details=filename
            )
        if len(data) > self.max_bytes:
            raise UnsupportedMediaError(
                "File too large",
                details=f"{filename or 'upload'} exceeds {self.max_bytes} bytes",
            )
        return extension or EXTENSIONS_BY_TYPE[content_type]

    def store(self, data: bytes, content_type: str, filename: str = "") -> str:
        extension = self.validate(data, content_type, filename)
        name = f"{uuid.uuid4()}{extension}"
        path = f"{self.prefix}/{name}"
        self.storage.upload_bytes(path, data, content_type)
        logger.info("Stored upload %s as %s (%d bytes)", filename, path, len(data))
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{name}"
        return self.storage.public_url(path)

    def store_all(self, uploads: Iterable[UploadedImage]) -> Dict[str, str]:
        """Store one file per field name and map each field name to its URL.

        Every file is validated before the first one is written, so a bad
        upload leaves storage untouched.
        """
        selected: Dict[str, UploadedImage] = {}
        for upload in uploads:
            selected.setdefault(upload.fieldname, upload)
        for upload in selected.values():
            self.validate(upload.data, upload.content_type, upload.filename)
        return {
            fieldname: self.store(upload.data, upload.content_type, upload.filename)
            for fieldname, upload in selected.items()
        }
