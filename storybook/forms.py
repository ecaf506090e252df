"""
Extraction of flat field-sets and uploaded files from form submissions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from fastapi import Request
from starlette.datastructures import UploadFile


@dataclass
class UploadedImage:
    fieldname: str
    filename: str
    content_type: str
    data: bytes


async def read_submission(request: Request) -> Tuple[Dict[str, Any], List[UploadedImage]]:
    """Split a multipart or urlencoded body into fields and files.

    Repeated text fields become lists. File parts with neither a filename
    nor content (an empty file input) are ignored.
    """
    fields: Dict[str, Any] = {}
    uploads: List[UploadedImage] = []
    # Spooled upload files are closed when the block exits.
    async with request.form() as form:
        for key in dict.fromkeys(form.keys()):
            texts = []
            for value in form.getlist(key):
                if isinstance(value, UploadFile):
                    data = await value.read()
                    if not value.filename and not data:
                        continue
                    uploads.append(
                        UploadedImage(
                            fieldname=key,
                            filename=value.filename or "",
                            content_type=value.content_type or "",
                            data=data,
                        )
                    )
                else:
                    texts.append(value)
            if len(texts) == 1:
                fields[key] = texts[0]
            elif texts:
                fields[key] = texts
    return fields, uploads
