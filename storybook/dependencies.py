"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from storybook.config import get_settings
from storybook.db import DbClient, InMemoryDbClient, SqlDbClient
from storybook.intake import ImageIntake
from storybook.storage import CosStorageClient, InMemoryStorageClient, StorageClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_image_intake: ImageIntake | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so stored documents persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        if not settings.use_in_memory_backends:
            logger.warning("DATABASE_URL is not set; stories are kept in memory only")
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.cos_bucket:
        if not settings.use_in_memory_backends:
            logger.warning("COS_BUCKET is not set; uploaded images are kept in memory only")
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_image_intake() -> ImageIntake:
    global _image_intake
    if _image_intake:
        return _image_intake

    settings = get_settings()
    _image_intake = ImageIntake(
        storage=get_storage_client(),
        public_base_url=settings.public_base_url,
        max_bytes=settings.max_upload_bytes,
    )
    return _image_intake
