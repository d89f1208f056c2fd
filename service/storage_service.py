# service/storage_service.py
import base64
import binascii
import logging
import re
import secrets
from typing import Optional
from config.settings import settings
from core.supabase_client import SupabaseClient
from util.enums import ErrorMessage
from util.errors import AppError

logger = logging.getLogger(__name__)

_DATA_URI = re.compile(r"^data:([A-Za-z0-9.+/-]+);base64,(.+)$", re.DOTALL)


def is_remote_url(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


def decode_data_uri(source: str) -> tuple[str, bytes]:
    """Split a base64 data URI into (mime type, bytes)."""
    match = _DATA_URI.match(source or "")
    if not match:
        raise AppError(
            ErrorMessage.INVALID_MEDIA_SOURCE.value.message,
            ErrorMessage.INVALID_MEDIA_SOURCE.value.http_status,
        )
    try:
        data = base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError):
        raise AppError(
            ErrorMessage.INVALID_MEDIA_SOURCE.value.message,
            ErrorMessage.INVALID_MEDIA_SOURCE.value.http_status,
        )
    return match.group(1), data


class StorageService:
    """
    Makes media reachable by third parties that fetch by URL (TikTok, Graph API, Creatomate).
    http(s) URLs pass through; data URIs are uploaded to the public bucket.
    """

    def __init__(
        self, supabase: Optional[SupabaseClient] = None, bucket: Optional[str] = None
    ) -> None:
        self._db = supabase or SupabaseClient()
        self._bucket = bucket or settings.STORAGE_BUCKET
        self._bucket_ready = False

    async def ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        buckets = await self._db.list_buckets()
        if not any(b.get("name") == self._bucket for b in buckets):
            logger.info("storage.bucket.create name=%s", self._bucket)
            await self._db.create_bucket(
                self._bucket, public=True, file_size_limit=settings.STORAGE_FILE_SIZE_LIMIT
            )
        self._bucket_ready = True

    async def upload_bytes(self, data: bytes, file_name: str, content_type: str) -> str:
        await self.ensure_bucket()
        path = f"{secrets.token_hex(8)}-{file_name}"
        await self._db.upload(self._bucket, path, data, content_type)
        logger.info("storage.upload.ok bytes=%d type=%s", len(data), content_type)
        return self._db.public_url(self._bucket, path)

    async def ensure_public_url(self, source: str, file_name: str) -> str:
        if is_remote_url(source):
            return source
        if not source.startswith("data:"):
            logger.warning("storage.source.rejected prefix=%s", source[:16])
            raise AppError(
                ErrorMessage.INVALID_MEDIA_SOURCE.value.message,
                ErrorMessage.INVALID_MEDIA_SOURCE.value.http_status,
            )
        mime, data = decode_data_uri(source)
        return await self.upload_bytes(data, file_name, mime)
