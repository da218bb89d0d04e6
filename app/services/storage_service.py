"""
Audio Storage Service
Stores consultation audio in AWS S3 when configured, otherwise on local disk.
"""

import asyncio
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig

from app.config import settings
from app.core.exceptions import StorageError
from app.core.logging import get_logger
from app.services.audio_processor import AudioProcessor, audio_processor

logger = get_logger(__name__)


class StorageService:
    """S3 storage with a silent local-disk fallback."""

    def __init__(self, processor: Optional[AudioProcessor] = None):
        self.processor = processor or audio_processor
        self._s3_client = None

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client(
                "s3",
                region_name=settings.aws_region.strip(),
                aws_access_key_id=(settings.aws_access_key_id or "").strip(),
                aws_secret_access_key=(settings.aws_secret_access_key or "").strip(),
                config=BotoConfig(
                    connect_timeout=settings.storage_timeout,
                    read_timeout=settings.storage_timeout,
                    retries={"max_attempts": 1},
                ),
            )
        return self._s3_client

    def is_configured(self) -> bool:
        return settings.s3_configured

    @staticmethod
    def is_s3_url(audio_url: str) -> bool:
        return bool(audio_url) and audio_url.startswith("http") and "amazonaws.com" in audio_url

    @staticmethod
    def extract_s3_key(audio_url: str) -> str:
        return audio_url.rstrip("/").split("/")[-1]

    def build_s3_url(self, key: str) -> str:
        return f"https://{settings.s3_bucket_name}.s3.{settings.aws_region.strip()}.amazonaws.com/{key}"

    async def store(self, file_path: str, filename: str, content_type: str) -> str:
        """
        Persists an already written local file.
        Returns the S3 URL when the upload succeeds, else the local filename.
        """
        if not self.is_configured():
            logger.info("[Upload] S3 not configured, using local storage")
            return filename

        try:
            url = await self.upload_to_s3(file_path, filename, content_type)
        except StorageError as e:
            logger.warning(f"[Upload] S3 upload failed, falling back to local storage: {e}")
            return filename

        await self.processor.cleanup(file_path)
        return url

    async def upload_to_s3(self, file_path: str, key: str, content_type: str) -> str:
        logger.info(f"[S3] Uploading {key} to bucket {settings.s3_bucket_name}")
        try:
            await asyncio.to_thread(
                self.s3_client.upload_file,
                file_path,
                settings.s3_bucket_name,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except Exception as e:
            raise StorageError(f"S3 upload failed: {e}", provider="s3") from e

        url = self.build_s3_url(key)
        logger.info(f"[S3] Upload successful: {url}")
        return url

    async def fetch(self, audio_url: str) -> bytes:
        """Reads stored audio back, from S3 or the uploads directory."""
        if self.is_s3_url(audio_url):
            key = self.extract_s3_key(audio_url)
            try:
                response = await asyncio.to_thread(
                    self.s3_client.get_object, Bucket=settings.s3_bucket_name, Key=key
                )
                return await asyncio.to_thread(response["Body"].read)
            except Exception as e:
                raise StorageError(f"S3 download failed: {e}", provider="s3") from e

        file_path = self.processor.path_for(audio_url)
        try:
            return await asyncio.to_thread(self._read_local, file_path)
        except OSError as e:
            raise StorageError(f"Local audio not readable: {e}", provider="local") from e

    @staticmethod
    def _read_local(file_path: str) -> bytes:
        with open(file_path, "rb") as f:
            return f.read()

    async def delete(self, audio_url: str):
        """Best-effort removal of stored audio; failures are logged only."""
        if not audio_url:
            return

        if self.is_s3_url(audio_url):
            key = self.extract_s3_key(audio_url)
            try:
                await asyncio.to_thread(
                    self.s3_client.delete_object, Bucket=settings.s3_bucket_name, Key=key
                )
                logger.info(f"[Delete] Deleted from S3: {key}")
            except Exception as e:
                logger.warning(f"[Delete] Failed to delete from S3: {e}")
            return

        await self.processor.cleanup(self.processor.path_for(audio_url))


storage_service = StorageService()
