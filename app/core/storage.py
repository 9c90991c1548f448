import os
import uuid
import logging
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile

from .config import settings
from .exceptions import TransientIOError

logger = logging.getLogger(__name__)

class R2Storage:
    """Stores post images in a Cloudflare R2 (S3 compatible) bucket, or on local disk when no bucket is configured.

    Posts keep the object key (``post_images/<hex>.png``); public URLs are derived
    from the key with :meth:`url_for` so the storage location can change without
    rewriting rows.
    """

    def __init__(self, upload_directory: Optional[str] = None):
        self.client = None
        self.bucket = settings.R2_BUCKET_NAME
        self.public_url = settings.R2_PUBLIC_URL.rstrip("/")
        self.base_url = settings.BASE_URL.rstrip("/")
        self.upload_directory = Path(upload_directory or settings.UPLOAD_DIRECTORY)

        if all([settings.R2_ENDPOINT, settings.R2_ACCESS_KEY_ID, settings.R2_SECRET_ACCESS_KEY]):
            logger.info(f"Creating S3 client for R2 bucket '{self.bucket}' at {settings.R2_ENDPOINT}")
            self.client = boto3.client(
                "s3",
                endpoint_url=settings.R2_ENDPOINT,
                aws_access_key_id=settings.R2_ACCESS_KEY_ID,
                aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            )
        else:
            missing = [
                name for name in ("R2_ENDPOINT", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY")
                if not getattr(settings, name)
            ]
            logger.warning(f"R2 storage not configured (missing: {', '.join(missing)}), using local directory {self.upload_directory}")

    def _local_path(self, key: str) -> Path:
        path = (self.upload_directory / key).resolve()
        if self.upload_directory.resolve() not in path.parents:
            raise ValueError(f"Key {key!r} escapes the upload directory")
        return path

    def url_for(self, key: Optional[str]) -> Optional[str]:
        """Public URL of a stored object"""
        if not key:
            return None
        if self.client and self.public_url:
            return f"{self.public_url}/{key}"
        return f"{self.base_url}{settings.API_PREFIX}/media/{key}"

    async def upload_file(self, file: UploadFile, prefix: str = "post_images", content: Optional[bytes] = None) -> str:
        """Store an uploaded file and return its key"""
        if content is None:
            content = await file.read()
            await file.seek(0)
        file_extension = os.path.splitext(file.filename or "")[1].lower()
        key = f"{prefix}/{uuid.uuid4().hex}{file_extension}"
        logger.info(f"[UPLOAD] Storing '{file.filename}' ({len(content)} bytes) as {key}")

        if not self.client:
            local_path = self._local_path(key)
            try:
                local_path.parent.mkdir(parents=True, exist_ok=True)
                local_path.write_bytes(content)
            except OSError as e:
                logger.error(f"[UPLOAD] Failed to save file locally: {e}")
                raise TransientIOError("Failed to store image") from e
            return key

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=file.content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"[UPLOAD] Failed to upload to R2: {e}")
            raise TransientIOError("Failed to store image") from e
        return key

    def get_file(self, key: str) -> Optional[bytes]:
        """Read a stored object, None when it does not exist"""
        if not self.client:
            local_path = self._local_path(key)
            if not local_path.is_file():
                return None
            return local_path.read_bytes()

        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise TransientIOError("Failed to read image") from e
        except BotoCoreError as e:
            raise TransientIOError("Failed to read image") from e
        return response["Body"].read()

    def delete_file(self, key: Optional[str]) -> bool:
        """Delete a stored object; failures are logged, not raised"""
        if not key:
            return False

        if not self.client:
            try:
                local_path = self._local_path(key)
                if local_path.exists():
                    local_path.unlink()
                    logger.info(f"Deleted local file {local_path}")
                    return True
            except (OSError, ValueError) as e:
                logger.error(f"Failed to delete local file {key}: {e}")
            return False

        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
            logger.info(f"Deleted file with key '{key}' from bucket '{self.bucket}'")
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to delete from R2: {e}")
            return False

# Global instance for app-wide usage
r2_storage = R2Storage()
