"""
Object storage adapter for course assets (thumbnails, lesson videos).

Backed by any S3-compatible store (AWS S3, MinIO). Objects are addressed by
key; public URLs are derived from configuration at read time so the stored
key never depends on the storage endpoint's internal address.
"""
import logging
import uuid
from typing import Optional
from urllib.parse import urlparse

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from edustream.core.config import settings
from edustream.core.errors import UpstreamFailure

logger = logging.getLogger(__name__)

MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


class FileStorage:
    """
    S3 storage with lazy bucket creation.

    Layout:
    <bucket>/
      course-thumbnails/<uuid>-<original name>
      course-videos/<uuid>-<original name>
    """

    def __init__(
        self,
        client=None,
        bucket: Optional[str] = None,
        endpoint: Optional[str] = None,
        public_base: Optional[str] = None,
    ):
        self.bucket = bucket or settings.s3_bucket
        self.endpoint = (endpoint if endpoint is not None else settings.s3_endpoint).rstrip("/")
        self.public_base = (public_base if public_base is not None else settings.s3_public_base).rstrip("/")
        self.client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            aws_access_key_id=settings.s3_access_key or None,
            aws_secret_access_key=settings.s3_secret_key or None,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
        self._bucket_ready = False

    def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist. Cached after the first success."""
        if self._bucket_ready:
            return

        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code not in MISSING_BUCKET_CODES:
                raise
            logger.info(f"Creating storage bucket {self.bucket}")
            self.client.create_bucket(Bucket=self.bucket)

        self._bucket_ready = True

    @staticmethod
    def build_key(folder: str, filename: str) -> str:
        safe_name = (filename or "file").replace("/", "_").replace("\\", "_")
        return f"{folder.strip('/')}/{uuid.uuid4()}-{safe_name}"

    def upload(self, data: bytes, filename: str, content_type: Optional[str], folder: str) -> str:
        """
        Upload a file and return its object key.

        Raises:
            UpstreamFailure: the object store rejected the request
        """
        key = self.build_key(folder, filename)
        try:
            self.ensure_bucket()
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Upload of {key} failed: {e}")
            raise UpstreamFailure("File upload failed") from e

        logger.info(f"Uploaded {key} ({len(data)} bytes)")
        return key

    def public_url(self, key: Optional[str]) -> Optional[str]:
        """Browser-facing URL for a key, preferring the public base over the endpoint."""
        if not key:
            return None
        base = self.public_base or self.endpoint
        return f"{base}/{self.bucket}/{key}"

    def owns_url(self, url: Optional[str]) -> bool:
        """True if the URL points into this bucket, either directly or through the public proxy."""
        if not url:
            return False
        for base in (self.public_base, self.endpoint):
            if base and url.startswith(f"{base}/{self.bucket}/"):
                return True
        return False

    def key_from_url(self, url: str) -> Optional[str]:
        """
        Recover the object key from a URL returned by an earlier upload.

        Handles both http://<endpoint>/<bucket>/<key> and
        https://<public base, possibly with a path prefix>/<bucket>/<key>.
        Falls back to the last two path segments (<folder>/<file>).
        """
        parts = [p for p in urlparse(url).path.split("/") if p]
        if self.bucket in parts:
            idx = parts.index(self.bucket)
            key = "/".join(parts[idx + 1:])
        else:
            key = "/".join(parts[-2:])
        return key or None

    def delete(self, key: Optional[str]) -> bool:
        """Delete an object by key. Errors are logged, never raised."""
        if not key:
            return False
        try:
            self.ensure_bucket()
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Delete file error for {key}: {e}")
            return False
        return True

    def delete_url(self, url: Optional[str]) -> bool:
        """Delete the object behind a stored URL. Errors are logged, never raised."""
        if not url:
            return False
        key = self.key_from_url(url)
        if not key:
            logger.warning(f"Could not derive storage key from URL: {url}")
            return False
        return self.delete(key)
