"""S3-compatible object storage for reel media, narration audio and renders.

Provides:
- Uploads with optional overwrite protection
- Signed URLs that first confirm the object exists
- Downloads, deletes and bucket checks
"""

import logging
import mimetypes
from io import BytesIO
from pathlib import Path
from typing import List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageError(Exception):
    """Error from object storage."""

    pass


class ObjectStorage:
    """Multi-bucket S3-compatible object storage.

    All methods are synchronous (boto3); async callers wrap them in
    ``asyncio.to_thread``.
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        region: str = "auto",
        client=None,
    ):
        """Initialize storage.

        Args:
            endpoint_url: S3 API endpoint (None for AWS)
            access_key_id: Access key ID
            secret_access_key: Secret access key
            region: Region name
            client: Pre-built S3 client, mainly for tests
        """
        self.endpoint_url = endpoint_url

        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
            config=Config(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "adaptive"},
            ),
        )

        logger.info(f"Object storage initialized (endpoint: {endpoint_url or 'aws'})")

    @staticmethod
    def _error_code(error: ClientError) -> str:
        return str(error.response.get("Error", {}).get("Code", ""))

    @staticmethod
    def guess_content_type(key: str) -> str:
        """Guess a content type from the object key."""
        content_type, _ = mimetypes.guess_type(key)
        if content_type:
            return content_type
        return {
            ".mp3": "audio/mpeg",
            ".mp4": "video/mp4",
            ".json": "application/json",
        }.get(Path(key).suffix.lower(), "application/octet-stream")

    def object_exists(self, bucket: str, key: str) -> bool:
        """Check whether an object exists.

        Raises:
            StorageError: For errors other than a missing object
        """
        try:
            self._client.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            if self._error_code(e) in MISSING_OBJECT_CODES:
                return False
            raise StorageError(f"Failed to check {bucket}/{key}: {e}") from e

    def upload_bytes(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
    ) -> str:
        """Upload bytes to a bucket.

        Args:
            bucket: Bucket name
            key: Object key
            data: Object contents
            content_type: MIME type (guessed from key if not provided)
            upsert: Overwrite an existing object instead of failing

        Returns:
            Object key

        Raises:
            StorageError: If the upload fails or the key exists and upsert is False
        """
        if not data:
            raise StorageError(f"Refusing to upload empty object {bucket}/{key}")

        if not upsert and self.object_exists(bucket, key):
            raise StorageError(f"Object already exists: {bucket}/{key}")

        try:
            self._client.upload_fileobj(
                BytesIO(data),
                bucket,
                key,
                ExtraArgs={"ContentType": content_type or self.guess_content_type(key)},
            )
        except ClientError as e:
            logger.error(f"Failed to upload {bucket}/{key}: {e}")
            raise StorageError(f"Failed to upload {bucket}/{key}: {e}") from e

        logger.info(f"Uploaded {bucket}/{key} ({len(data)} bytes)")
        return key

    def download_bytes(self, bucket: str, key: str) -> bytes:
        """Download an object.

        Raises:
            StorageError: If the object is missing or the download fails
        """
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            data = response["Body"].read()
            logger.debug(f"Downloaded {bucket}/{key} ({len(data)} bytes)")
            return data
        except ClientError as e:
            raise StorageError(f"Failed to download {bucket}/{key}: {e}") from e

    def create_signed_url(self, bucket: str, key: str, expires_in: int = 3600) -> str:
        """Mint a time-limited read URL for an existing object.

        Presigning alone never touches the server, so the object is probed
        first; a missing object raises instead of yielding a dead URL.

        Args:
            bucket: Bucket name
            key: Object key
            expires_in: URL lifetime in seconds

        Returns:
            Signed URL

        Raises:
            StorageError: If the object does not exist or signing fails
        """
        if not self.object_exists(bucket, key):
            raise StorageError(f"Object not found: {bucket}/{key}")

        try:
            url = self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except ClientError as e:
            raise StorageError(f"Failed to sign URL for {bucket}/{key}: {e}") from e

        if not url:
            raise StorageError(f"Empty signed URL for {bucket}/{key}")
        return url

    def delete_object(self, bucket: str, key: str) -> bool:
        """Delete an object. Returns False if it did not exist."""
        if not self.object_exists(bucket, key):
            return False
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            raise StorageError(f"Failed to delete {bucket}/{key}: {e}") from e
        logger.info(f"Deleted {bucket}/{key}")
        return True

    def missing_buckets(self, buckets: List[str]) -> List[str]:
        """Return the subset of bucket names that are not reachable."""
        missing = []
        for bucket in buckets:
            try:
                self._client.head_bucket(Bucket=bucket)
            except ClientError as e:
                logger.error(f"Bucket check failed for {bucket}: {e}")
                missing.append(bucket)
        return missing
