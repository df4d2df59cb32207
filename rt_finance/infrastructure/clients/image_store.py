"""S3-compatible storage for receipt images"""

import mimetypes
from io import BytesIO
from uuid import uuid4

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from rt_finance.domain.exceptions import ImageStoreError
from rt_finance.config import settings


class ImageStore:
    """Uploads receipt photos and fetches them back for deferred OCR"""

    def __init__(self, bucket: str | None = None, timeout: float | None = None):
        self.bucket = bucket or settings.storage_bucket_name
        self.timeout = timeout or settings.http_timeout_seconds
        self._client = None

    def _s3(self):
        if self._client is None:
            if not settings.storage_access_key_id or not settings.storage_secret_access_key:
                raise ImageStoreError(
                    "Storage not configured: set STORAGE_ACCESS_KEY_ID and STORAGE_SECRET_ACCESS_KEY"
                )
            self._client = boto3.client(
                service_name="s3",
                endpoint_url=settings.storage_endpoint_url or None,
                aws_access_key_id=settings.storage_access_key_id,
                aws_secret_access_key=settings.storage_secret_access_key,
            )
        return self._client

    @staticmethod
    def public_url(key: str) -> str:
        return f"{settings.storage_public_base_url.rstrip('/')}/{key.lstrip('/')}"

    def upload(self, content: bytes, filename: str = "receipt.jpg") -> str:
        """
        Store image bytes under a unique key and return its durable public URL.

        Raises:
            ImageStoreError: Storage is misconfigured or rejects the upload
        """
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
        key = f"{settings.storage_key_prefix}/{uuid4().hex}.{ext}"
        content_type = mimetypes.guess_type(filename)[0] or "image/jpeg"

        try:
            self._s3().upload_fileobj(
                BytesIO(content),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as e:
            raise ImageStoreError(f"Storage upload failed: {e}") from e

        return self.public_url(key)

    def fetch(self, url: str) -> bytes:
        """
        Download a stored image.

        Raises:
            ImageStoreError: On timeout, HTTP errors, or network failures
        """
        try:
            response = httpx.get(url, timeout=self.timeout, follow_redirects=True)
            response.raise_for_status()
            return response.content
        except httpx.TimeoutException as e:
            raise ImageStoreError(f"Image download timeout after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise ImageStoreError(f"Image download error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise ImageStoreError(f"Image download failed: {e}") from e
