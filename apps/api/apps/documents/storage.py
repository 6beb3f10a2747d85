"""
MinIO object store client for document payloads.

Thin capability wrapper: put/get/copy/delete/exists by (bucket, key).
Every call runs with bounded connect/read timeouts; MinIO and network
errors are mapped to ObjectNotFoundError / ObjectStoreUnavailableError.
"""
import io
import uuid
from contextlib import contextmanager

import urllib3
from django.conf import settings
from django.utils import timezone
from minio import Minio
from minio.commonconfig import CopySource
from minio.error import InvalidResponseError, S3Error, ServerError

from .exceptions import ObjectNotFoundError, ObjectStoreUnavailableError

MISSING_OBJECT_CODES = {'NoSuchKey', 'NoSuchObject', 'NoSuchBucket'}

_TRANSIENT_ERRORS = (ServerError, InvalidResponseError, urllib3.exceptions.HTTPError)

_object_store = None


def bucket_for_tier(storage_class: str) -> str:
    """Bucket name configured for a storage tier."""
    return settings.STORAGE_TIER_BUCKETS[storage_class]


def tier_for_bucket(bucket: str):
    """Storage tier served by ``bucket``, or None for an unknown bucket."""
    for tier, name in settings.STORAGE_TIER_BUCKETS.items():
        if name == bucket:
            return tier
    return None


def generate_object_key(prefix: str, filename: str = '') -> str:
    """
    Generate unique object key for a document payload.

    Args:
        prefix: Folder prefix (the clinic storage folder)
        filename: Original filename, sanitized and appended if given

    Returns:
        Unique object key string
    """
    unique_id = f"{int(timezone.now().timestamp() * 1000)}-{uuid.uuid4().hex}"
    safe_filename = "".join(c for c in filename if c.isalnum() or c in "._-")
    if safe_filename:
        return f"{prefix}/{unique_id}_{safe_filename}"
    return f"{prefix}/{unique_id}"


def get_minio_client():
    """Get configured MinIO client instance with bounded timeouts."""
    http_client = urllib3.PoolManager(
        timeout=urllib3.Timeout(
            connect=settings.OBJECT_STORE_CONNECT_TIMEOUT,
            read=settings.OBJECT_STORE_READ_TIMEOUT,
        ),
        retries=urllib3.Retry(
            total=settings.OBJECT_STORE_MAX_RETRIES,
            backoff_factor=0.2,
            status_forcelist=[500, 502, 503, 504],
        ),
        maxsize=10,
    )
    return Minio(
        settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_USE_SSL,
        region=settings.MINIO_REGION or None,
        http_client=http_client,
    )


class ObjectStore:
    """Object store capability used by the document services."""

    def __init__(self, client=None):
        self.client = client or get_minio_client()

    def put(self, bucket: str, key: str, data: bytes, content_type: str = 'application/octet-stream') -> None:
        with self._errors(bucket, key):
            self.client.put_object(
                bucket_name=bucket,
                object_name=key,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )

    def get(self, bucket: str, key: str) -> bytes:
        with self._errors(bucket, key):
            response = self.client.get_object(bucket_name=bucket, object_name=key)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

    def copy(self, src_bucket: str, key: str, dst_bucket: str) -> None:
        """Server-side copy preserving the key. Raises ObjectNotFoundError if the source is missing."""
        with self._errors(src_bucket, key):
            self.client.copy_object(
                bucket_name=dst_bucket,
                object_name=key,
                source=CopySource(src_bucket, key),
            )

    def delete(self, bucket: str, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""
        with self._errors(bucket, key, missing_ok=True):
            self.client.remove_object(bucket_name=bucket, object_name=key)

    def exists(self, bucket: str, key: str) -> bool:
        try:
            with self._errors(bucket, key):
                self.client.stat_object(bucket_name=bucket, object_name=key)
        except ObjectNotFoundError:
            return False
        return True

    def ensure_bucket(self, bucket: str) -> bool:
        """Create ``bucket`` if missing. Returns True when it was created."""
        with self._errors(bucket, ''):
            if self.client.bucket_exists(bucket_name=bucket):
                return False
            self.client.make_bucket(bucket_name=bucket)
            return True

    def missing_tier_buckets(self):
        """Tier buckets that do not exist yet."""
        missing = []
        for bucket in settings.STORAGE_TIER_BUCKETS.values():
            with self._errors(bucket, ''):
                if not self.client.bucket_exists(bucket_name=bucket):
                    missing.append(bucket)
        return missing

    def _errors(self, bucket, key, missing_ok=False):
        return _map_errors(bucket, key, missing_ok)


@contextmanager
def _map_errors(bucket, key, missing_ok=False):
    """Translate MinIO/urllib3 errors into service errors."""
    try:
        yield
    except S3Error as exc:
        if exc.code in MISSING_OBJECT_CODES:
            if missing_ok:
                return
            raise ObjectNotFoundError(bucket, key) from exc
        raise ObjectStoreUnavailableError(
            f"Object store error on {bucket}/{key}: {exc.code}"
        ) from exc
    except _TRANSIENT_ERRORS as exc:
        raise ObjectStoreUnavailableError(
            f"Object store unavailable for {bucket}/{key}: {exc}"
        ) from exc


def get_object_store() -> ObjectStore:
    """Process-wide object store client."""
    global _object_store
    if _object_store is None:
        _object_store = ObjectStore()
    return _object_store

