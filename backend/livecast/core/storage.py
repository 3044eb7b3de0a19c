"""Read-only object storage listing.

Supports: local filesystem, S3, MinIO, and other S3-compatible storage.
Recordings are written by the managed video service; this module only
enumerates them.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import AsyncIterator, Optional

from livecast.core.config import settings
from livecast.core.logging import log_warning
from livecast.core.metrics import RECORDING_LISTING_PAGES_TOTAL

logger = logging.getLogger(__name__)

# Hard cap imposed by S3 ListObjectsV2
MAX_KEYS_PER_PAGE = 1000


class StorageAccessError(Exception):
    """Raised when the object store cannot be reached or refuses a request."""

    def __init__(self, operation: str, prefix: str, message: str):
        self.operation = operation
        self.prefix = prefix
        self.message = message
        super().__init__(f"{operation} failed for prefix '{prefix}': {message}")


@dataclass(frozen=True)
class StorageObject:
    """One entry of a listing response."""
    key: str
    last_modified: datetime
    size: int = 0


@dataclass
class ListObjectsPage:
    """A single page of a listing, with the token for the next page if any."""
    entries: list[StorageObject] = field(default_factory=list)
    next_continuation_token: Optional[str] = None


@dataclass
class StorageConfig:
    """Storage configuration."""
    backend: str  # local, s3, minio
    bucket: str = ""
    region: str = ""
    access_key: str = ""
    secret_key: str = ""
    endpoint_url: Optional[str] = None
    use_ssl: bool = True
    local_path: str = "./storage"
    cdn_domain: Optional[str] = None
    cdn_enabled: bool = False


class ObjectStore(ABC):
    """Abstract base class for listing backends."""

    @abstractmethod
    def list_objects(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
        max_keys: int = MAX_KEYS_PER_PAGE,
    ) -> ListObjectsPage:
        """List one page of objects under ``prefix``.

        Raises:
            StorageAccessError: If the backend request fails
        """

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Public (unsigned) URL of an object."""


class LocalObjectStore(ObjectStore):
    """Local filesystem backend.

    Keys are paths relative to ``local_path``; the continuation token is the
    last key of the previous page.
    """

    def __init__(self, config: StorageConfig):
        self.base_path = Path(config.local_path)
        self.cdn_domain = config.cdn_domain
        self.cdn_enabled = config.cdn_enabled

    def list_objects(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
        max_keys: int = MAX_KEYS_PER_PAGE,
    ) -> ListObjectsPage:
        max_keys = min(max_keys, MAX_KEYS_PER_PAGE)
        try:
            keys = sorted(
                path.relative_to(self.base_path).as_posix()
                for path in self.base_path.rglob("*")
                if path.is_file()
            )
        except OSError as e:
            raise StorageAccessError("list_objects", prefix, str(e)) from e

        keys = [k for k in keys if k.startswith(prefix)]
        if continuation_token:
            keys = [k for k in keys if k > continuation_token]

        page_keys = keys[:max_keys]
        entries = []
        for key in page_keys:
            stat = (self.base_path / key).stat()
            entries.append(StorageObject(
                key=key,
                last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                size=stat.st_size,
            ))

        next_token = page_keys[-1] if len(keys) > max_keys else None
        return ListObjectsPage(entries=entries, next_continuation_token=next_token)

    def public_url(self, key: str) -> str:
        if self.cdn_enabled and self.cdn_domain:
            return f"https://{self.cdn_domain}/{key}"
        return f"file://{(self.base_path / key).absolute()}"


class S3ObjectStore(ObjectStore):
    """S3/MinIO compatible backend."""

    def __init__(self, config: StorageConfig):
        self.config = config
        self._client = None

    def _get_client(self):
        """Get or create S3 client."""
        if self._client is None:
            import boto3
            from botocore.config import Config as BotoConfig

            client_kwargs = {
                "service_name": "s3",
                "region_name": self.config.region or "us-east-1",
                "aws_access_key_id": self.config.access_key or None,
                "aws_secret_access_key": self.config.secret_key or None,
            }

            # For MinIO or other S3-compatible storage
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url
                client_kwargs["config"] = BotoConfig(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                )
                if not self.config.use_ssl:
                    client_kwargs["use_ssl"] = False

            self._client = boto3.client(**client_kwargs)

        return self._client

    def list_objects(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
        max_keys: int = MAX_KEYS_PER_PAGE,
    ) -> ListObjectsPage:
        from botocore.exceptions import BotoCoreError, ClientError

        params = {
            "Bucket": self.config.bucket,
            "Prefix": prefix,
            "MaxKeys": min(max_keys, MAX_KEYS_PER_PAGE),
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = self._get_client().list_objects_v2(**params)
        except (ClientError, BotoCoreError) as e:
            raise StorageAccessError("list_objects", prefix, str(e)) from e

        entries = [
            StorageObject(
                key=obj["Key"],
                last_modified=obj["LastModified"],
                size=obj.get("Size", 0),
            )
            for obj in response.get("Contents", [])
        ]
        next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
        return ListObjectsPage(entries=entries, next_continuation_token=next_token)

    def public_url(self, key: str) -> str:
        if self.config.cdn_enabled and self.config.cdn_domain:
            return f"https://{self.config.cdn_domain}/{key}"
        if self.config.endpoint_url:
            return f"{self.config.endpoint_url.rstrip('/')}/{self.config.bucket}/{key}"
        return f"https://{self.config.bucket}.s3.{self.config.region}.amazonaws.com/{key}"


def create_object_store(config: StorageConfig) -> ObjectStore:
    """Create the backend named by ``config.backend``."""
    backend_type = config.backend.lower()

    if backend_type == "local":
        return LocalObjectStore(config)
    elif backend_type in ("s3", "minio", "aws"):
        return S3ObjectStore(config)
    else:
        raise ValueError(f"Unsupported storage backend: {backend_type}")


def config_from_settings() -> StorageConfig:
    return StorageConfig(
        backend=settings.STORAGE_BACKEND,
        bucket=settings.STORAGE_BUCKET,
        region=settings.STORAGE_REGION,
        access_key=settings.STORAGE_ACCESS_KEY,
        secret_key=settings.STORAGE_SECRET_KEY,
        endpoint_url=settings.STORAGE_ENDPOINT_URL,
        use_ssl=settings.STORAGE_USE_SSL,
        local_path=settings.LOCAL_STORAGE_PATH,
        cdn_domain=settings.CDN_DOMAIN,
        cdn_enabled=settings.CDN_ENABLED,
    )


class StorageService:
    """Async wrapper around an ``ObjectStore``.

    Blocking backend calls run in the default executor so listing never
    stalls the event loop.
    """

    def __init__(self, store: ObjectStore):
        self._store = store

    async def list_objects(
        self,
        prefix: str,
        continuation_token: Optional[str] = None,
        max_keys: int = MAX_KEYS_PER_PAGE,
    ) -> ListObjectsPage:
        """Fetch one listing page.

        Raises:
            StorageAccessError: If the backend request fails
        """
        loop = asyncio.get_running_loop()
        page = await loop.run_in_executor(
            None,
            partial(self._store.list_objects, prefix, continuation_token, max_keys),
        )
        RECORDING_LISTING_PAGES_TOTAL.inc()
        return page

    async def iter_pages(
        self,
        prefix: str,
        max_keys: int = MAX_KEYS_PER_PAGE,
        max_pages: Optional[int] = None,
    ) -> AsyncIterator[ListObjectsPage]:
        """Yield listing pages in order, following continuation tokens.

        Each page is fetched only after the previous one arrived. Stops after
        ``max_pages`` pages when given.

        Raises:
            StorageAccessError: If any page request fails; pages already
                yielded remain valid
        """
        token: Optional[str] = None
        fetched = 0
        while True:
            page = await self.list_objects(prefix, token, max_keys)
            fetched += 1
            yield page

            token = page.next_continuation_token
            if not token:
                return
            if max_pages is not None and fetched >= max_pages:
                log_warning(
                    logger,
                    "Listing truncated at page limit",
                    prefix=prefix,
                    max_pages=max_pages,
                )
                return

    def public_url(self, key: str) -> str:
        return self._store.public_url(key)


_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """Get the process-wide storage service built from settings."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService(create_object_store(config_from_settings()))
    return _storage_service
