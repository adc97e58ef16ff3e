"""Blob store interface consumed by the score engine."""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEYS = 1000


class StorageError(Exception):
    """Raised when the backing blob store is unreachable or fails an operation."""
    pass


class MalformedObjectError(StorageError):
    """Raised when a stored object is not valid JSON."""

    def __init__(self, key: str, message: str):
        super().__init__(f"Malformed object at {key}: {message}")
        self.key = key


@dataclass
class StorageObject:
    key: str
    size: Optional[int] = None
    last_modified: Optional[str] = None


@dataclass
class ListObjectsResult:
    objects: List[StorageObject] = field(default_factory=list)
    is_truncated: bool = False
    next_continuation_token: Optional[str] = None


class BlobStore:
    """
    Key-value blob store with JSON helpers.

    Keys are slash-separated paths. ``list_objects`` returns keys in
    lexicographic order; the continuation token is the last key of the
    previous page ("start after" semantics), so deleting keys between pages
    never causes others to be skipped.
    """

    async def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded JSON document at ``key`` or None if absent."""
        raise NotImplementedError

    async def store_json(self, key: str, value: Any) -> None:
        """Create or overwrite the JSON document at ``key``."""
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        """Remove ``key``. Deleting a missing key is not an error."""
        raise NotImplementedError

    async def list_objects(
        self,
        prefix: str = "",
        max_keys: int = DEFAULT_MAX_KEYS,
        continuation_token: Optional[str] = None
    ) -> ListObjectsResult:
        raise NotImplementedError

    async def health_check(self) -> bool:
        raise NotImplementedError


async def iter_objects(
    blob_store: BlobStore,
    prefix: str,
    page_size: int = DEFAULT_MAX_KEYS
) -> AsyncIterator[StorageObject]:
    """Yield every object under ``prefix``, one listing page at a time."""
    token = None
    while True:
        page = await blob_store.list_objects(
            prefix=prefix,
            max_keys=page_size,
            continuation_token=token
        )
        for obj in page.objects:
            yield obj
        if not page.is_truncated:
            return
        token = page.next_continuation_token


def create_blob_store(backend: Optional[str] = None) -> BlobStore:
    """
    Build the blob store selected by configuration.

    Args:
        backend: ``supabase`` or ``memory``; defaults to ``settings.storage_backend``
    """
    from aurum_score.config import settings

    backend = (backend or settings.storage_backend).lower()

    if backend == "memory":
        from aurum_score.clients.memory_store import InMemoryBlobStore
        logger.warning("Using in-memory blob store; scores will not survive a restart")
        return InMemoryBlobStore()

    if backend == "supabase":
        from aurum_score.clients.supabase_client import SupabaseBlobStore
        return SupabaseBlobStore(
            url=settings.supabase_url,
            key=settings.supabase_key,
            bucket=settings.storage_bucket
        )

    raise ValueError(f"Unknown storage backend: {backend}")
