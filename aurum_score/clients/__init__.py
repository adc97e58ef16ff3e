"""Client modules for external service integrations."""

from aurum_score.clients.blob_store import (
    BlobStore,
    StorageError,
    MalformedObjectError,
    StorageObject,
    ListObjectsResult,
    create_blob_store,
    iter_objects
)

from aurum_score.clients.memory_store import InMemoryBlobStore

__all__ = [
    "BlobStore",
    "StorageError",
    "MalformedObjectError",
    "StorageObject",
    "ListObjectsResult",
    "create_blob_store",
    "iter_objects",
    "InMemoryBlobStore"
]
