"""In-process blob store for local development and tests."""

import json
from typing import Any, Dict, Optional

from .blob_store import (
    BlobStore,
    DEFAULT_MAX_KEYS,
    ListObjectsResult,
    MalformedObjectError,
    StorageObject,
)


class InMemoryBlobStore(BlobStore):
    """
    Blob store holding serialized JSON in a dict.

    Values are stored as encoded bytes so that callers observe the same
    copy-on-read semantics and decode failures as with a remote store.
    """

    def __init__(self):
        self._objects: Dict[str, bytes] = {}

    async def get_json(self, key: str) -> Optional[Any]:
        data = self._objects.get(key)
        if data is None:
            return None
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedObjectError(key, str(e)) from e

    async def store_json(self, key: str, value: Any) -> None:
        self._objects[key] = json.dumps(value).encode("utf-8")

    async def delete(self, key: str) -> None:
        self._objects.pop(key, None)

    async def list_objects(
        self,
        prefix: str = "",
        max_keys: int = DEFAULT_MAX_KEYS,
        continuation_token: Optional[str] = None
    ) -> ListObjectsResult:
        keys = sorted(
            key for key in self._objects
            if key.startswith(prefix) and (continuation_token is None or key > continuation_token)
        )
        page = keys[:max_keys]
        return ListObjectsResult(
            objects=[StorageObject(key=key, size=len(self._objects[key])) for key in page],
            is_truncated=len(keys) > max_keys,
            next_continuation_token=page[-1] if len(keys) > max_keys else None
        )

    async def health_check(self) -> bool:
        return True

    def put_raw(self, key: str, data: bytes) -> None:
        """Store raw bytes, bypassing JSON encoding."""
        self._objects[key] = data

    def keys(self):
        return sorted(self._objects)

    def __len__(self) -> int:
        return len(self._objects)
