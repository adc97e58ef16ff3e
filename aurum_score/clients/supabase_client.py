"""Supabase Storage client implementing the blob store interface."""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import httpx
from supabase import create_client, Client
from storage3.utils import StorageException

from .blob_store import (
    BlobStore,
    DEFAULT_MAX_KEYS,
    ListObjectsResult,
    MalformedObjectError,
    StorageError,
    StorageObject,
)

logger = logging.getLogger(__name__)

# Supabase lists at most this many entries per folder request
LIST_PAGE_LIMIT = 100
FOLDER_PLACEHOLDER = ".emptyFolderPlaceholder"


def _is_not_found(error: Exception) -> bool:
    """Whether a storage error means the object does not exist."""
    status = getattr(error, "status", None)
    if status is None and error.args and isinstance(error.args[0], dict):
        status = error.args[0].get("statusCode")
    if str(status) == "404":
        return True
    message = str(error).lower()
    return "not found" in message or "not_found" in message


class SupabaseBlobStore(BlobStore):
    """Blob store backed by a Supabase Storage bucket."""

    def __init__(self, url: Optional[str], key: Optional[str], bucket: str):
        """Initialize the store; the Supabase client is created on first use."""
        if not url:
            raise ValueError('SUPABASE_URL environment variable is required')
        if not key:
            raise ValueError('SUPABASE_KEY environment variable is required')

        self._client: Optional[Client] = None
        self._url = url
        self._key = key
        self.bucket_name = bucket

    @property
    def client(self) -> Client:
        """Get or create Supabase client instance."""
        if self._client is None:
            self._client = create_client(self._url, self._key)
        return self._client

    @property
    def bucket(self):
        return self.client.storage.from_(self.bucket_name)

    async def get_json(self, key: str) -> Optional[Any]:
        try:
            data = self.bucket.download(key)
        except StorageException as e:
            if _is_not_found(e):
                return None
            logger.error(f"Storage error reading {key}: {e}")
            raise StorageError(f"Failed to read {key}: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Network error reading {key}: {e}")
            raise StorageError(f"Failed to read {key}: {e}") from e

        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedObjectError(key, str(e)) from e

    async def store_json(self, key: str, value: Any) -> None:
        body = json.dumps(value, indent=2).encode("utf-8")
        try:
            self.bucket.upload(
                key,
                body,
                file_options={
                    "content-type": "application/json",
                    "cache-control": "0",
                    "x-upsert": "true"
                }
            )
            logger.debug(f"Stored {len(body)} bytes at {key}")
        except (StorageException, httpx.HTTPError) as e:
            logger.error(f"Storage error writing {key}: {e}")
            raise StorageError(f"Failed to write {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            self.bucket.remove([key])
        except (StorageException, httpx.HTTPError) as e:
            logger.error(f"Storage error deleting {key}: {e}")
            raise StorageError(f"Failed to delete {key}: {e}") from e

    async def list_objects(
        self,
        prefix: str = "",
        max_keys: int = DEFAULT_MAX_KEYS,
        continuation_token: Optional[str] = None
    ) -> ListObjectsResult:
        # Supabase lists one folder level at a time, so walk from the folder
        # that contains the prefix and filter keys by the full prefix.
        folder = prefix.rsplit("/", 1)[0] if "/" in prefix else ""
        objects: List[StorageObject] = []

        try:
            for entry in self._walk(folder, continuation_token):
                if not entry.key.startswith(prefix):
                    continue
                if len(objects) == max_keys:
                    return ListObjectsResult(
                        objects=objects,
                        is_truncated=True,
                        next_continuation_token=objects[-1].key
                    )
                objects.append(entry)
        except (StorageException, httpx.HTTPError) as e:
            logger.error(f"Storage error listing {prefix}: {e}")
            raise StorageError(f"Failed to list {prefix}: {e}") from e

        return ListObjectsResult(objects=objects, is_truncated=False)

    def _list_folder(self, folder: str) -> List[Dict[str, Any]]:
        entries: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self.bucket.list(folder, {
                "limit": LIST_PAGE_LIMIT,
                "offset": offset,
                "sortBy": {"column": "name", "order": "asc"}
            })
            entries.extend(page)
            if len(page) < LIST_PAGE_LIMIT:
                return entries
            offset += LIST_PAGE_LIMIT

    def _walk(self, folder: str, start_after: Optional[str]) -> Iterator[StorageObject]:
        """Yield every object below ``folder`` in lexicographic key order."""
        base = f"{folder}/" if folder else ""
        children = []
        for entry in self._list_folder(folder):
            name = entry.get("name")
            if not name or name == FOLDER_PLACEHOLDER:
                continue
            is_folder = entry.get("id") is None
            # A folder sorts as "name/" so that depth-first order matches key order
            children.append((base + name + ("/" if is_folder else ""), is_folder, entry))

        for sort_key, is_folder, entry in sorted(children, key=lambda child: child[0]):
            if is_folder:
                if start_after and start_after >= sort_key and not start_after.startswith(sort_key):
                    continue
                yield from self._walk(sort_key[:-1], start_after)
            elif not start_after or sort_key > start_after:
                metadata = entry.get("metadata") or {}
                yield StorageObject(
                    key=sort_key,
                    size=metadata.get("size"),
                    last_modified=entry.get("updated_at")
                )

    async def health_check(self) -> bool:
        """Check if the storage bucket is reachable."""
        try:
            self.bucket.list("", {"limit": 1})
            return True
        except Exception as e:
            logger.error(f"Storage health check failed: {e}")
            return False
