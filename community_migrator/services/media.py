"""
Media migration between the source and target Cloud Storage buckets.

Images referenced by communities and users are Firebase Storage download
URLs pointing at the source project's bucket.  Each one is copied to the same
object path in the target bucket, made public, and replaced by its public URL.
Migration is best effort: any failure keeps the original URL.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Optional
from urllib.parse import unquote

from community_migrator.constants import (
    DEFAULT_CONTENT_TYPE,
    FIREBASE_DOWNLOAD_URL_PATTERN,
)
from community_migrator.services.storage_adapter import StorageAdapter
from community_migrator.utils.logging import log_with_context

_DOWNLOAD_URL_RE = re.compile(FIREBASE_DOWNLOAD_URL_PATTERN)


def parse_download_url(url: str) -> tuple[str, str] | None:
    """Split a Firebase Storage download URL into ``(bucket, object_path)``."""
    match = _DOWNLOAD_URL_RE.match(url)
    if not match:
        return None
    bucket, encoded_path = match.groups()
    return bucket, unquote(encoded_path)


class MediaMigrator:
    """Copies referenced media objects from the source to the target bucket.

    Either storage handle may be None (mock mode, storage not configured), in
    which case every URL is returned unchanged.  Results are cached per URL so
    an image shared by several records is transferred once per migrator.
    """

    def __init__(
        self,
        source_storage: Optional[StorageAdapter],
        target_storage: Optional[StorageAdapter],
        target_bucket: Optional[str],
    ) -> None:
        self.source_storage = source_storage
        self.target_storage = target_storage
        self.target_bucket = target_bucket
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.source_storage and self.target_storage and self.target_bucket)

    def migrate(self, source_url: Optional[str]) -> Optional[str]:
        """Migrate one media object and return the URL to store in the target.

        Args:
            source_url: URL found in the source data, possibly empty.

        Returns:
            The target public URL on success, otherwise ``source_url`` unchanged.
        """
        if not source_url:
            return source_url

        if not self.enabled:
            log_with_context(
                logging.DEBUG,
                "Skipping media migration (storage not configured)",
                url=source_url,
            )
            return source_url

        parsed = parse_download_url(source_url)
        if parsed is None:
            log_with_context(
                logging.DEBUG,
                "URL is not a Firebase Storage download URL, keeping it",
                url=source_url,
            )
            return source_url

        with self._lock:
            cached = self._cache.get(source_url)
        if cached is not None:
            return cached

        source_bucket, path = parsed
        result = self._copy_object(source_url, source_bucket, path)

        with self._lock:
            self._cache[source_url] = result
        return result

    def _copy_object(self, source_url: str, source_bucket: str, path: str) -> str:
        log_with_context(
            logging.DEBUG,
            f"Migrating media object {path} from {source_bucket}",
            url=source_url,
        )
        try:
            metadata = self.source_storage.get_object(source_bucket, path)
            if metadata is None:
                log_with_context(
                    logging.WARNING,
                    f"Source object does not exist: {path}",
                    url=source_url,
                )
                return source_url

            data = self.source_storage.download(source_bucket, path)
            content_type = metadata.get("contentType") or DEFAULT_CONTENT_TYPE

            self.target_storage.upload(self.target_bucket, path, data, content_type)
            self.target_storage.make_public(self.target_bucket, path)
        except Exception as e:
            log_with_context(
                logging.ERROR,
                f"Failed to migrate media object {path}: {e}",
                url=source_url,
                error=str(e),
            )
            return source_url

        public_url = self.target_storage.public_url(self.target_bucket, path)
        log_with_context(
            logging.INFO,
            f"Migrated media object to {public_url}",
            url=source_url,
        )
        return public_url
