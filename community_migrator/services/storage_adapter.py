"""Typed adapter for the Cloud Storage JSON API.

Replaces raw ``storage.objects().get(...).execute()`` chains with explicit
method calls that are easier to mock, test, and type-check.

The adapter delegates to a pre-built (and retry-wrapped) storage service
object, so it does **not** add its own retry logic.
"""

from __future__ import annotations

import io
from typing import Any

from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from community_migrator.constants import HTTP_NOT_FOUND, PUBLIC_URL_TEMPLATE


class StorageAdapter:
    """Thin typed wrapper around the Cloud Storage API service."""

    def __init__(self, service: Any) -> None:
        self._svc = service

    # -- Objects --------------------------------------------------------------

    def get_object(self, bucket: str, path: str) -> dict[str, Any] | None:
        """Get object metadata, or None if the object does not exist.

        Args:
            bucket: Bucket name.
            path: Object name within the bucket.

        Returns:
            Object resource dict (``contentType``, ``size``...) or None.
        """
        try:
            result: dict[str, Any] = (
                self._svc.objects().get(bucket=bucket, object=path).execute()
            )
        except HttpError as e:
            if e.resp.status == HTTP_NOT_FOUND:
                return None
            raise
        return result

    def download(self, bucket: str, path: str) -> bytes:
        """Download the content of an object."""
        data: bytes = (
            self._svc.objects().get_media(bucket=bucket, object=path).execute()
        )
        return data

    def upload(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> dict[str, Any]:
        """Upload bytes as ``path`` in ``bucket``.

        Args:
            bucket: Target bucket name.
            path: Object name to create or replace.
            data: Object content.
            content_type: MIME type stored with the object.

        Returns:
            Created object resource dict.
        """
        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=content_type)
        result: dict[str, Any] = (
            self._svc.objects()
            .insert(
                bucket=bucket,
                name=path,
                body={"name": path, "contentType": content_type},
                media_body=media,
            )
            .execute()
        )
        return result

    # -- Access control -------------------------------------------------------

    def make_public(self, bucket: str, path: str) -> dict[str, Any]:
        """Grant ``allUsers`` read access to an object."""
        result: dict[str, Any] = (
            self._svc.objectAccessControls()
            .insert(
                bucket=bucket,
                object=path,
                body={"entity": "allUsers", "role": "READER"},
            )
            .execute()
        )
        return result

    @staticmethod
    def public_url(bucket: str, path: str) -> str:
        """Canonical public URL of an object."""
        return PUBLIC_URL_TEMPLATE.format(bucket=bucket, path=path)
