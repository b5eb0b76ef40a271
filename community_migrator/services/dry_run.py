"""No-op write services for dry-run mode.

Injected in place of the real target services when ``--dry_run`` is given,
eliminating scattered ``if dry_run`` checks.  Reads are forwarded to the real
services so lookups (identity matching, re-import detection) behave exactly
as in a real run; every write is logged and skipped, and remembered for the
rest of the run so later lookups see it.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Iterable

from community_migrator.exceptions import IdentityExistsError
from community_migrator.services.document_store import DocumentStore, Write
from community_migrator.services.identity_provider import IdentityProvider
from community_migrator.utils.logging import log_with_context

# ---------------------------------------------------------------------------
# Cloud Storage (mirrors the storage.objects()... method chains)
# ---------------------------------------------------------------------------


class DryRunRequest:
    """Mock API request that returns preset data on ``execute()``."""

    def __init__(self, data: dict[str, Any]) -> None:
        self._data = data

    def execute(self) -> dict[str, Any]:
        return self._data


class DryRunObjects:
    """Stub for ``objects()``."""

    def insert(self, **kwargs: Any) -> DryRunRequest:
        bucket = kwargs.get("bucket", "unknown")
        name = kwargs.get("name", "unknown")
        log_with_context(
            logging.DEBUG,
            f"[DRY RUN] Would upload gs://{bucket}/{name}",
        )
        return DryRunRequest({"bucket": bucket, "name": name})


class DryRunObjectAccessControls:
    """Stub for ``objectAccessControls()``."""

    def insert(self, **kwargs: Any) -> DryRunRequest:
        bucket = kwargs.get("bucket", "unknown")
        name = kwargs.get("object", "unknown")
        log_with_context(
            logging.DEBUG,
            f"[DRY RUN] Would make gs://{bucket}/{name} public",
        )
        return DryRunRequest({"entity": "allUsers", "role": "READER"})


class DryRunStorageService:
    """No-op Cloud Storage service for the target bucket in dry-run mode."""

    def objects(self) -> DryRunObjects:
        return DryRunObjects()

    def objectAccessControls(self) -> DryRunObjectAccessControls:  # noqa: N802
        return DryRunObjectAccessControls()


# ---------------------------------------------------------------------------
# Firestore and Authentication
# ---------------------------------------------------------------------------


class DryRunDocumentStore(DocumentStore):
    """DocumentStore that reads through ``wrapped`` and keeps writes in memory.

    Skipped writes are remembered for the rest of the run, so a later lookup
    sees a document an earlier step "wrote" just as it would in a real run.
    """

    def __init__(self, wrapped: DocumentStore) -> None:
        self._wrapped = wrapped
        self._counter = itertools.count(1)
        # (collection, id) -> data, None marks a deleted document
        self._pending: dict[tuple[str, str], dict[str, Any] | None] = {}
        self._lock = threading.Lock()

    def _pending_in(self, collection: str) -> dict[str, dict[str, Any] | None]:
        with self._lock:
            return {
                doc_id: data
                for (name, doc_id), data in self._pending.items()
                if name == collection
            }

    def _current(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            if (collection, doc_id) in self._pending:
                data = self._pending[(collection, doc_id)]
                return dict(data) if data is not None else None
        return self._wrapped.get(collection, doc_id)

    def _remember(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool
    ) -> None:
        if merge:
            merged = dict(self._current(collection, doc_id) or {})
            merged.update(data)
            data = merged
        with self._lock:
            self._pending[(collection, doc_id)] = dict(data)

    def find_one(self, collection: str, field: str, value: Any):
        pending = self._pending_in(collection)
        for doc_id, data in pending.items():
            if data is not None and data.get(field) == value:
                return doc_id, dict(data)
        found = self._wrapped.find_one(collection, field, value)
        if found is not None and found[0] in pending:
            return None
        return found

    def find_ids(self, collection: str, field: str, value: Any) -> list[str]:
        pending = self._pending_in(collection)
        ids = [
            doc_id
            for doc_id in self._wrapped.find_ids(collection, field, value)
            if doc_id not in pending
        ]
        ids.extend(
            doc_id
            for doc_id, data in pending.items()
            if data is not None and data.get(field) == value
        )
        return ids

    def get(self, collection: str, doc_id: str):
        return self._current(collection, doc_id)

    def field_values(self, collection: str, field: str) -> set[Any]:
        values = self._wrapped.field_values(collection, field)
        for data in self._pending_in(collection).values():
            if data is not None and data.get(field) is not None:
                values.add(data[field])
        return values

    def new_id(self, collection: str) -> str:
        return f"dry-run-{collection}-{next(self._counter)}"

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        log_with_context(
            logging.DEBUG,
            f"[DRY RUN] Would {'merge into' if merge else 'write'} {collection}/{doc_id}",
        )
        self._remember(collection, doc_id, data, merge)

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        log_with_context(
            logging.DEBUG,
            f"[DRY RUN] Would update {collection}/{doc_id} ({', '.join(sorted(data))})",
        )
        self._remember(collection, doc_id, data, merge=True)

    def delete(self, collection: str, doc_id: str) -> None:
        log_with_context(logging.DEBUG, f"[DRY RUN] Would delete {collection}/{doc_id}")
        with self._lock:
            self._pending[(collection, doc_id)] = None

    def commit_batch(self, writes: Iterable[Write], *, merge: bool = False) -> int:
        writes = list(writes)
        log_with_context(
            logging.DEBUG,
            f"[DRY RUN] Would commit a batch of {len(writes)} write(s)",
        )
        for collection, doc_id, data in writes:
            self._remember(collection, doc_id, data, merge)
        return len(writes)


class DryRunIdentityProvider(IdentityProvider):
    """IdentityProvider that looks accounts up for real but never creates them.

    Emails it pretended to create an account for resolve to that placeholder
    uid for the rest of the run.
    """

    def __init__(self, wrapped: IdentityProvider) -> None:
        self._wrapped = wrapped
        self._counter = itertools.count(1)
        self._created: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_uid_by_email(self, email: str) -> str | None:
        with self._lock:
            uid = self._created.get(email.lower())
        if uid is not None:
            return uid
        return self._wrapped.get_uid_by_email(email)

    def create_account(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> str:
        with self._lock:
            if email.lower() in self._created:
                raise IdentityExistsError(email)
            uid = f"dry-run-uid-{next(self._counter)}"
            self._created[email.lower()] = uid
        log_with_context(
            logging.DEBUG,
            f"[DRY RUN] Would create account for {email}",
            uid=uid,
        )
        return uid
