"""Typed adapter for a Firestore database.

Used for both the secondary identity store (source Firebase project) and the
target store.  Exposes only the operations the pipeline needs: equality
lookups, single-document writes, generated ids, batched commits and deletes.
"""

from __future__ import annotations

from typing import Any, Iterable

from google.cloud.firestore_v1.base_query import FieldFilter

from community_migrator.constants import MAX_BATCH_SIZE

# (collection, document id, data)
Write = tuple[str, str, dict[str, Any]]


class DocumentStore:
    """Thin typed wrapper around a ``google.cloud.firestore.Client``."""

    def __init__(self, client: Any) -> None:
        self._client = client

    # -- Reads ----------------------------------------------------------------

    def find_one(
        self, collection: str, field: str, value: Any
    ) -> tuple[str, dict[str, Any]] | None:
        """Return ``(id, data)`` of the first document where ``field == value``."""
        docs = (
            self._client.collection(collection)
            .where(filter=FieldFilter(field, "==", value))
            .limit(1)
            .get()
        )
        for doc in docs:
            return doc.id, doc.to_dict() or {}
        return None

    def find_ids(self, collection: str, field: str, value: Any) -> list[str]:
        """Return the ids of every document where ``field == value``."""
        docs = (
            self._client.collection(collection)
            .where(filter=FieldFilter(field, "==", value))
            .select([field])
            .get()
        )
        return [doc.id for doc in docs]

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return a document's data, or None if it does not exist."""
        snapshot = self._client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def field_values(self, collection: str, field: str) -> set[Any]:
        """Return the set of values of ``field`` across a collection (projection query)."""
        docs = self._client.collection(collection).select([field]).get()
        values = set()
        for doc in docs:
            value = (doc.to_dict() or {}).get(field)
            if value is not None:
                values.add(value)
        return values

    # -- Writes ---------------------------------------------------------------

    def new_id(self, collection: str) -> str:
        """Generate a fresh document id without writing anything."""
        return self._client.collection(collection).document().id

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        self._client.collection(collection).document(doc_id).set(data, merge=merge)

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._client.collection(collection).document(doc_id).update(data)

    def delete(self, collection: str, doc_id: str) -> None:
        self._client.collection(collection).document(doc_id).delete()

    def commit_batch(self, writes: Iterable[Write], *, merge: bool = False) -> int:
        """Commit ``writes`` as one atomic batch.

        Raises:
            ValueError: If the batch would exceed the Firestore write limit.

        Returns:
            Number of writes committed.
        """
        writes = list(writes)
        if len(writes) > MAX_BATCH_SIZE:
            raise ValueError(
                f"Batch of {len(writes)} writes exceeds the limit of {MAX_BATCH_SIZE}"
            )
        batch = self._client.batch()
        for collection, doc_id, data in writes:
            batch.set(
                self._client.collection(collection).document(doc_id), data, merge=merge
            )
        batch.commit()
        return len(writes)
