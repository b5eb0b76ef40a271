"""Unit test configuration and shared fixtures."""

from __future__ import annotations

import itertools
import threading
from typing import Any, Iterable
from unittest.mock import MagicMock

import pytest

from community_migrator.constants import MAX_BATCH_SIZE
from community_migrator.core.bundle import ExportBundle
from community_migrator.core.config import ImportOwnerConfig
from community_migrator.exceptions import IdentityExistsError
from community_migrator.services.document_store import DocumentStore, Write
from community_migrator.services.identity import IdentityReconciler
from community_migrator.services.identity_provider import IdentityProvider
from community_migrator.services.media import MediaMigrator
from community_migrator.services.storage_adapter import StorageAdapter

# ---------------------------------------------------------------------------
# In-memory fakes for the target project
# ---------------------------------------------------------------------------


class FakeDocumentStore(DocumentStore):
    """Dict-backed DocumentStore that records every batch it commits."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.batches: list[list[Write]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def docs(self, collection: str) -> dict[str, dict[str, Any]]:
        return self.collections.setdefault(collection, {})

    def find_one(self, collection: str, field: str, value: Any):
        with self._lock:
            for doc_id, data in self.docs(collection).items():
                if data.get(field) == value:
                    return doc_id, dict(data)
        return None

    def find_ids(self, collection: str, field: str, value: Any) -> list[str]:
        with self._lock:
            return [
                doc_id
                for doc_id, data in self.docs(collection).items()
                if data.get(field) == value
            ]

    def get(self, collection: str, doc_id: str):
        data = self.docs(collection).get(doc_id)
        return dict(data) if data is not None else None

    def field_values(self, collection: str, field: str) -> set[Any]:
        return {
            d[field] for d in self.docs(collection).values() if d.get(field) is not None
        }

    def new_id(self, collection: str) -> str:
        return f"{collection}-{next(self._ids)}"

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        with self._lock:
            docs = self.docs(collection)
            if merge and doc_id in docs:
                docs[doc_id].update(data)
            else:
                docs[doc_id] = dict(data)

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        with self._lock:
            self.docs(collection)[doc_id].update(data)

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self.docs(collection).pop(doc_id, None)

    def commit_batch(self, writes: Iterable[Write], *, merge: bool = False) -> int:
        writes = list(writes)
        if len(writes) > MAX_BATCH_SIZE:
            raise ValueError("batch too large")
        self.batches.append(writes)
        for collection, doc_id, data in writes:
            self.set(collection, doc_id, data, merge=merge)
        return len(writes)


class FakeIdentityProvider(IdentityProvider):
    """Authentication fake keyed by email."""

    def __init__(self) -> None:
        self.accounts: dict[str, str] = {}
        self.created: list[dict[str, Any]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def get_uid_by_email(self, email: str) -> str | None:
        return self.accounts.get(email)

    def create_account(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> str:
        with self._lock:
            if email in self.accounts:
                raise IdentityExistsError(email)
            uid = f"uid-{next(self._ids)}"
            self.accounts[email] = uid
            self.created.append(
                {
                    "email": email,
                    "password": password,
                    "display_name": display_name,
                    "photo_url": photo_url,
                }
            )
        return uid


@pytest.fixture()
def store():
    return FakeDocumentStore()


@pytest.fixture()
def provider():
    return FakeIdentityProvider()


@pytest.fixture()
def disabled_media():
    """MediaMigrator without storage: every URL is kept as-is."""
    return MediaMigrator(None, None, None)


@pytest.fixture()
def reconciler(store, provider, disabled_media):
    return IdentityReconciler(
        store=store,
        provider=provider,
        media=disabled_media,
        password_factory=lambda: "secret-password",
    )


@pytest.fixture()
def import_owner():
    return ImportOwnerConfig(email="importer@example.com", display_name="Importer")


# ---------------------------------------------------------------------------
# Storage mocks
# ---------------------------------------------------------------------------


@pytest.fixture()
def source_storage():
    """MagicMock StorageAdapter for the source bucket holding one PNG object."""
    storage = MagicMock(spec=StorageAdapter)
    storage.get_object.return_value = {"contentType": "image/png", "size": "3"}
    storage.download.return_value = b"img"
    return storage


@pytest.fixture()
def target_storage():
    storage = MagicMock(spec=StorageAdapter)
    storage.public_url.side_effect = StorageAdapter.public_url
    return storage


# ---------------------------------------------------------------------------
# Data builders
# ---------------------------------------------------------------------------

SOURCE_BUCKET = "legacy-app.appspot.com"
TARGET_BUCKET = "new-app.appspot.com"


def download_url(path: str, bucket: str = SOURCE_BUCKET) -> str:
    """Build a Firebase Storage download URL for ``path``."""
    encoded = path.replace("/", "%2F")
    return (
        f"https://firebasestorage.googleapis.com/v0/b/{bucket}/o/{encoded}"
        "?alt=media&token=abc"
    )


def make_member(member_id: str, email: str | None = None, **overrides: Any) -> dict:
    """Build an enriched bundle member."""
    member: dict[str, Any] = {
        "_id": member_id,
        "email": email if email is not None else f"{member_id}@mail.test",
        "fullName": f"User {member_id}",
        "firstName": "User",
        "lastName": member_id,
        "profileImage": "",
        "phoneNumber": "",
        "bio": "",
        "createdAt": "2021-03-01T10:00:00+00:00",
        "messages": [],
    }
    member.update(overrides)
    return member


def make_bundle(
    members: list[dict[str, Any]] | None = None, **community_overrides: Any
) -> ExportBundle:
    """Build an ExportBundle; defaults to two members, the first being the owner."""
    if members is None:
        members = [make_member("a1"), make_member("b2")]
    community: dict[str, Any] = {
        "_id": "c100",
        "name": "Gardeners",
        "slug": "gardeners",
        "tagline": "Grow things",
        "owner": members[0]["_id"] if members else "a1",
        "usersList": [m["_id"] for m in members],
        "tags": ["garden"],
        "communityProfileImage": "",
        "communityBackgroundImage": "",
        "createdAt": "2020-01-01T00:00:00+00:00",
    }
    community.update(community_overrides)
    return ExportBundle(community=community, members=tuple(members))


@pytest.fixture(name="make_member")
def make_member_fixture():
    """Factory fixture for bundle members: ``make_member("a1", email=...)``."""
    return make_member


@pytest.fixture(name="make_bundle")
def make_bundle_fixture():
    """Factory fixture for export bundles: ``make_bundle([members], **community)``."""
    return make_bundle


@pytest.fixture(name="download_url")
def download_url_fixture():
    """Factory fixture for Firebase Storage download URLs in the source bucket."""
    return download_url
