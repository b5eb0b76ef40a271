"""Tests for dry-run no-op services.

Verifies that the dry-run stand-ins forward reads to the real services and
log every write, while later reads in the same run still see skipped writes.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from community_migrator.exceptions import IdentityExistsError
from community_migrator.services.document_store import DocumentStore
from community_migrator.services.dry_run import (
    DryRunDocumentStore,
    DryRunIdentityProvider,
    DryRunRequest,
    DryRunStorageService,
)
from community_migrator.services.identity import IdentityReconciler
from community_migrator.services.identity_provider import IdentityProvider
from community_migrator.services.storage_adapter import StorageAdapter


class TestDryRunStorageService:
    def test_execute_returns_data(self):
        assert DryRunRequest({"name": "x"}).execute() == {"name": "x"}

    def test_adapter_upload_and_make_public_are_noops(self):
        adapter = StorageAdapter(DryRunStorageService())

        uploaded = adapter.upload("bkt", "a/b.png", b"bytes", "image/png")
        acl = adapter.make_public("bkt", "a/b.png")

        assert uploaded == {"bucket": "bkt", "name": "a/b.png"}
        assert acl == {"entity": "allUsers", "role": "READER"}


class TestDryRunDocumentStore:
    def test_reads_are_forwarded(self):
        wrapped = MagicMock(spec=DocumentStore)
        wrapped.find_one.return_value = ("id1", {"email": "a@b.test"})
        wrapped.field_values.return_value = {"gardeners"}
        store = DryRunDocumentStore(wrapped)

        assert store.find_one("users", "email", "a@b.test") == ("id1", {"email": "a@b.test"})
        assert store.field_values("communities", "handle") == {"gardeners"}

    def test_writes_are_skipped(self):
        wrapped = MagicMock(spec=DocumentStore)
        wrapped.get.return_value = None
        store = DryRunDocumentStore(wrapped)

        store.set("users", "u1", {"a": 1})
        store.update("users", "u1", {"a": 2})
        store.delete("users", "u1")
        committed = store.commit_batch([("c", "1", {}), ("c", "2", {})])

        assert committed == 2
        wrapped.set.assert_not_called()
        wrapped.update.assert_not_called()
        wrapped.delete.assert_not_called()
        wrapped.commit_batch.assert_not_called()

    def test_skipped_writes_are_visible_to_later_reads(self):
        wrapped = MagicMock(spec=DocumentStore)
        wrapped.find_one.return_value = None
        wrapped.get.return_value = None
        store = DryRunDocumentStore(wrapped)

        store.set("users", "u1", {"email": "a@b.test"})
        store.update("users", "u1", {"mongoId": "a1"})

        assert store.find_one("users", "email", "a@b.test") == (
            "u1",
            {"email": "a@b.test", "mongoId": "a1"},
        )
        assert store.get("users", "u1")["mongoId"] == "a1"

    def test_deleted_document_is_hidden(self):
        wrapped = MagicMock(spec=DocumentStore)
        wrapped.find_one.return_value = ("u1", {"email": "a@b.test"})
        wrapped.find_ids.return_value = ["u1", "u2"]
        store = DryRunDocumentStore(wrapped)

        store.delete("users", "u1")

        assert store.find_one("users", "email", "a@b.test") is None
        assert store.get("users", "u1") is None
        assert store.find_ids("users", "email", "a@b.test") == ["u2"]

    def test_batched_writes_are_remembered(self):
        wrapped = MagicMock(spec=DocumentStore)
        wrapped.find_ids.return_value = []
        store = DryRunDocumentStore(wrapped)

        store.commit_batch([("links", "c_u1", {"communityId": "c"})])

        assert store.find_ids("links", "communityId", "c") == ["c_u1"]

    def test_new_ids_are_unique_placeholders(self):
        store = DryRunDocumentStore(MagicMock(spec=DocumentStore))
        assert store.new_id("communities") == "dry-run-communities-1"
        assert store.new_id("communities") == "dry-run-communities-2"


class TestDryRunIdentityProvider:
    def test_lookup_forwarded_and_creation_skipped(self):
        wrapped = MagicMock(spec=IdentityProvider)
        wrapped.get_uid_by_email.return_value = "real-uid"
        provider = DryRunIdentityProvider(wrapped)

        assert provider.get_uid_by_email("a@b.test") == "real-uid"
        assert provider.create_account("new@b.test", "pw") == "dry-run-uid-1"
        wrapped.create_account.assert_not_called()

    def test_created_email_resolves_to_placeholder(self):
        wrapped = MagicMock(spec=IdentityProvider)
        wrapped.get_uid_by_email.return_value = None
        provider = DryRunIdentityProvider(wrapped)

        uid = provider.create_account("new@b.test", "pw")

        assert provider.get_uid_by_email("New@b.test") == uid
        with pytest.raises(IdentityExistsError):
            provider.create_account("new@b.test", "pw")


class TestDryRunReconciliation:
    def test_shared_email_counts_one_new_identity(
        self, store, provider, disabled_media, make_member
    ):
        reconciler = IdentityReconciler(
            store=DryRunDocumentStore(store),
            provider=DryRunIdentityProvider(provider),
            media=disabled_media,
        )

        first = reconciler.reconcile(make_member("a1", email="same@mail.test"))
        second = reconciler.reconcile(make_member("b2", email="same@mail.test"))

        assert first.created is True
        assert second.created is False
        assert second.uid == first.uid
        assert second.conflict is not None
        assert provider.accounts == {}
        assert store.docs("users") == {}
