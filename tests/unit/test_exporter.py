"""Unit tests for community export."""

from unittest.mock import MagicMock

import pytest

from community_migrator.core.exporter import CommunityExporter, member_ids_for
from community_migrator.exceptions import CommunityNotFoundError
from community_migrator.services.source_store import SourceStore


@pytest.fixture()
def source(raw_community, raw_users):
    source = MagicMock(spec=SourceStore)
    source.get_community.return_value = raw_community
    source.get_users.return_value = raw_users
    source.find_channel.return_value = None
    return source


@pytest.fixture()
def exporter(source):
    return CommunityExporter(source=source, show_progress=False)


class TestMemberIds:
    def test_owner_appended_after_members(self, raw_community):
        assert member_ids_for(raw_community) == [
            "64a000000000000000000002",
            "64a000000000000000000001",
        ]

    def test_owner_listed_as_member_not_duplicated(self):
        community = {"usersList": ["u1", {"userId": "u2"}, "u1"], "owner": "u2"}
        assert member_ids_for(community) == ["u1", "u2"]

    def test_no_members(self):
        assert member_ids_for({}) == []


class TestExportCommunity:
    def test_bundle_includes_owner_in_member_order(self, exporter):
        bundle = exporter.export_community("64b000000000000000000001")

        assert bundle.community_id == "64b000000000000000000001"
        assert [m["_id"] for m in bundle.members] == [
            "64a000000000000000000002",
            "64a000000000000000000001",
        ]

    def test_bundle_is_plain_json(self, exporter):
        bundle = exporter.export_community("64b000000000000000000001")

        assert bundle.community["owner"] == "64a000000000000000000001"
        assert bundle.community["createdAt"] == "2020-05-01T12:00:00+00:00"
        assert bundle.members[0]["createdAt"] == "2021-01-02T00:00:00+00:00"

    def test_unknown_community_raises(self, exporter, source):
        source.get_community.return_value = None
        with pytest.raises(CommunityNotFoundError):
            exporter.export_community("64b0000000000000000000ff")

    def test_member_without_channel_has_no_messages(self, exporter):
        bundle = exporter.export_community("64b000000000000000000001")
        assert all(m["messages"] == [] for m in bundle.members)

    def test_messages_attached_from_channel(self, source, raw_channel):
        message = {"id": "m1", "text": "hi", "createdAt": "", "sender": {}}
        source.find_channel.side_effect = (
            lambda community_id, user_id: raw_channel
            if user_id == "64a000000000000000000001"
            else None
        )
        source.recent_messages.return_value = [message]
        exporter = CommunityExporter(source=source, message_limit=5, show_progress=False)

        bundle = exporter.export_community("64b000000000000000000001", search="hi")

        owner = bundle.members[1]
        assert owner["messages"] == [message]
        source.recent_messages.assert_called_once_with(
            raw_channel["_id"], limit=5, search="hi"
        )

    def test_missing_user_documents_skipped(self, exporter, source, raw_users):
        source.get_users.return_value = raw_users[:1]
        bundle = exporter.export_community("64b000000000000000000001")
        assert bundle.member_count == 1


class TestEnrich:
    def test_secondary_values_win(self, source):
        identity_store = MagicMock()
        identity_store.find_one.return_value = (
            "fb-uid",
            {"displayName": "Mia M.", "avatarUrl": "https://img/x.png", "phone": ""},
        )
        exporter = CommunityExporter(
            source=source, identity_store=identity_store, show_progress=False
        )

        enriched = exporter.enrich({"_id": "u1", "fullName": "Mia", "phoneNumber": "123"})

        assert enriched["fullName"] == "Mia M."
        assert enriched["profileImage"] == "https://img/x.png"
        # Empty secondary values do not override the source
        assert enriched["phoneNumber"] == "123"
        assert enriched["firebaseUid"] == "fb-uid"
        assert enriched["bio"] == ""

    def test_failure_falls_back_to_source_fields(self, source):
        identity_store = MagicMock()
        identity_store.find_one.side_effect = RuntimeError("permission denied")
        exporter = CommunityExporter(
            source=source, identity_store=identity_store, show_progress=False
        )

        user = {"_id": "u1", "fullName": "Mia"}
        assert exporter.enrich(user) == user

    def test_no_record_returns_source_fields(self, source):
        identity_store = MagicMock()
        identity_store.find_one.return_value = None
        exporter = CommunityExporter(
            source=source, identity_store=identity_store, show_progress=False
        )

        assert "firebaseUid" not in exporter.enrich({"_id": "u1"})
