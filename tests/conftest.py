"""Shared test fixtures for the community_migrator test suite."""

from datetime import datetime, timezone

import pytest
from bson import ObjectId

COMMUNITY_OID = ObjectId("64b000000000000000000001")
OWNER_OID = ObjectId("64a000000000000000000001")
MEMBER_OID = ObjectId("64a000000000000000000002")
CHANNEL_OID = ObjectId("64c000000000000000000001")


@pytest.fixture()
def raw_community():
    """Return a community document as pymongo hands it back."""
    return {
        "_id": COMMUNITY_OID,
        "name": "Night Owls",
        "slug": "night-owls",
        "tagline": "We never sleep",
        "owner": OWNER_OID,
        "usersList": [{"userId": MEMBER_OID}],
        "tags": ["sleep", "coffee"],
        "communityProfileImage": "",
        "communityBackgroundImage": "",
        "createdAt": datetime(2020, 5, 1, 12, 0, tzinfo=timezone.utc),
    }


@pytest.fixture()
def raw_users():
    """Return the owner and member user documents of ``raw_community``."""
    return [
        {
            "_id": MEMBER_OID,
            "email": "member@mail.test",
            "fullName": "Mia Member",
            "profileImage": "",
            "createdAt": datetime(2021, 1, 2, tzinfo=timezone.utc),
        },
        {
            "_id": OWNER_OID,
            "email": "owner@mail.test",
            "fullName": "Olga Owner",
            "profileImage": "",
            "createdAt": datetime(2020, 4, 30, tzinfo=timezone.utc),
        },
    ]


@pytest.fixture()
def raw_channel():
    """Return a direct-message channel of the owner in ``raw_community``."""
    return {"_id": CHANNEL_OID, "community": COMMUNITY_OID, "user": OWNER_OID}


@pytest.fixture()
def config_dict():
    """Return a complete raw config dict."""
    return {
        "source": {
            "mongo_uri": "mongodb://db.internal:27017",
            "database": "legacy",
            "firebase_creds_path": "source.json",
        },
        "target": {
            "firebase_creds_path": "target.json",
            "storage_bucket": "new-app.appspot.com",
        },
        "import_owner": {"email": "owner@new.test", "display_name": "New Owner"},
        "batch_size": 100,
        "max_workers": 2,
        "message_limit": 20,
        "reimport_policy": "update",
        "email_conflict_policy": "fail",
        "rollback_on_failure": True,
        "max_retries": 5,
        "retry_delay": 1,
    }
