"""Read-only access to the legacy MongoDB source store.

All methods return raw pymongo documents (ObjectId and datetime values
intact); conversion to plain JSON values happens when a bundle is built.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from bson import ObjectId, json_util
from bson.errors import InvalidId

from community_migrator.constants import (
    DEFAULT_MESSAGE_LIMIT,
    DEFAULT_SENDER_AVATAR,
    ROLE_ADMIN,
    ROLE_MEMBER,
    ROLE_OWNER,
    SOURCE_CHANNELS,
    SOURCE_COMMUNITIES,
    SOURCE_MESSAGES,
    SOURCE_USERS,
)
from community_migrator.core.bundle import to_plain
from community_migrator.types import CommunityMember, Message


def to_object_id(value: Any) -> ObjectId | None:
    """Coerce a string or ObjectId into an ObjectId, None if it is not one."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def _search_regex(text: str) -> dict[str, str]:
    return {"$regex": re.escape(text), "$options": "i"}


def display_name(user: dict[str, Any]) -> str:
    """Display name of a source user, falling back from displayName to fullName."""
    return user.get("displayName") or user.get("fullName") or ""


class SourceStore:
    """Queries against the source ``communities``/``users``/``channels``/``messages``."""

    def __init__(self, db: Any) -> None:
        self._db = db

    def get_community(self, community_id: str) -> dict[str, Any] | None:
        oid = to_object_id(community_id)
        if oid is None:
            return None
        return self._db[SOURCE_COMMUNITIES].find_one({"_id": oid})

    def list_communities(self, search: str = "") -> list[dict[str, Any]]:
        query = {"name": _search_regex(search)} if search else {}
        return list(self._db[SOURCE_COMMUNITIES].find(query))

    def get_users(self, user_ids: Iterable[str]) -> list[dict[str, Any]]:
        """Batch-load users by id; unknown or malformed ids are skipped."""
        oids = [oid for oid in (to_object_id(u) for u in user_ids) if oid is not None]
        if not oids:
            return []
        return list(self._db[SOURCE_USERS].find({"_id": {"$in": oids}}))

    def get_members(self, community_id: str, search: str = "") -> list[CommunityMember]:
        """Members of a community with their role, optionally filtered by name or email.

        Roles come from the community itself: ``owner`` for its owner, ``admin``
        for users holding an admin handle, ``member`` for everyone else.
        """
        community = self.get_community(community_id)
        if community is None:
            return []

        oids = [
            oid
            for oid in (
                to_object_id(entry.get("userId") if isinstance(entry, dict) else entry)
                for entry in community.get("usersList") or []
            )
            if oid is not None
        ]
        query: dict[str, Any] = {"_id": {"$in": oids}}
        if search:
            regex = _search_regex(search)
            query["$or"] = [
                {"firstName": regex},
                {"lastName": regex},
                {"fullName": regex},
                {"email": regex},
            ]

        owner = str(community.get("owner"))
        admins = {
            str(handle.get("userId"))
            for handle in community.get("communityHandles") or []
            if handle.get("role") == ROLE_ADMIN
        }

        members: list[CommunityMember] = []
        for user in self._db[SOURCE_USERS].find(query):
            user_id = str(user["_id"])
            if user_id == owner:
                role = ROLE_OWNER
            elif user_id in admins:
                role = ROLE_ADMIN
            else:
                role = ROLE_MEMBER
            members.append(
                {
                    "id": user_id,
                    "userId": user_id,
                    "name": display_name(user),
                    "role": role,
                    "email": user.get("email") or "",
                    "photoURL": user.get("photoURL") or user.get("profileImage") or "",
                    "phoneNumber": user.get("phoneNumber") or "",
                }
            )
        return members

    def find_channel(self, community_id: str, user_id: str) -> dict[str, Any] | None:
        """The direct-message channel scoping ``user_id`` inside ``community_id``."""
        community_oid = to_object_id(community_id)
        user_oid = to_object_id(user_id)
        if community_oid is None or user_oid is None:
            return None
        return self._db[SOURCE_CHANNELS].find_one(
            {"community": community_oid, "user": user_oid}
        )

    def recent_messages(
        self,
        channel_id: Any,
        limit: int = DEFAULT_MESSAGE_LIMIT,
        search: str = "",
    ) -> list[Message]:
        """Most recent messages of a channel, newest first, with sender data joined."""
        match: dict[str, Any] = {"channel": channel_id}
        if search:
            match["text"] = _search_regex(search)

        pipeline = [
            {"$match": match},
            {"$sort": {"createdAt": -1}},
            {"$limit": limit},
            {
                "$lookup": {
                    "from": SOURCE_USERS,
                    "localField": "user",
                    "foreignField": "_id",
                    "as": "senderInfo",
                }
            },
            {"$unwind": "$senderInfo"},
        ]

        messages: list[Message] = []
        for doc in self._db[SOURCE_MESSAGES].aggregate(pipeline):
            sender = doc["senderInfo"]
            messages.append(
                {
                    "id": str(doc["_id"]),
                    "text": doc.get("text", ""),
                    "createdAt": to_plain(doc.get("createdAt")) or "",
                    "sender": {
                        "id": str(sender["_id"]),
                        "name": display_name(sender),
                        "avatar": sender.get("photoURL")
                        or sender.get("profileImage")
                        or DEFAULT_SENDER_AVATAR,
                    },
                }
            )
        return messages

    def member_messages(
        self,
        community_id: str,
        user_id: str,
        search: str = "",
        limit: int = DEFAULT_MESSAGE_LIMIT,
    ) -> list[Message]:
        """Recent direct messages of one member, empty when they have no channel."""
        channel = self.find_channel(community_id, user_id)
        if channel is None:
            return []
        return self.recent_messages(channel["_id"], limit=limit, search=search)

    def get_raw_document(self, collection: str, doc_id: str) -> str | None:
        """Pretty-printed JSON of any document, None if it does not exist."""
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        document = self._db[collection].find_one({"_id": oid})
        if document is None:
            return None
        return json_util.dumps(
            document, json_options=json_util.RELAXED_JSON_OPTIONS, indent=2
        )
