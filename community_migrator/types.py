"""Shared type definitions for the community migration tool.

Provides TypedDicts for the structured data flowing through the pipeline:
source store documents as they appear in an export bundle, the message shape
attached to each member, and the documents written to the target store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, TypedDict

# ---------------------------------------------------------------------------
# Source store types (as carried in an export bundle, ids as strings)
# ---------------------------------------------------------------------------


class MemberRef(TypedDict):
    """An entry of a community's ``usersList``."""

    userId: str


class SourceCommunity(TypedDict, total=False):
    """A community document from the source store."""

    _id: str
    name: str
    slug: str
    owner: str
    usersList: list[MemberRef]
    tags: list[str]
    tagline: str
    lore: str
    mantras: str
    location: str
    colorPalette: list[str]
    communityProfileImage: str
    communityBackgroundImage: str
    communityPrivacy: str
    memberCount: int
    createdAt: str


class MessageSender(TypedDict):
    """Sender display data joined onto an exported message."""

    id: str
    name: str
    avatar: str


class Message(TypedDict):
    """A direct message exported for one member of a community."""

    id: str
    text: str
    createdAt: str
    sender: MessageSender


class SourceUser(TypedDict, total=False):
    """A user document from the source store."""

    _id: str
    firstName: str
    lastName: str
    fullName: str
    displayName: str
    email: str
    phoneNumber: str
    profileImage: str
    coverUrl: str
    bio: str
    createdAt: str
    updatedAt: str


class EnrichedMember(SourceUser, total=False):
    """A source user merged with secondary-store data and its messages."""

    firebaseUid: str
    messages: list[Message]


class CommunityMember(TypedDict):
    """A source member as listed for browsing, with its role in the community."""

    id: str
    userId: str
    name: str
    role: str
    email: str
    photoURL: str
    phoneNumber: str


# ---------------------------------------------------------------------------
# Target store types
# ---------------------------------------------------------------------------


class UserDetails(TypedDict):
    """Denormalised display snapshot stored on a member link."""

    displayName: str
    email: str
    avatarUrl: str
    phone: str


class MemberLink(TypedDict):
    """A ``communityMembers`` document."""

    userId: str
    communityId: str
    role: str
    status: str
    joinedAt: datetime
    userDetails: UserDetails


class ImportResultDict(TypedDict, total=False):
    """The only structured output surfaced to callers of an import."""

    success: bool
    message: str
    communityId: str


Document = dict[str, Any]
