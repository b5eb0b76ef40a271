"""
Community export for the community migration tool.

Reads one community and all of its members from the MongoDB source store,
enriches each member from the source Firebase project's ``users`` documents,
attaches each member's direct-message history and returns an ExportBundle.
Export is read-only and may be repeated freely.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from tqdm import tqdm

from community_migrator.constants import (
    DEFAULT_MESSAGE_LIMIT,
    EXTERNAL_ID_FIELD,
    USERS_COLLECTION,
)
from community_migrator.core.bundle import ExportBundle, to_plain
from community_migrator.exceptions import CommunityNotFoundError
from community_migrator.services.document_store import DocumentStore
from community_migrator.services.source_store import SourceStore
from community_migrator.types import EnrichedMember
from community_migrator.utils.logging import log_with_context

# secondary-store field -> source-store field, secondary values win
ENRICHED_FIELDS = {
    "email": "email",
    "displayName": "fullName",
    "firstName": "firstName",
    "lastName": "lastName",
    "avatarUrl": "profileImage",
    "coverUrl": "coverUrl",
    "bio": "bio",
    "phone": "phoneNumber",
}


def member_ids_for(community: dict[str, Any]) -> list[str]:
    """Ids of every member of a community, owner included, without duplicates."""
    ids: list[str] = []
    for entry in community.get("usersList") or []:
        user_id = entry.get("userId") if isinstance(entry, dict) else entry
        if user_id is not None and str(user_id) not in ids:
            ids.append(str(user_id))

    owner = community.get("owner")
    if owner is not None and str(owner) not in ids:
        ids.append(str(owner))
    return ids


class CommunityExporter:
    """Builds export bundles from the source stores."""

    def __init__(
        self,
        *,
        source: SourceStore,
        identity_store: Optional[DocumentStore] = None,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
        max_workers: int = 4,
        show_progress: bool = True,
    ) -> None:
        """Initialize with explicit dependencies.

        Args:
            source: MongoDB source store.
            identity_store: Firestore of the source Firebase project used for
                enrichment; None skips enrichment.
            message_limit: Most recent messages exported per member.
            max_workers: Size of the per-member worker pool.
            show_progress: Display a tqdm progress bar.
        """
        self.source = source
        self.identity_store = identity_store
        self.message_limit = message_limit
        self.max_workers = max_workers
        self.show_progress = show_progress

    def export_community(
        self, community_id: str, search: str = ""
    ) -> ExportBundle:
        """Export a community aggregate.

        Args:
            community_id: Source id of the community.
            search: Optional case-insensitive filter on message text.

        Returns:
            The assembled ExportBundle.

        Raises:
            CommunityNotFoundError: If the community does not exist.
        """
        community = self.source.get_community(community_id)
        if community is None:
            raise CommunityNotFoundError(f"Community {community_id} not found")

        member_ids = member_ids_for(community)
        users = self.source.get_users(member_ids)
        # Keep the community's member order; $in returns storage order
        by_id = {str(u["_id"]): u for u in users}
        ordered = [by_id[i] for i in member_ids if i in by_id]

        missing = len(member_ids) - len(ordered)
        if missing:
            log_with_context(
                logging.WARNING,
                f"{missing} member(s) of community {community_id} have no user document",
                community_id=community_id,
            )

        log_with_context(
            logging.INFO,
            f"Exporting community '{community.get('name')}' with {len(ordered)} members",
            community_id=community_id,
        )

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            results = executor.map(
                lambda user: self._export_member(community["_id"], user, search),
                ordered,
            )
            members = list(
                tqdm(
                    results,
                    total=len(ordered),
                    desc=f"Exporting members of {community.get('name', community_id)}",
                    disable=not self.show_progress,
                )
            )

        return ExportBundle(community=to_plain(community), members=tuple(members))

    def _export_member(
        self, community_oid: Any, user: dict[str, Any], search: str
    ) -> EnrichedMember:
        member = self.enrich(user)
        member_id = str(user["_id"])

        channel = self.source.find_channel(str(community_oid), member_id)
        if channel is None:
            messages = []
        else:
            messages = self.source.recent_messages(
                channel["_id"], limit=self.message_limit, search=search
            )

        member = to_plain(member)
        member["messages"] = messages
        return member

    def enrich(self, user: dict[str, Any]) -> dict[str, Any]:
        """Merge the secondary-store record of a user over its source fields.

        Failures are logged and the user is returned with source fields only.
        """
        if self.identity_store is None:
            return dict(user)

        source_id = str(user["_id"])
        try:
            found = self.identity_store.find_one(
                USERS_COLLECTION, EXTERNAL_ID_FIELD, source_id
            )
        except Exception as e:
            log_with_context(
                logging.ERROR,
                f"Error fetching enrichment data for member {source_id}: {e}",
                member_id=source_id,
                error=str(e),
            )
            return dict(user)

        if found is None:
            log_with_context(
                logging.DEBUG,
                f"No enrichment record for member {source_id}, using source data only",
                member_id=source_id,
            )
            return dict(user)

        doc_id, data = found
        enriched = dict(user)
        for secondary_field, source_field in ENRICHED_FIELDS.items():
            value = data.get(secondary_field)
            if value:
                enriched[source_field] = value
        enriched["bio"] = enriched.get("bio") or ""
        enriched["firebaseUid"] = doc_id
        log_with_context(
            logging.DEBUG,
            f"Enriched member {source_id} from secondary store",
            member_id=source_id,
        )
        return enriched
