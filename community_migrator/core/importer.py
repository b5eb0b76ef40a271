"""
Community import for the community migration tool.

Consumes an ExportBundle and writes it into the target Firebase project:

1. reconcile the configured import owner;
2. reconcile every member on a bounded worker pool;
3. create (or, per the re-import policy, update) the community document with
   migrated images, owned by the import owner;
4. write one member link per identity in batches of at most ``batch_size``.

``import_community`` never raises.  Any failure aborts the run and is
reported as an unsuccessful ImportResult; documents already written stay in
place unless ``rollback_on_failure`` is enabled.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from tqdm import tqdm

from community_migrator.constants import (
    COMMUNITIES_COLLECTION,
    MAX_BATCH_SIZE,
    MEMBERS_COLLECTION,
    ROLE_MEMBER,
    ROLE_OWNER,
    SOURCE_COMMUNITY_FIELD,
    STATUS_ACTIVE,
)
from community_migrator.core.bundle import ExportBundle, parse_timestamp
from community_migrator.core.config import ImportOwnerConfig, ReimportPolicy
from community_migrator.core.state import ImportState, MemberOutcome
from community_migrator.exceptions import ImportFailedError
from community_migrator.services.document_store import DocumentStore, Write
from community_migrator.services.identity import IdentityReconciler, ImportOwner
from community_migrator.services.media import MediaMigrator
from community_migrator.types import ImportResultDict, MemberLink
from community_migrator.utils.batching import chunked
from community_migrator.utils.logging import log_with_context

# Fields copied verbatim from the source community
COPIED_COMMUNITY_FIELDS = (
    "name",
    "tagline",
    "lore",
    "mantras",
    "communityPrivacy",
    "location",
    "colorPalette",
)


@dataclass
class ImportResult:
    """Outcome of one import run."""

    success: bool
    message: str
    community_id: Optional[str] = None
    state: ImportState = field(default_factory=ImportState)

    def to_dict(self) -> ImportResultDict:
        """The ``{success, message, communityId?}`` contract surfaced to callers."""
        result: ImportResultDict = {"success": self.success, "message": self.message}
        if self.community_id is not None:
            result["communityId"] = self.community_id
        return result


def member_link_id(community_id: str, uid: str) -> str:
    return f"{community_id}_{uid}"


class CommunityImporter:
    """Imports export bundles into the target store."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        reconciler: IdentityReconciler,
        media: MediaMigrator,
        import_owner: ImportOwnerConfig,
        batch_size: int = MAX_BATCH_SIZE,
        max_workers: int = 4,
        reimport_policy: ReimportPolicy = ReimportPolicy.CREATE,
        rollback_on_failure: bool = False,
        show_progress: bool = True,
    ) -> None:
        """Initialize with explicit dependencies.

        Args:
            store: Target Firestore.
            reconciler: Identity reconciler bound to the target project.
            media: Media migrator for community images.
            import_owner: Identity substituted as owner of imported communities.
            batch_size: Maximum member-link writes per batch commit.
            max_workers: Size of the per-member worker pool.
            reimport_policy: Behaviour when the community was imported before.
            rollback_on_failure: Delete documents written by a failed run.
            show_progress: Display a tqdm progress bar.
        """
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(
                f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}"
            )
        self.store = store
        self.reconciler = reconciler
        self.media = media
        self.import_owner = import_owner
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.reimport_policy = reimport_policy
        self.rollback_on_failure = rollback_on_failure
        self.show_progress = show_progress

    def import_community(self, bundle: ExportBundle) -> ImportResult:
        """Import a bundle into the target store.

        Args:
            bundle: The export bundle to import.

        Returns:
            ImportResult; ``success`` is False when any step failed.
        """
        state = ImportState()
        name = bundle.community.get("name", bundle.community_id)
        log_with_context(
            logging.INFO,
            f"Starting import for community '{name}' ({bundle.member_count} members)",
            community_id=bundle.community_id,
        )

        try:
            existing_id = self._find_existing(bundle)
            if existing_id is not None and self.reimport_policy is ReimportPolicy.SKIP:
                log_with_context(
                    logging.INFO,
                    f"Community '{name}' was already imported as {existing_id}, skipping",
                    community_id=bundle.community_id,
                )
                return ImportResult(
                    True, f"Community already imported as {existing_id}", existing_id, state
                )

            owner = self.reconciler.ensure_import_owner(self.import_owner)

            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                images = executor.submit(self._migrate_community_images, bundle.community)
                self._reconcile_members(executor, bundle, state)
                profile_image, background_image = images.result()

            failed = state.failed_outcomes
            if failed:
                first = failed[0]
                raise ImportFailedError(
                    f"{len(failed)} of {bundle.member_count} members could not be "
                    f"reconciled (first: {first.source_id}: {first.error})"
                )

            update = existing_id is not None
            community_id = existing_id or self.store.new_id(COMMUNITIES_COLLECTION)
            self._write_community(
                community_id,
                bundle,
                owner,
                profile_image,
                background_image,
                state,
                update=update,
            )
            self._write_member_links(community_id, bundle, owner, state, update=update)
        except Exception as e:
            log_with_context(
                logging.ERROR,
                f"Import failed for community '{name}': {e}",
                community_id=bundle.community_id,
                exc_info=True,
            )
            if self.rollback_on_failure:
                self._rollback(state)
            return ImportResult(False, str(e), state=state)

        log_with_context(
            logging.INFO,
            f"Import successful for community '{name}' -> {community_id}",
            community_id=bundle.community_id,
        )
        return ImportResult(
            True, "Community imported successfully!", community_id, state
        )

    # -- Steps ----------------------------------------------------------------

    def _find_existing(self, bundle: ExportBundle) -> Optional[str]:
        if self.reimport_policy is ReimportPolicy.CREATE:
            return None
        found = self.store.find_one(
            COMMUNITIES_COLLECTION, SOURCE_COMMUNITY_FIELD, bundle.community_id
        )
        return found[0] if found is not None else None

    def _migrate_community_images(
        self, community: dict[str, Any]
    ) -> tuple[Optional[str], Optional[str]]:
        return (
            self.media.migrate(community.get("communityProfileImage")),
            self.media.migrate(community.get("communityBackgroundImage")),
        )

    def _reconcile_member(self, member: dict[str, Any], state: ImportState) -> MemberOutcome:
        source_id = str(member["_id"])
        try:
            identity = self.reconciler.reconcile(member)
        except Exception as e:
            log_with_context(
                logging.ERROR,
                f"Failed to reconcile member {source_id}: {e}",
                member_id=source_id,
                error=str(e),
            )
            return MemberOutcome(source_id=source_id, error=str(e))

        if identity.conflict is not None:
            state.record_conflict(identity.conflict)
        return MemberOutcome(
            source_id=source_id,
            uid=identity.uid,
            created=identity.created,
            matched_by=identity.matched_by,
        )

    def _reconcile_members(
        self, executor: Executor, bundle: ExportBundle, state: ImportState
    ) -> None:
        futures = [
            executor.submit(self._reconcile_member, member, state)
            for member in bundle.members
        ]
        for future in tqdm(
            as_completed(futures),
            total=len(futures),
            desc="Reconciling members",
            disable=not self.show_progress,
        ):
            state.record_outcome(future.result())

        log_with_context(
            logging.INFO,
            f"Reconciled {len(state.identity_map)} of {bundle.member_count} members "
            f"({state.created_identities} new identities)",
            community_id=bundle.community_id,
        )

    def _write_community(
        self,
        community_id: str,
        bundle: ExportBundle,
        owner: ImportOwner,
        profile_image: Optional[str],
        background_image: Optional[str],
        state: ImportState,
        *,
        update: bool,
    ) -> None:
        source = bundle.community
        now = datetime.now(timezone.utc)

        data: dict[str, Any] = {
            field_name: source[field_name]
            for field_name in COPIED_COMMUNITY_FIELDS
            if source.get(field_name) is not None
        }
        data.update(
            {
                "handle": source.get("slug") or "",
                "ownerId": owner.uid,
                "communityProfileImage": profile_image or "",
                "communityBackgroundImage": background_image or "",
                "tags": source.get("tags") or [],
                "createdAt": parse_timestamp(source.get("createdAt")) or now,
                "memberCount": bundle.member_count,
                SOURCE_COMMUNITY_FIELD: bundle.community_id,
            }
        )

        if update:
            data["updatedAt"] = now
            self.store.set(COMMUNITIES_COLLECTION, community_id, data, merge=True)
        else:
            self.store.set(COMMUNITIES_COLLECTION, community_id, data)
            state.record_write(COMMUNITIES_COLLECTION, community_id)

        log_with_context(
            logging.INFO,
            f"{'Updated' if update else 'Created'} community document {community_id} "
            f"owned by {owner.email}",
            community_id=bundle.community_id,
        )

    def build_member_links(
        self,
        community_id: str,
        bundle: ExportBundle,
        owner: ImportOwner,
        identity_map: dict[str, str],
    ) -> list[Write]:
        """One owner link plus one link per distinct reconciled member identity."""
        now = datetime.now(timezone.utc)
        owner_link: MemberLink = {
            "userId": owner.uid,
            "communityId": community_id,
            "role": ROLE_OWNER,
            "status": STATUS_ACTIVE,
            "joinedAt": now,
            "userDetails": {
                "displayName": owner.display_name,
                "email": owner.email,
                "avatarUrl": "",
                "phone": "",
            },
        }
        links: list[Write] = [
            (MEMBERS_COLLECTION, member_link_id(community_id, owner.uid), owner_link)
        ]

        seen = {owner.uid}
        for member in bundle.members:
            uid = identity_map.get(str(member["_id"]))
            if uid is None:
                continue
            if uid in seen:
                log_with_context(
                    logging.DEBUG,
                    f"Identity {uid} already linked, skipping duplicate link",
                    member_id=str(member["_id"]),
                    uid=uid,
                )
                continue
            seen.add(uid)

            link: MemberLink = {
                "userId": uid,
                "communityId": community_id,
                "role": ROLE_MEMBER,
                "status": STATUS_ACTIVE,
                "joinedAt": parse_timestamp(member.get("createdAt")) or now,
                "userDetails": {
                    "displayName": member.get("fullName") or "",
                    "email": member.get("email") or "",
                    "avatarUrl": member.get("profileImage") or "",
                    "phone": member.get("phoneNumber") or "",
                },
            }
            links.append((MEMBERS_COLLECTION, member_link_id(community_id, uid), link))
        return links

    def _write_member_links(
        self,
        community_id: str,
        bundle: ExportBundle,
        owner: ImportOwner,
        state: ImportState,
        *,
        update: bool,
    ) -> None:
        links = self.build_member_links(community_id, bundle, owner, state.identity_map)

        for chunk in chunked(links, self.batch_size):
            self.store.commit_batch(chunk, merge=update)
            state.record_batch(len(chunk))
            if not update:
                for collection, doc_id, _ in chunk:
                    state.record_write(collection, doc_id)

        if update:
            self._remove_stale_links(
                community_id, {doc_id for _, doc_id, _ in links}, bundle
            )

        log_with_context(
            logging.INFO,
            f"Wrote {len(links)} member links in {len(state.link_batches)} batch(es)",
            community_id=bundle.community_id,
        )

    def _remove_stale_links(
        self, community_id: str, keep: set[str], bundle: ExportBundle
    ) -> None:
        """Delete links of an updated community whose members left the bundle."""
        stale = [
            doc_id
            for doc_id in self.store.find_ids(
                MEMBERS_COLLECTION, "communityId", community_id
            )
            if doc_id not in keep
        ]
        for doc_id in stale:
            self.store.delete(MEMBERS_COLLECTION, doc_id)
        if stale:
            log_with_context(
                logging.INFO,
                f"Removed {len(stale)} member link(s) no longer in the bundle",
                community_id=bundle.community_id,
            )

    def _rollback(self, state: ImportState) -> None:
        """Delete the documents this run wrote, newest first."""
        if not state.written_documents:
            return
        log_with_context(
            logging.WARNING,
            f"Rolling back {len(state.written_documents)} document(s) written by the failed import",
        )
        for collection, doc_id in reversed(state.written_documents):
            try:
                self.store.delete(collection, doc_id)
            except Exception as e:
                log_with_context(
                    logging.ERROR,
                    f"Failed to delete {collection}/{doc_id} during rollback: {e}",
                    error=str(e),
                )
