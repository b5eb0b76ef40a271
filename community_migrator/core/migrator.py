"""
Main migrator class for the community migration tool

Builds the store, identity and storage services described by a
MigrationContext and exposes the operations the CLI drives: listing source
communities and their members, browsing a member's messages, exporting a
community to a bundle and importing a bundle.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Optional

from community_migrator.constants import COMMUNITIES_COLLECTION
from community_migrator.core.bundle import ExportBundle
from community_migrator.core.context import MigrationContext
from community_migrator.core.exporter import CommunityExporter
from community_migrator.core.importer import CommunityImporter, ImportResult
from community_migrator.exceptions import CommunityNotFoundError, ConfigError
from community_migrator.services.document_store import DocumentStore
from community_migrator.services.dry_run import (
    DryRunDocumentStore,
    DryRunIdentityProvider,
    DryRunStorageService,
)
from community_migrator.services.identity import IdentityReconciler
from community_migrator.services.identity_provider import IdentityProvider
from community_migrator.services.media import MediaMigrator
from community_migrator.services.source_store import SourceStore
from community_migrator.services.storage_adapter import StorageAdapter
from community_migrator.types import CommunityMember, Message
from community_migrator.utils.api import (
    get_firebase_app,
    get_firestore_client,
    get_mongo_database,
    get_storage_service,
)
from community_migrator.utils.logging import log_with_context

SOURCE_APP_NAME = "community-migrator-source"
TARGET_APP_NAME = "community-migrator-target"


class CommunityMigrator:
    """Wires the migration services for one run and exposes its operations."""

    def __init__(self, context: MigrationContext) -> None:
        self.context = context
        self.config = context.config

    # -- Services (built on first use) ----------------------------------------

    @functools.cached_property
    def source_store(self) -> SourceStore:
        if not self.config.source.database:
            raise ConfigError("source.database must be set")
        return SourceStore(
            get_mongo_database(self.config.source.mongo_uri, self.config.source.database)
        )

    @functools.cached_property
    def _source_app(self) -> Optional[Any]:
        creds = self.config.source.firebase_creds_path
        if not creds:
            return None
        return get_firebase_app(creds, SOURCE_APP_NAME)

    @functools.cached_property
    def _target_app(self) -> Any:
        creds = self.config.target.firebase_creds_path
        if not creds:
            raise ConfigError("target.firebase_creds_path must be set")
        return get_firebase_app(
            creds, TARGET_APP_NAME, storage_bucket=self.config.target.storage_bucket
        )

    @functools.cached_property
    def identity_store(self) -> Optional[DocumentStore]:
        """Source project's Firestore, used to enrich members on export."""
        if self._source_app is None:
            log_with_context(
                logging.WARNING,
                "source.firebase_creds_path not set, members will not be enriched",
            )
            return None
        return DocumentStore(get_firestore_client(self._source_app))

    @functools.cached_property
    def target_store(self) -> DocumentStore:
        store = DocumentStore(get_firestore_client(self._target_app))
        if self.context.dry_run:
            return DryRunDocumentStore(store)
        return store

    @functools.cached_property
    def identity_provider(self) -> IdentityProvider:
        provider = IdentityProvider(self._target_app)
        if self.context.dry_run:
            return DryRunIdentityProvider(provider)
        return provider

    @functools.cached_property
    def media(self) -> MediaMigrator:
        source_creds = self.config.source.firebase_creds_path
        target_creds = self.config.target.firebase_creds_path
        bucket = self.config.target.storage_bucket
        if not (source_creds and target_creds and bucket):
            log_with_context(
                logging.WARNING,
                "Storage not fully configured, media URLs will be kept as they are",
            )
            return MediaMigrator(None, None, None)

        retry_config = self.config.retry_config
        source_storage = StorageAdapter(get_storage_service(source_creds, retry_config))
        if self.context.dry_run:
            target_storage = StorageAdapter(DryRunStorageService())
        else:
            target_storage = StorageAdapter(
                get_storage_service(target_creds, retry_config)
            )
        return MediaMigrator(source_storage, target_storage, bucket)

    @functools.cached_property
    def exporter(self) -> CommunityExporter:
        return CommunityExporter(
            source=self.source_store,
            identity_store=self.identity_store,
            message_limit=self.config.message_limit,
            max_workers=self.config.max_workers,
        )

    @functools.cached_property
    def importer(self) -> CommunityImporter:
        reconciler = IdentityReconciler(
            store=self.target_store,
            provider=self.identity_provider,
            media=self.media,
            email_conflict_policy=self.config.email_conflict_policy,
        )
        return CommunityImporter(
            store=self.target_store,
            reconciler=reconciler,
            media=self.media,
            import_owner=self.config.import_owner,
            batch_size=self.config.batch_size,
            max_workers=self.config.max_workers,
            reimport_policy=self.config.reimport_policy,
            rollback_on_failure=self.config.rollback_on_failure,
        )

    # -- Operations -----------------------------------------------------------

    def list_communities(self, search: str = "") -> list[dict[str, Any]]:
        """Source communities with an ``is_exported`` flag from the target store."""
        communities = self.source_store.list_communities(search)
        exported_handles = self.target_store.field_values(
            COMMUNITIES_COLLECTION, "handle"
        )

        return [
            {
                "id": str(c["_id"]),
                "name": c.get("name", ""),
                "member_count": c.get("memberCount") or len(c.get("usersList") or []),
                "profile_image": c.get("communityProfileImage") or "",
                "owner": str(c["owner"]) if c.get("owner") is not None else "Unknown",
                "is_exported": c.get("slug") in exported_handles,
            }
            for c in communities
        ]

    def list_members(self, community_id: str, search: str = "") -> list[CommunityMember]:
        """Members of a source community with their roles."""
        if self.source_store.get_community(community_id) is None:
            raise CommunityNotFoundError(f"Community {community_id} not found")
        return self.source_store.get_members(community_id, search)

    def member_messages(
        self, community_id: str, member_id: str, search: str = ""
    ) -> list[Message]:
        return self.source_store.member_messages(
            community_id, member_id, search=search, limit=self.config.message_limit
        )

    def export_community(self, community_id: str, search: str = "") -> ExportBundle:
        return self.exporter.export_community(community_id, search=search)

    def import_bundle(self, bundle: ExportBundle) -> ImportResult:
        log_with_context(
            logging.INFO,
            f"{self.context.log_prefix}Importing community {bundle.community_id}",
            community_id=bundle.community_id,
        )
        return self.importer.import_community(bundle)
