"""
Identity reconciliation for the community migration tool.

Maps each source user to exactly one identity in the target Firebase project.
Lookups always run before creation: first by the external id stamped on
target ``users`` documents, then by email, and only then is a new
Authentication account and profile document created.
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from community_migrator.constants import (
    EXTERNAL_ID_FIELD,
    FALLBACK_EMAIL_DOMAIN,
    USERS_COLLECTION,
)
from community_migrator.core.bundle import parse_timestamp
from community_migrator.core.config import EmailConflictPolicy, ImportOwnerConfig
from community_migrator.core.state import EmailConflict
from community_migrator.exceptions import (
    IdentityConflictError,
    IdentityExistsError,
    ImportFailedError,
)
from community_migrator.services.document_store import DocumentStore
from community_migrator.services.identity_provider import IdentityProvider
from community_migrator.services.media import MediaMigrator
from community_migrator.utils.logging import log_with_context

MATCHED_BY_EXTERNAL_ID = "external_id"
MATCHED_BY_EMAIL = "email"
MATCHED_BY_CREATED = "created"
MATCHED_BY_PROVIDER = "provider_email"


@dataclass(frozen=True)
class ReconciledIdentity:
    """The target identity a source user was mapped to."""

    uid: str
    created: bool
    matched_by: str
    conflict: Optional[EmailConflict] = None


@dataclass(frozen=True)
class ImportOwner:
    """The identity substituted as owner of every imported community."""

    uid: str
    email: str
    display_name: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _generate_password() -> str:
    return secrets.token_hex(16)


def member_email(user: dict[str, Any]) -> str:
    """Email used for a source user in the target, synthesised when absent."""
    email = (user.get("email") or "").strip()
    return email or f"{user['_id']}@{FALLBACK_EMAIL_DOMAIN}"


def member_display_name(user: dict[str, Any]) -> str:
    full_name = user.get("fullName") or user.get("displayName")
    if full_name:
        return full_name
    parts = [user.get("firstName"), user.get("lastName")]
    return " ".join(p for p in parts if p)


class IdentityReconciler:
    """Finds or creates the target identity for source users."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        provider: IdentityProvider,
        media: MediaMigrator,
        email_conflict_policy: EmailConflictPolicy = EmailConflictPolicy.MERGE,
        password_factory: Callable[[], str] = _generate_password,
    ) -> None:
        """Initialize with explicit dependencies.

        Args:
            store: Target Firestore holding ``users`` documents.
            provider: Target Firebase Authentication.
            media: Migrator for avatar and cover images of new identities.
            email_conflict_policy: Whether an email collision between two
                distinct source users is merged (and reported) or fails.
            password_factory: Generates the random credential of new accounts.
        """
        self.store = store
        self.provider = provider
        self.media = media
        self.email_conflict_policy = email_conflict_policy
        self.password_factory = password_factory
        self._email_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, email: str) -> threading.Lock:
        key = email.lower()
        with self._locks_guard:
            return self._email_locks.setdefault(key, threading.Lock())

    # -- Members --------------------------------------------------------------

    def reconcile(self, user: dict[str, Any]) -> ReconciledIdentity:
        """Map a source user to a target uid, creating the identity if needed.

        Args:
            user: Source user record from an export bundle.

        Returns:
            ReconciledIdentity describing how the uid was obtained.

        Raises:
            IdentityConflictError: Email collision under the ``fail`` policy.
            ImportFailedError: The account could neither be created nor found.
        """
        source_id = str(user["_id"])
        email = member_email(user)

        # Members sharing an email are serialised so concurrent workers
        # cannot both reach the creation step
        with self._lock_for(email):
            found = self.store.find_one(USERS_COLLECTION, EXTERNAL_ID_FIELD, source_id)
            if found is not None:
                uid = self._uid_of(found)
                log_with_context(
                    logging.DEBUG,
                    f"Found existing identity by external id: {uid}",
                    member_id=source_id,
                    uid=uid,
                )
                return ReconciledIdentity(uid, False, MATCHED_BY_EXTERNAL_ID)

            found = self.store.find_one(USERS_COLLECTION, "email", email)
            if found is not None:
                return self._adopt_by_email(found, source_id, email)

            return self._create_identity(user, source_id, email)

    @staticmethod
    def _uid_of(found: tuple[str, dict[str, Any]]) -> str:
        doc_id, data = found
        return data.get("userId") or doc_id

    def _adopt_by_email(
        self, found: tuple[str, dict[str, Any]], source_id: str, email: str
    ) -> ReconciledIdentity:
        doc_id, data = found
        uid = self._uid_of(found)
        existing_id = data.get(EXTERNAL_ID_FIELD)

        if existing_id and str(existing_id) != source_id:
            conflict = EmailConflict(
                email=email,
                uid=uid,
                existing_source_id=str(existing_id),
                incoming_source_id=source_id,
            )
            if self.email_conflict_policy is EmailConflictPolicy.FAIL:
                raise IdentityConflictError(
                    f"Source users {existing_id} and {source_id} share the email "
                    f"{email} (target identity {uid})"
                )
            log_with_context(
                logging.WARNING,
                f"Email {email} already belongs to source user {existing_id}; "
                f"merging {source_id} into identity {uid}",
                member_id=source_id,
                uid=uid,
            )
            return ReconciledIdentity(uid, False, MATCHED_BY_EMAIL, conflict)

        self.store.update(
            USERS_COLLECTION,
            doc_id,
            {EXTERNAL_ID_FIELD: source_id, "updatedAt": _now()},
        )
        log_with_context(
            logging.INFO,
            f"Matched existing identity {uid} by email, backfilled external id",
            member_id=source_id,
            uid=uid,
        )
        return ReconciledIdentity(uid, False, MATCHED_BY_EMAIL)

    def _create_identity(
        self, user: dict[str, Any], source_id: str, email: str
    ) -> ReconciledIdentity:
        display_name = member_display_name(user)

        # Only new identities get their images migrated
        avatar_url = self.media.migrate(user.get("profileImage")) or ""
        cover_url = self.media.migrate(user.get("coverUrl")) or ""

        matched_by = MATCHED_BY_CREATED
        try:
            uid = self.provider.create_account(
                email,
                self.password_factory(),
                display_name=display_name,
                photo_url=avatar_url if avatar_url.startswith("https://") else None,
            )
        except IdentityExistsError:
            uid = self.provider.get_uid_by_email(email)
            if uid is None:
                raise ImportFailedError(
                    f"Account for {email} reported as existing but cannot be found"
                )
            matched_by = MATCHED_BY_PROVIDER

        now = _now()
        self.store.set(
            USERS_COLLECTION,
            uid,
            {
                "userId": uid,
                EXTERNAL_ID_FIELD: source_id,
                "email": email,
                "displayName": display_name,
                "firstName": user.get("firstName") or "",
                "lastName": user.get("lastName") or "",
                "avatarUrl": avatar_url,
                "coverUrl": cover_url,
                "bio": user.get("bio") or "",
                "phone": user.get("phoneNumber") or "",
                "createdAt": parse_timestamp(user.get("createdAt")) or now,
                "updatedAt": parse_timestamp(user.get("updatedAt")) or now,
            },
            merge=True,
        )
        log_with_context(
            logging.INFO,
            f"Created identity {uid} for {email}",
            member_id=source_id,
            uid=uid,
            matched_by=matched_by,
        )
        return ReconciledIdentity(uid, True, matched_by)

    # -- Import owner ---------------------------------------------------------

    def ensure_import_owner(self, owner: ImportOwnerConfig) -> ImportOwner:
        """Find or create the configured import-owner identity."""
        uid = self.provider.get_uid_by_email(owner.email)
        if uid is not None:
            log_with_context(
                logging.INFO,
                f"Using existing import owner {owner.email}",
                uid=uid,
            )
            return ImportOwner(uid, owner.email, owner.display_name)

        try:
            uid = self.provider.create_account(
                owner.email, self.password_factory(), display_name=owner.display_name
            )
        except IdentityExistsError:
            uid = self.provider.get_uid_by_email(owner.email)
            if uid is None:
                raise ImportFailedError(
                    f"Import owner {owner.email} reported as existing but cannot be found"
                )

        now = _now()
        self.store.set(
            USERS_COLLECTION,
            uid,
            {
                "userId": uid,
                "email": owner.email,
                "displayName": owner.display_name,
                "createdAt": now,
                "updatedAt": now,
            },
            merge=True,
        )
        log_with_context(
            logging.INFO,
            f"Created import owner {owner.email}",
            uid=uid,
        )
        return ImportOwner(uid, owner.email, owner.display_name)
