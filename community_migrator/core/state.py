"""
Per-run import state.

Mutable tracking state for a single import invocation, separated from the
immutable configuration.  Worker threads record their results through the
``record_*`` methods, which serialise access with a lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass
class MemberOutcome:
    """Result of reconciling one bundle member."""

    source_id: str
    uid: str | None = None
    created: bool = False
    matched_by: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.uid is not None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"source_id": self.source_id}
        if self.ok:
            data.update(uid=self.uid, created=self.created, matched_by=self.matched_by)
        else:
            data["error"] = self.error
        return data


@dataclass
class EmailConflict:
    """Two source users that resolved to the same target identity by email."""

    email: str
    uid: str
    existing_source_id: str
    incoming_source_id: str

    def to_dict(self) -> dict[str, str]:
        return {
            "email": self.email,
            "uid": self.uid,
            "existing_source_id": self.existing_source_id,
            "incoming_source_id": self.incoming_source_id,
        }


@dataclass
class ImportState:
    """Holds all mutable tracking state for one import run.

    - ``identity_map``: source user id -> target uid, local to this run
    - ``outcomes``: one MemberOutcome per bundle member
    - ``conflicts``: email collisions surfaced during reconciliation
    - ``written_documents``: (collection, id) pairs written by this run,
      in write order, used for rollback
    - ``link_batches``: size of every member-link batch committed
    """

    identity_map: dict[str, str] = field(default_factory=dict)
    outcomes: list[MemberOutcome] = field(default_factory=list)
    conflicts: list[EmailConflict] = field(default_factory=list)
    written_documents: list[tuple[str, str]] = field(default_factory=list)
    link_batches: list[int] = field(default_factory=list)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def record_outcome(self, outcome: MemberOutcome) -> None:
        with self._lock:
            self.outcomes.append(outcome)
            if outcome.ok:
                self.identity_map[outcome.source_id] = outcome.uid

    def record_conflict(self, conflict: EmailConflict) -> None:
        with self._lock:
            self.conflicts.append(conflict)

    def record_write(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self.written_documents.append((collection, doc_id))

    def record_batch(self, size: int) -> None:
        with self._lock:
            self.link_batches.append(size)

    @property
    def failed_outcomes(self) -> list[MemberOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def created_identities(self) -> int:
        return sum(1 for o in self.outcomes if o.ok and o.created)
