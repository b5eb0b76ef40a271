"""
Export bundle: the self-contained snapshot passed from export to import.

A bundle holds one community document and its members (each with their
message history) as plain JSON values: ids are strings and timestamps are
ISO-8601 strings, so the bundle round-trips through JSON without loss and
carries no live handles into either store.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from bson import ObjectId
from bson.decimal128 import Decimal128

from community_migrator.exceptions import BundleError
from community_migrator.types import EnrichedMember, SourceCommunity


def to_plain(value: Any) -> Any:
    """Recursively convert BSON values into JSON-native ones."""
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            # pymongo hands back naive datetimes in UTC
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal128):
        return str(value.to_decimal())
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a bundle timestamp (ISO string or datetime) into an aware datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ExportBundle:
    """A community aggregate: the community plus every member and their messages."""

    community: SourceCommunity
    members: tuple[EnrichedMember, ...]

    @property
    def community_id(self) -> str:
        return str(self.community["_id"])

    @property
    def member_count(self) -> int:
        return len(self.members)

    def to_dict(self) -> dict[str, Any]:
        """Return a deep copy in the wire shape ``{community, members}``."""
        return {
            "community": copy.deepcopy(self.community),
            "members": [copy.deepcopy(m) for m in self.members],
        }

    @classmethod
    def from_dict(cls, data: Any) -> ExportBundle:
        """Build a bundle from its wire shape, validating the structure.

        Raises:
            BundleError: If required keys are missing or have the wrong type.
        """
        if not isinstance(data, dict):
            raise BundleError("Bundle must be a JSON object")

        community = data.get("community")
        if not isinstance(community, dict) or not community.get("_id"):
            raise BundleError("Bundle community is missing or has no _id")

        members = data.get("members")
        if not isinstance(members, list):
            raise BundleError("Bundle members must be a list")

        plain_members = []
        for index, member in enumerate(members):
            if not isinstance(member, dict) or not member.get("_id"):
                raise BundleError(f"Bundle member #{index} is missing an _id")
            member = to_plain(member)
            member.setdefault("messages", [])
            plain_members.append(member)

        return cls(community=to_plain(community), members=tuple(plain_members))


def dumps_bundle(bundle: ExportBundle, indent: int | None = 2) -> str:
    """Serialise a bundle to JSON text."""
    return json.dumps(bundle.to_dict(), indent=indent, ensure_ascii=False)


def loads_bundle(text: str) -> ExportBundle:
    """Deserialise a bundle from JSON text."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise BundleError(f"Bundle is not valid JSON: {e}") from e
    return ExportBundle.from_dict(data)


def write_bundle(bundle: ExportBundle, path: Path) -> Path:
    """Write a bundle to ``path`` atomically (write .tmp + rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(dumps_bundle(bundle) + "\n", encoding="utf-8")
    tmp.replace(path)
    return path


def read_bundle(path: Path) -> ExportBundle:
    """Read a bundle file written by write_bundle (or any compatible producer)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise BundleError(f"Failed to read bundle {path}: {e}") from e
    return loads_bundle(text)
