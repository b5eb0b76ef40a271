"""Immutable migration context.

MigrationContext is a frozen dataclass that holds the configuration and mode
flags for one CLI run.  It is created once and shared (read-only) with the
client factory and the services it builds.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from community_migrator.core.config import MigrationConfig


@dataclass(frozen=True)
class MigrationContext:
    """Immutable context for a migration run. Created once, shared everywhere."""

    config: MigrationConfig
    output_dir: Path

    # Mode flags
    dry_run: bool = False
    verbose: bool = False

    @property
    def report_file(self) -> Path:
        """Path of the YAML report written after an import."""
        return self.output_dir / "import_report.yaml"

    @property
    def log_prefix(self) -> str:
        """Mode-aware log prefix, ``"[DRY RUN] "`` or empty."""
        return "[DRY RUN] " if self.dry_run else ""
