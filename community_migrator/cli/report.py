"""
Report generation for community imports
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path
from typing import Any

import click
import yaml

from community_migrator.core.bundle import ExportBundle
from community_migrator.core.importer import ImportResult
from community_migrator.utils.logging import log_with_context


def create_output_directory(base_dir: str = "migration_output") -> Path:
    """Create a timestamped output directory for this run."""
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(base_dir) / f"run_{timestamp}"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def build_import_report(
    bundle: ExportBundle, result: ImportResult, dry_run: bool = False
) -> dict[str, Any]:
    """Assemble the YAML-serialisable report of one import run."""
    state = result.state
    return {
        "import_summary": {
            "timestamp": datetime.datetime.now().isoformat(),
            "dry_run": dry_run,
            "source_community_id": bundle.community_id,
            "community_name": bundle.community.get("name", ""),
            "success": result.success,
            "message": result.message,
            "target_community_id": result.community_id,
            "members_in_bundle": bundle.member_count,
            "members_reconciled": len(state.identity_map),
            "identities_created": state.created_identities,
            "member_link_batches": list(state.link_batches),
        },
        "members": [outcome.to_dict() for outcome in state.outcomes],
        "email_conflicts": [conflict.to_dict() for conflict in state.conflicts],
    }


def write_import_report(
    report_path: Path, bundle: ExportBundle, result: ImportResult, dry_run: bool = False
) -> Path:
    """Write the import report to ``report_path``."""
    report = build_import_report(bundle, result, dry_run=dry_run)
    with open(report_path, "w") as f:
        yaml.safe_dump(report, f, default_flow_style=False, sort_keys=False)
    log_with_context(logging.INFO, f"Import report written to {report_path}")
    return report_path


def print_import_summary(
    bundle: ExportBundle, result: ImportResult, report_path: Path | None = None
) -> None:
    """Print a short summary of an import run to the console."""
    state = result.state
    click.echo("\n" + "=" * 80)
    click.echo("IMPORT SUMMARY")
    click.echo("=" * 80)
    click.echo(f"Community: {bundle.community.get('name', '')} ({bundle.community_id})")
    click.echo(f"Result: {'SUCCESS' if result.success else 'FAILED'} - {result.message}")
    if result.community_id:
        click.echo(f"Target community id: {result.community_id}")
    click.echo(
        f"Members reconciled: {len(state.identity_map)}/{bundle.member_count} "
        f"({state.created_identities} new identities)"
    )
    if state.conflicts:
        click.echo(f"\nEmail conflicts: {len(state.conflicts)}")
        for conflict in state.conflicts:
            click.echo(
                f"  - {conflict.email}: source users {conflict.existing_source_id} "
                f"and {conflict.incoming_source_id} share identity {conflict.uid}"
            )
    if report_path is not None:
        click.echo(f"\nDetailed report saved to {report_path}")
    click.echo("=" * 80)
