"""
Command-line interface for the community migration tool.

Each subcommand creates its own timestamped output directory, sets up file
logging there and loads the YAML config before touching any data store.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from community_migrator.cli.common import (
    build_context,
    cli,
    common_options,
    handle_exception,
)
from community_migrator.cli.report import print_import_summary, write_import_report
from community_migrator.core.bundle import ExportBundle, read_bundle, write_bundle
from community_migrator.core.config import create_default_config
from community_migrator.core.context import MigrationContext
from community_migrator.core.migrator import CommunityMigrator
from community_migrator.utils.logging import log_with_context

# ---------------------------------------------------------------------------
# list subcommand
# ---------------------------------------------------------------------------


@cli.command("list")
@common_options
@click.option("--search", default="", help="Filter communities by name")
def list_communities(config: str, verbose: bool, search: str) -> None:
    """List source communities and whether they were already imported."""
    try:
        context = build_context(config, verbose)
        communities = CommunityMigrator(context).list_communities(search)
    except Exception as e:
        handle_exception(e)
        sys.exit(1)

    if not communities:
        click.echo("No communities found.")
        return

    for c in communities:
        marker = "[exported]" if c["is_exported"] else ""
        click.echo(
            f"{c['id']}  {c['name']}  ({c['member_count']} members, "
            f"owner {c['owner']}) {marker}".rstrip()
        )
    click.echo(f"\n{len(communities)} communities")


# ---------------------------------------------------------------------------
# show subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option("--collection", required=True, help="Source collection name")
@click.option("--id", "document_id", required=True, help="Document id")
def show(config: str, verbose: bool, collection: str, document_id: str) -> None:
    """Print one raw source document as JSON."""
    try:
        context = build_context(config, verbose)
        raw = CommunityMigrator(context).source_store.get_raw_document(
            collection, document_id
        )
    except Exception as e:
        handle_exception(e)
        sys.exit(1)

    if raw is None:
        log_with_context(
            logging.ERROR, f"No document {document_id} in collection {collection}"
        )
        sys.exit(1)
    click.echo(raw)


# ---------------------------------------------------------------------------
# members subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option("--community_id", required=True, help="Source community id")
@click.option("--search", default="", help="Filter members by name or email")
def members(config: str, verbose: bool, community_id: str, search: str) -> None:
    """List the members of a source community with their roles."""
    try:
        context = build_context(config, verbose)
        found = CommunityMigrator(context).list_members(community_id, search)
    except Exception as e:
        handle_exception(e)
        sys.exit(1)

    if not found:
        click.echo("No members found.")
        return

    for m in found:
        click.echo(f"{m['id']}  {m['name']}  <{m['email']}>  {m['role']}")
    click.echo(f"\n{len(found)} members")


# ---------------------------------------------------------------------------
# messages subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option("--community_id", required=True, help="Source community id")
@click.option("--member_id", required=True, help="Source user id of the member")
@click.option("--search", default="", help="Only show messages containing TEXT")
def messages(
    config: str, verbose: bool, community_id: str, member_id: str, search: str
) -> None:
    """Show a member's most recent direct messages in a community."""
    try:
        context = build_context(config, verbose)
        found = CommunityMigrator(context).member_messages(
            community_id, member_id, search
        )
    except Exception as e:
        handle_exception(e)
        sys.exit(1)

    if not found:
        click.echo("No messages found.")
        return

    for msg in found:
        click.echo(f"[{msg['createdAt']}] {msg['sender']['name']}: {msg['text']}")


# ---------------------------------------------------------------------------
# export subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option("--community_id", required=True, help="Source community id")
@click.option(
    "--output",
    default=None,
    help="Bundle path (default: <output dir>/community_<id>.json)",
)
@click.option("--search", default="", help="Only export messages containing TEXT")
def export(
    config: str, verbose: bool, community_id: str, output: str | None, search: str
) -> None:
    """Export one community, its members and their messages to a bundle file."""
    try:
        context = build_context(config, verbose)
        bundle = CommunityMigrator(context).export_community(community_id, search)
        path = Path(output) if output else _default_bundle_path(context, community_id)
        write_bundle(bundle, path)
    except Exception as e:
        handle_exception(e)
        sys.exit(1)
    except KeyboardInterrupt as e:
        handle_exception(e)
        sys.exit(1)

    click.echo(f"Exported {bundle.member_count} members to {path}")


def _default_bundle_path(context: MigrationContext, community_id: str) -> Path:
    return context.output_dir / f"community_{community_id}.json"


# ---------------------------------------------------------------------------
# import subcommand
# ---------------------------------------------------------------------------


@cli.command("import")
@common_options
@click.option("--bundle", "bundle_path", required=True, help="Path to a bundle file")
@click.option(
    "--dry_run",
    is_flag=True,
    default=False,
    help="Reconcile and report without writing to the target project",
)
def import_command(config: str, verbose: bool, bundle_path: str, dry_run: bool) -> None:
    """Import a previously exported bundle into the target project."""
    try:
        context = build_context(config, verbose, dry_run=dry_run)
        bundle = read_bundle(Path(bundle_path))
        migrator = CommunityMigrator(context)
    except Exception as e:
        handle_exception(e)
        sys.exit(1)

    _run_import(context, migrator, bundle)


# ---------------------------------------------------------------------------
# migrate subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option("--community_id", required=True, help="Source community id")
@click.option(
    "--dry_run",
    is_flag=True,
    default=False,
    help="Reconcile and report without writing to the target project",
)
def migrate(config: str, verbose: bool, community_id: str, dry_run: bool) -> None:
    """Export a community and import it in one run."""
    try:
        context = build_context(config, verbose, dry_run=dry_run)
        migrator = CommunityMigrator(context)
        bundle = migrator.export_community(community_id)
        write_bundle(bundle, _default_bundle_path(context, community_id))
    except Exception as e:
        handle_exception(e)
        sys.exit(1)
    except KeyboardInterrupt as e:
        handle_exception(e)
        sys.exit(1)

    _run_import(context, migrator, bundle)


def _run_import(
    context: MigrationContext, migrator: CommunityMigrator, bundle: ExportBundle
) -> None:
    try:
        result = migrator.import_bundle(bundle)
    except Exception as e:
        handle_exception(e)
        sys.exit(1)
    except KeyboardInterrupt as e:
        handle_exception(e)
        sys.exit(1)

    report_path = write_import_report(
        context.report_file, bundle, result, dry_run=context.dry_run
    )
    print_import_summary(bundle, result, report_path)
    if not result.success:
        sys.exit(1)


# ---------------------------------------------------------------------------
# init-config subcommand
# ---------------------------------------------------------------------------


@cli.command("init-config")
@click.option(
    "--output",
    default="config.yaml",
    show_default=True,
    help="Where to write the config template",
)
def init_config(output: str) -> None:
    """Write a config template to start from."""
    if not create_default_config(Path(output)):
        click.echo(f"{output} already exists, not overwriting.", err=True)
        sys.exit(1)
    click.echo(f"Wrote config template to {output}")


def main() -> NoReturn:
    """Entry point for the ``community-migrator`` console script."""
    cli()
    sys.exit(0)
