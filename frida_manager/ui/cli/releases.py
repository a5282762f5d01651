"""
CLI commands for the release index and saved versions.

    releases              list installable releases
    versions list|add|remove|switch
"""

from __future__ import annotations

import json
import sys

import click

from frida_manager.ui.cli.helpers import get_orchestrator, run_flow


@click.command()
@click.option("--limit", "-n", type=click.IntRange(1, 100), default=None,
              help="How many releases to ask the index for.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def releases(ctx: click.Context, limit: int | None, as_json: bool) -> None:
    """List releases that ship an Android frida-server."""
    orchestrator = get_orchestrator(ctx)
    terminal = orchestrator.load_releases(limit).wait()
    if terminal is None:
        raise click.ClickException("Release fetch ended without a result")

    if terminal.kind == "error":
        if as_json:
            click.echo(json.dumps({"error": terminal.message, "code": terminal.code}, indent=2))
        else:
            click.secho(f"❌ {terminal.message}", fg="red")
        sys.exit(1)

    items = orchestrator.releases
    installed = orchestrator.installer.installed_version()
    saved = set(orchestrator.preferences.saved_versions)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in items], indent=2))
        return

    if not items:
        click.secho("⚠️  No releases with Android server builds found", fg="yellow")
        return

    click.secho(f"📦 Releases ({len(items)}):", fg="cyan", bold=True)
    for release in items:
        markers = []
        if release.tag_name == installed:
            markers.append("installed")
        if release.tag_name in saved:
            markers.append("saved")
        suffix = f"  ← {', '.join(markers)}" if markers else ""
        published = (release.published_at or "")[:10]
        click.echo(f"   • {release.display_name:<24} {published}{suffix}")
    click.echo()


# ── Saved versions ──────────────────────────────────────────────


@click.group()
def versions() -> None:
    """Saved versions — quick switching between releases."""


@versions.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def versions_list(ctx: click.Context, as_json: bool) -> None:
    """Show saved versions."""
    orchestrator = get_orchestrator(ctx)
    saved = orchestrator.preferences.saved_versions
    installed = orchestrator.installer.installed_version()

    if as_json:
        click.echo(json.dumps({"saved_versions": saved, "installed": installed}, indent=2))
        return

    if not saved:
        click.echo("No saved versions. Use 'versions add TAG' or 'install --version TAG --save'.")
        return

    click.secho("💾 Saved versions:", fg="cyan", bold=True)
    for tag in saved:
        marker = "  ← installed" if tag == installed else ""
        click.echo(f"   • {tag}{marker}")


@versions.command("add")
@click.argument("tag")
@click.pass_context
def versions_add(ctx: click.Context, tag: str) -> None:
    """Save a version tag without installing it."""
    get_orchestrator(ctx).preferences.add_saved_version(tag)
    click.secho(f"✅ Saved {tag}", fg="green")


@versions.command("remove")
@click.argument("tag")
@click.pass_context
def versions_remove(ctx: click.Context, tag: str) -> None:
    """Forget a saved version tag."""
    prefs = get_orchestrator(ctx).preferences
    if not prefs.is_version_saved(tag):
        click.secho(f"⚠️  {tag} is not saved", fg="yellow")
        return
    prefs.remove_saved_version(tag)
    click.secho(f"🗑️  Removed {tag}", fg="green")


@versions.command("switch")
@click.argument("tag")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def versions_switch(ctx: click.Context, tag: str, as_json: bool) -> None:
    """Download and install a saved (or any) version."""
    run_flow(get_orchestrator(ctx).switch_version(tag), as_json=as_json)
