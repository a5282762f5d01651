"""
CLI commands for operator preferences.
"""

from __future__ import annotations

import json

import click

from frida_manager.ui.cli.helpers import get_orchestrator


@click.group()
def prefs() -> None:
    """Preferences — server port, auto-start, theme."""


@prefs.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def prefs_show(ctx: click.Context, as_json: bool) -> None:
    """Show current preferences."""
    store = get_orchestrator(ctx).preferences
    data = store.to_dict()

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    on_off = {True: "on", False: "off"}
    click.secho("⚙️  Preferences", fg="cyan", bold=True)
    click.echo(f"   Server port:  {data['server_port']}")
    click.echo(f"   Auto-start:   {on_off[data['auto_start_enabled']]}")
    click.echo(f"   Dark theme:   {on_off[data['dark_theme']]}")
    click.echo(f"   Saved:        {', '.join(data['saved_versions']) or '—'}")
    click.echo(f"   File:         {store.path}")


@prefs.command("set-port")
@click.argument("port", type=click.IntRange(1, 65535))
@click.pass_context
def prefs_set_port(ctx: click.Context, port: int) -> None:
    """Set the port the server listens on."""
    get_orchestrator(ctx).preferences.set_server_port(port)
    click.secho(f"✅ Server port set to {port}", fg="green")


@prefs.command("auto-start")
@click.argument("state", type=click.Choice(["on", "off"]))
@click.pass_context
def prefs_auto_start(ctx: click.Context, state: str) -> None:
    """Start the server from the boot hook (on/off)."""
    get_orchestrator(ctx).preferences.set_auto_start(state == "on")
    click.secho(f"✅ Auto-start {state}", fg="green")


@prefs.command("theme")
@click.argument("theme", type=click.Choice(["dark", "light"]))
@click.pass_context
def prefs_theme(ctx: click.Context, theme: str) -> None:
    """Theme hint for front-ends using the control API."""
    get_orchestrator(ctx).preferences.set_dark_theme(theme == "dark")
    click.secho(f"✅ Theme set to {theme}", fg="green")
