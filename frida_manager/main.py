"""
frida-server manager — CLI entrypoint.

Usage:
    python -m frida_manager.main --help
    frida-manager status
    frida-manager install --version 16.2.1 --save
    frida-manager start --port 27042
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from frida_manager import __version__
from frida_manager.core.observability.logging_config import resolve_level, setup_from_env
from frida_manager.ui.cli.helpers import get_config, get_orchestrator


@click.group()
@click.version_option(version=__version__, prog_name="frida-manager")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to frida-manager.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """frida-server manager — install, switch and run frida-server."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show install, server and preference status."""
    result = get_orchestrator(ctx).status()

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    install = result["install"]
    server = result["server"]
    prefs = result["preferences"]

    click.secho("\n📱 frida-server", fg="cyan", bold=True)
    if install["installed"]:
        click.secho(f"   ✅ Installed: {install['server_type']}", fg="green")
    else:
        click.secho("   ⚠️  Not installed", fg="yellow")
    click.echo(f"   📂 {install['binary']}")

    if server["running"]:
        click.secho(f"   🟢 Running (PID {server['pid']})", fg="green")
    else:
        click.echo("   ⚪ Not running")

    click.echo(f"   📡 Port: {prefs['server_port']}"
               f"   Auto-start: {'on' if prefs['auto_start_enabled'] else 'off'}")
    if prefs["saved_versions"]:
        click.echo(f"   💾 Saved: {', '.join(prefs['saved_versions'])}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    """Show manager health — elevation, installation, server, preferences."""
    from frida_manager.core.observability.health import check_system_health

    orchestrator = get_orchestrator(ctx)
    system_health = check_system_health(
        orchestrator.installer.executor,
        orchestrator.installer,
        orchestrator.controller,
        orchestrator.preferences,
    )

    if as_json:
        click.echo(json.dumps(system_health.to_dict(), indent=2))
        return

    status_icons = {
        "healthy": ("💚", "green"),
        "degraded": ("🟡", "yellow"),
        "unhealthy": ("🔴", "red"),
        "unknown": ("❔", "white"),
    }
    icon, color = status_icons.get(system_health.status, ("❔", "white"))

    click.echo()
    click.secho(f"{icon} Health: {system_health.status.upper()}", fg=color, bold=True)
    click.echo(f"   {system_health.timestamp}")
    click.echo()

    for component in system_health.components:
        c_icon, c_color = status_icons.get(component.status, ("❔", "white"))
        click.secho(f"   {c_icon} {component.name}", fg=c_color, bold=True)
        click.echo(f"      {component.message}")
        if ctx.obj.get("verbose"):
            for key, val in component.details.items():
                click.echo(f"      {key}: {val}")

    click.echo()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8027, type=int, help="Port number.")
@click.pass_context
def web(ctx: click.Context, host: str, port: int) -> None:
    """Start the local control API (JSON + SSE)."""
    from frida_manager.ui.web.server import create_app, run_server

    config = get_config(ctx)
    app = create_app(config)
    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho("⚡ frida-server manager — control API", bold=True)
    click.echo(f"   API:     http://{host}:{port}/api/status")
    click.echo(f"   Events:  http://{host}:{port}/api/events")
    click.echo(f"   Install: {config.install_path}")
    if debug:
        click.secho("   Logging: DEBUG (all output)", fg="yellow")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


# ── Register sub-commands from frida_manager/ui/cli/ ────────────

from frida_manager.ui.cli.device import adb, scan  # noqa: E402
from frida_manager.ui.cli.prefs import prefs  # noqa: E402
from frida_manager.ui.cli.releases import releases, versions  # noqa: E402
from frida_manager.ui.cli.server import boot, install, start, stop, uninstall  # noqa: E402

cli.add_command(install)
cli.add_command(uninstall)
cli.add_command(start)
cli.add_command(stop)
cli.add_command(boot)
cli.add_command(releases)
cli.add_command(versions)
cli.add_command(prefs)
cli.add_command(adb)
cli.add_command(scan)


if __name__ == "__main__":
    cli()
