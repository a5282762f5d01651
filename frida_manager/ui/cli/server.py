"""
CLI commands for installing and running frida-server.

Thin wrappers over ``frida_manager.core.services.session.Orchestrator``.
Each command drives one flow and renders its events as they arrive.
"""

from __future__ import annotations

import json
import queue
from typing import TYPE_CHECKING

import click

from frida_manager.ui.cli.helpers import echo_event, get_orchestrator, run_flow

if TYPE_CHECKING:
    from frida_manager.core.services.flow import Flow
    from frida_manager.core.services.session import Orchestrator


# ── Install ─────────────────────────────────────────────────────


@click.command()
@click.option("--force", is_flag=True, help="Re-download even if a server is installed.")
@click.option("--version", "tag", default=None, help="Install this release tag instead of the latest.")
@click.option("--save", is_flag=True, help="Add the --version tag to the saved versions.")
@click.option(
    "--file",
    "manual_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Install a local binary or .xz archive.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    force: bool,
    tag: str | None,
    save: bool,
    manual_file: str | None,
    as_json: bool,
) -> None:
    """Install frida-server (latest release by default)."""
    if manual_file and tag:
        raise click.UsageError("--file and --version are mutually exclusive")
    if save and not tag:
        raise click.UsageError("--save requires --version")

    orchestrator = get_orchestrator(ctx)
    if manual_file:
        flow = orchestrator.install_manual(manual_file)
    elif tag and save:
        flow = orchestrator.install_and_save_version(tag)
    elif tag:
        flow = orchestrator.switch_version(tag, force_redownload=force)
    else:
        flow = orchestrator.install_latest(force)

    run_flow(flow, as_json=as_json, quiet=ctx.obj.get("quiet", False))


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def uninstall(ctx: click.Context, as_json: bool) -> None:
    """Stop the server and remove the installed binary."""
    run_flow(get_orchestrator(ctx).uninstall(), as_json=as_json)


# ── Process ─────────────────────────────────────────────────────


def _supervise(orchestrator: Orchestrator, flow: Flow, as_json: bool) -> None:
    """Print server output until Ctrl+C or the server exits, then stop it."""
    terminal = flow.result
    last_seq = terminal.seq if terminal else 0
    lines: queue.Queue = queue.Queue()
    flow.subscribe(lambda event: lines.put(event) if event.seq > last_seq else None)

    if not as_json:
        click.secho("   Press Ctrl+C to stop the server", fg="cyan")

    try:
        while True:
            try:
                event = lines.get(timeout=1.0)
            except queue.Empty:
                handle = orchestrator.controller.handle
                if handle is None or not handle.alive:
                    click.secho("⚠️  Frida server exited", fg="yellow")
                    break
                continue
            if not as_json:
                echo_event(event, {})
            else:
                click.echo(json.dumps(event.to_dict()))
    except KeyboardInterrupt:
        click.echo()
    finally:
        orchestrator.controller.stop()
        if not as_json:
            click.secho("🛑 Frida server stopped", fg="yellow")


@click.command()
@click.option("--port", "-p", type=click.IntRange(1, 65535), default=None,
              help="Listen port (default: saved preference).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def start(ctx: click.Context, port: int | None, as_json: bool) -> None:
    """Start frida-server and follow its output until Ctrl+C."""
    orchestrator = get_orchestrator(ctx)
    flow = orchestrator.start_server(port)
    run_flow(flow, as_json=as_json)
    _supervise(orchestrator, flow, as_json)


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def stop(ctx: click.Context, as_json: bool) -> None:
    """Stop every running frida-server."""
    run_flow(get_orchestrator(ctx).stop_server(), as_json=as_json)


@click.command()
@click.pass_context
def boot(ctx: click.Context) -> None:
    """Boot hook: start the server if auto-start is enabled."""
    from frida_manager.core.services.boot import on_boot_completed

    orchestrator = get_orchestrator(ctx)
    flow = on_boot_completed(orchestrator.preferences, orchestrator.controller)
    if flow is None:
        click.echo("Auto-start disabled — nothing to do")
        return
    run_flow(flow)
    _supervise(orchestrator, flow, as_json=False)
