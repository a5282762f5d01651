"""
Shared CLI helpers — config resolution, wiring, flow rendering.
"""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from frida_manager.core.models.config import ManagerConfig
    from frida_manager.core.models.events import FlowEvent
    from frida_manager.core.services.flow import Flow
    from frida_manager.core.services.session import Orchestrator


def get_config(ctx: click.Context) -> ManagerConfig:
    """Load (once per invocation) the manager config, exiting on errors."""
    cached = ctx.obj.get("config")
    if cached is not None:
        return cached

    from frida_manager.core.config.loader import load_config
    from frida_manager.core.errors import ConfigError

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    ctx.obj["config"] = config
    return config


def get_orchestrator(ctx: click.Context) -> Orchestrator:
    cached = ctx.obj.get("orchestrator")
    if cached is not None:
        return cached

    from frida_manager.core.services.session import Orchestrator

    orchestrator = Orchestrator.from_config(get_config(ctx))
    ctx.obj["orchestrator"] = orchestrator
    return orchestrator


def echo_event(event: FlowEvent, state: dict[str, int]) -> None:
    """Print one flow event in human form."""
    if event.kind == "progress":
        click.echo(f"   {event.message}")
    elif event.kind == "download":
        if event.percent is None:
            mb = event.downloaded / (1024 * 1024)
            if mb >= state.get("mb", 0) + 1:
                state["mb"] = int(mb)
                click.echo(f"   📥 {mb:.1f} MB")
        elif event.percent >= state.get("pct", -10) + 10 or event.percent == 100:
            state["pct"] = event.percent
            click.echo(f"   📥 {event.percent}% ({event.downloaded}/{event.total} bytes)")
    elif event.kind == "success":
        click.secho(f"✅ {event.message.removeprefix('✅ ')}", fg="green", bold=True)
    elif event.kind == "error":
        click.secho(f"❌ {event.message}", fg="red", bold=True)


def run_flow(flow: Flow, *, as_json: bool = False, quiet: bool = False) -> FlowEvent:
    """Follow a flow to its end, rendering events; exit 1 on error."""
    render_state: dict[str, int] = {}
    terminal = None
    for event in flow.events():
        if not as_json and not (quiet and event.kind in ("progress", "download")):
            echo_event(event, render_state)
        if event.terminal:
            terminal = event

    if terminal is None:
        terminal = flow.wait()
    if terminal is None:
        raise click.ClickException(f"{flow.name} ended without a result")

    if as_json:
        click.echo(json.dumps(terminal.to_dict(), indent=2))
    if terminal.kind == "error":
        sys.exit(1)
    return terminal
