"""
CLI commands for device-side helpers: Wi-Fi ADB and the detection scan.
"""

from __future__ import annotations

import json
import sys

import click

from frida_manager.ui.cli.helpers import get_orchestrator


@click.group()
def adb() -> None:
    """Wi-Fi ADB — status, enable, disable."""


def _adb(ctx: click.Context):  # type: ignore[no-untyped-def]
    from frida_manager.core.services.adb_wifi import AdbWifi

    return AdbWifi(get_orchestrator(ctx).installer.executor)


@adb.command("status")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def adb_status(ctx: click.Context, as_json: bool) -> None:
    """Show whether adbd listens on TCP."""
    status = _adb(ctx).status()

    if as_json:
        click.echo(json.dumps(status.to_dict(), indent=2))
        return

    if status.enabled:
        click.secho(f"📶 Wi-Fi ADB enabled on port {status.port}", fg="green")
        if status.address:
            click.echo(f"   adb connect {status.address}")
    else:
        click.echo("Wi-Fi ADB disabled")


@adb.command("enable")
@click.option("--port", "-p", type=click.IntRange(1, 65535), default=5555, help="TCP port.")
@click.pass_context
def adb_enable(ctx: click.Context, port: int) -> None:
    """Restart adbd listening on TCP."""
    result = _adb(ctx).enable(port)
    if not result.ok:
        click.secho(f"❌ {result.error or result.stderr.strip() or 'adbd restart failed'}", fg="red")
        sys.exit(1)
    click.secho(f"✅ Wi-Fi ADB enabled on port {port}", fg="green")


@adb.command("disable")
@click.pass_context
def adb_disable(ctx: click.Context) -> None:
    """Restart adbd in USB-only mode."""
    result = _adb(ctx).disable()
    if not result.ok:
        click.secho(f"❌ {result.error or result.stderr.strip() or 'adbd restart failed'}", fg="red")
        sys.exit(1)
    click.secho("✅ Wi-Fi ADB disabled", fg="green")


# ── Detection scan ──────────────────────────────────────────────


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def scan(ctx: click.Context, as_json: bool) -> None:
    """Check whether the server is visible from the device."""
    from frida_manager.core.services.detection_scan import DEFAULT_PORTS, DefaultScanner

    port = get_orchestrator(ctx).preferences.server_port
    report = DefaultScanner((*DEFAULT_PORTS, port)).run_full_scan()

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    color = "green" if report.detection_count == 0 else "red"
    click.secho(
        f"🔎 {report.threat_level} — {report.detection_count}/{report.total_checks} "
        f"checks detected ({report.scan_duration_ms}ms)",
        fg=color,
        bold=True,
    )
    for result in report.results:
        icon = "🔴" if result.detected else "💚"
        click.echo(f"   {icon} {result.technique}: {result.details}")
