"""
Control API routes — install, server and preference endpoints.

Blueprint: api_bp
Prefix: /api

Thin HTTP wrappers over ``frida_manager.core.services.session.Orchestrator``.
Endpoints that start a flow answer ``202 {"flow_id": ...}`` right away;
progress arrives on ``GET /api/events``.

Endpoints:
    GET    /status             — session, install, server, preferences
    GET    /health             — component health
    GET    /releases           — installable releases (?refresh=1 to refetch)
    POST   /install            — {force, version, save}
    POST   /install/manual     — {path}
    POST   /uninstall          — remove binary and record
    POST   /switch             — {version}
    POST   /server/start       — {port}
    POST   /server/stop
    POST   /reset              — leave the error state
    POST   /logs/clear
    GET    /prefs
    POST   /prefs              — {server_port, auto_start_enabled, dark_theme}
    GET    /versions
    POST   /versions           — {version}
    DELETE /versions/<tag>
    GET    /scan               — detection scan report
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from frida_manager.core.errors import InvalidTransition
from frida_manager.core.services.flow import Flow
from frida_manager.core.services.session import Orchestrator

api_bp = Blueprint("api", __name__)


def _orchestrator() -> Orchestrator:
    return current_app.extensions["frida_manager"]["orchestrator"]


def _body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _accepted(flow: Flow):  # type: ignore[no-untyped-def]
    return jsonify({"flow_id": flow.id, "flow": flow.name}), 202


@api_bp.errorhandler(InvalidTransition)
def _invalid_transition(exc: InvalidTransition):  # type: ignore[no-untyped-def]
    return jsonify({"error": str(exc), "code": exc.code}), 409


@api_bp.errorhandler(ValidationError)
def _invalid_input(exc: ValidationError):  # type: ignore[no-untyped-def]
    return jsonify({"error": "Invalid value", "details": exc.errors(include_url=False)}), 400


# ── Status ──────────────────────────────────────────────────────────


@api_bp.route("/status")
def api_status():  # type: ignore[no-untyped-def]
    """Session snapshot plus install, server and preference details."""
    return jsonify(_orchestrator().status())


@api_bp.route("/health")
def api_health():  # type: ignore[no-untyped-def]
    from frida_manager.core.observability.health import check_system_health

    orch = _orchestrator()
    health = check_system_health(
        orch.installer.executor, orch.installer, orch.controller, orch.preferences,
    )
    return jsonify(health.to_dict())


@api_bp.route("/releases")
def api_releases():  # type: ignore[no-untyped-def]
    """Installable releases, fetched from the index on first use."""
    orch = _orchestrator()
    refresh = request.args.get("refresh", "") == "1"

    if refresh or not orch.releases:
        limit = request.args.get("limit", type=int)
        timeout = current_app.config["MANAGER_CONFIG"].http_timeout + 5
        terminal = orch.load_releases(limit).wait(timeout)
        if terminal is None:
            return jsonify({"error": "Timed out loading releases"}), 504
        if terminal.kind == "error":
            return jsonify({"error": terminal.message, "code": terminal.code}), 502

    return jsonify({
        "releases": [r.to_dict() for r in orch.releases],
        "installed": orch.installer.installed_version(),
        "saved_versions": orch.preferences.saved_versions,
    })


# ── Install ─────────────────────────────────────────────────────────


@api_bp.route("/install", methods=["POST"])
def api_install():  # type: ignore[no-untyped-def]
    """Install latest, or a given version (optionally saved)."""
    body = _body()
    force = bool(body.get("force", False))
    version = (body.get("version") or "").strip()
    save = bool(body.get("save", False))

    orch = _orchestrator()
    if version and save:
        flow = orch.install_and_save_version(version)
    elif version:
        flow = orch.switch_version(version, force_redownload=force)
    elif save:
        return jsonify({"error": "'save' requires 'version'"}), 400
    else:
        flow = orch.install_latest(force)
    return _accepted(flow)


@api_bp.route("/install/manual", methods=["POST"])
def api_install_manual():  # type: ignore[no-untyped-def]
    """Install a file already present on the device."""
    path = (_body().get("path") or "").strip()
    if not path:
        return jsonify({"error": "Missing 'path'"}), 400
    return _accepted(_orchestrator().install_manual(path))


@api_bp.route("/uninstall", methods=["POST"])
def api_uninstall():  # type: ignore[no-untyped-def]
    return _accepted(_orchestrator().uninstall())


@api_bp.route("/switch", methods=["POST"])
def api_switch():  # type: ignore[no-untyped-def]
    """Switch to a (saved) version — always re-downloads."""
    version = (_body().get("version") or "").strip()
    if not version:
        return jsonify({"error": "Missing 'version'"}), 400
    return _accepted(_orchestrator().switch_version(version))


# ── Server ──────────────────────────────────────────────────────────


@api_bp.route("/server/start", methods=["POST"])
def api_server_start():  # type: ignore[no-untyped-def]
    port = _body().get("port")
    if port is not None and (not isinstance(port, int) or not 1 <= port <= 65535):
        return jsonify({"error": "'port' must be an integer in 1-65535"}), 400
    return _accepted(_orchestrator().start_server(port))


@api_bp.route("/server/stop", methods=["POST"])
def api_server_stop():  # type: ignore[no-untyped-def]
    return _accepted(_orchestrator().stop_server())


# ── Session housekeeping ────────────────────────────────────────────


@api_bp.route("/reset", methods=["POST"])
def api_reset():  # type: ignore[no-untyped-def]
    return jsonify(_orchestrator().reset().to_dict())


@api_bp.route("/logs/clear", methods=["POST"])
def api_clear_logs():  # type: ignore[no-untyped-def]
    return jsonify(_orchestrator().clear_logs().to_dict())


# ── Preferences ─────────────────────────────────────────────────────


@api_bp.route("/prefs", methods=["GET"])
def api_prefs():  # type: ignore[no-untyped-def]
    return jsonify(_orchestrator().preferences.to_dict())


@api_bp.route("/prefs", methods=["POST"])
def api_prefs_update():  # type: ignore[no-untyped-def]
    """Partial update; unknown keys are ignored."""
    body = _body()
    prefs = _orchestrator().preferences
    if "server_port" in body:
        prefs.set_server_port(body["server_port"])
    if "auto_start_enabled" in body:
        prefs.set_auto_start(body["auto_start_enabled"])
    if "dark_theme" in body:
        prefs.set_dark_theme(body["dark_theme"])
    return jsonify(prefs.to_dict())


@api_bp.route("/versions", methods=["GET"])
def api_versions():  # type: ignore[no-untyped-def]
    orch = _orchestrator()
    return jsonify({
        "saved_versions": orch.preferences.saved_versions,
        "installed": orch.installer.installed_version(),
    })


@api_bp.route("/versions", methods=["POST"])
def api_versions_add():  # type: ignore[no-untyped-def]
    version = (_body().get("version") or "").strip()
    if not version:
        return jsonify({"error": "Missing 'version'"}), 400
    prefs = _orchestrator().preferences.add_saved_version(version)
    return jsonify({"saved_versions": prefs.saved_versions})


@api_bp.route("/versions/<tag>", methods=["DELETE"])
def api_versions_delete(tag: str):  # type: ignore[no-untyped-def]
    store = _orchestrator().preferences
    if not store.is_version_saved(tag):
        return jsonify({"error": f"Version {tag} is not saved"}), 404
    prefs = store.remove_saved_version(tag)
    return jsonify({"saved_versions": prefs.saved_versions})


# ── Detection ───────────────────────────────────────────────────────


@api_bp.route("/scan")
def api_scan():  # type: ignore[no-untyped-def]
    from frida_manager.core.services.detection_scan import DEFAULT_PORTS, DefaultScanner

    port = _orchestrator().preferences.server_port
    report = DefaultScanner((*DEFAULT_PORTS, port)).run_full_scan()
    return jsonify(report.to_dict())
