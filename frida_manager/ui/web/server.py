"""
Control API server — Flask app factory.

Serves a local JSON API plus an SSE event stream so a front-end (or
a script on the host) can drive installs and watch them live. No
HTML is rendered here.
"""

from __future__ import annotations

import logging

from flask import Flask

from frida_manager.core.models.config import ManagerConfig
from frida_manager.core.services.event_bus import EventBus, bus
from frida_manager.core.services.session import Orchestrator

logger = logging.getLogger(__name__)

EXTENSION_KEY = "frida_manager"


def create_app(
    config: ManagerConfig | None = None,
    *,
    orchestrator: Orchestrator | None = None,
    event_bus: EventBus | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Manager configuration (defaults when omitted).
        orchestrator: Pre-built orchestrator (tests); built from
            ``config`` when omitted.
        event_bus: Bus the SSE endpoint streams from (default: the
            process-wide one).

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)

    config = config or ManagerConfig()
    event_bus = event_bus or bus
    if orchestrator is None:
        orchestrator = Orchestrator.from_config(config, event_bus=event_bus)

    app.config["MANAGER_CONFIG"] = config
    app.extensions[EXTENSION_KEY] = {
        "orchestrator": orchestrator,
        "event_bus": event_bus,
    }

    from frida_manager.ui.web.routes_api import api_bp
    from frida_manager.ui.web.routes_events import events_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(events_bp, url_prefix="/api")

    logger.info("Control API app created (install_dir=%s)", config.install_path)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8027,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting control API on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
