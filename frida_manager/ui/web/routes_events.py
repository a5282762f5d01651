"""
SSE event stream endpoint.

``GET /api/events`` streams everything published on the EventBus:
flow progress/download/error/success events (key = flow id) and
``session:state`` snapshots.

Wire format::

    event: flow:progress
    id: 47
    data: {"v":1,"ts":...,"seq":47,"type":"flow:progress","key":"3f2a9c01b7e4","data":{...}}

Browsers reconnecting with ``Last-Event-Id`` get missed events
replayed from the bus buffer.
"""

from __future__ import annotations

import json

from flask import Blueprint, Response, current_app, request

events_bp = Blueprint("events", __name__)


@events_bp.route("/events")
def event_stream():  # type: ignore[no-untyped-def]
    """Stream bus events as ``text/event-stream``.

    Query params:
        since (int): Resume after this sequence number; the
            ``Last-Event-Id`` header wins when it is larger.
    """
    since = request.args.get("since", 0, type=int)
    last_event_id = request.headers.get("Last-Event-Id")
    if last_event_id is not None and last_event_id.isdigit():
        since = max(since, int(last_event_id))

    event_bus = current_app.extensions["frida_manager"]["event_bus"]

    def generate():  # type: ignore[no-untyped-def]
        for event in event_bus.subscribe(since=since):
            yield (
                f"event: {event['type']}\n"
                f"id: {event['seq']}\n"
                f"data: {json.dumps(event, default=str)}\n\n"
            )

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "X-Accel-Buffering": "no",
        },
    )
