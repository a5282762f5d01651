"""
EventBus — thread-safe, in-process pub/sub with bounded replay.

Flow events and session-state changes are published here so SSE
clients of the control API see installs and server output live.

Thread safety model
───────────────────
- ``_lock`` guards ``_seq``, ``_buffer``, ``_subscribers`` and
  ``_session``.
- Each subscriber owns a ``queue.Queue``; ``publish()`` pushes into
  every queue under the lock and drops subscribers whose queue is full.

Message format::

    {
        "v": 1,
        "ts": 1739648400.123,
        "seq": 47,
        "type": "flow:progress",    # <domain>:<action>
        "key": "3f2a9c01b7e4",      # flow id, empty for session/system events
        "data": { ... },
    }
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from typing import Any, Generator

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

SESSION_EVENT = "session:state"


class EventBus:
    """Pub/sub hub with a replay ring buffer.

    Args:
        buffer_size: Events kept for replay to reconnecting clients.
        subscriber_queue_size: Backlog per client before it is dropped.
    """

    def __init__(
        self,
        *,
        buffer_size: int = 500,
        subscriber_queue_size: int = 500,
    ) -> None:
        self._lock = threading.Lock()
        self._seq = 0
        self._buffer: deque[dict[str, Any]] = deque(maxlen=buffer_size)
        self._subscribers: list[queue.Queue[dict[str, Any]]] = []
        self._subscriber_queue_size = subscriber_queue_size
        self._session: dict[str, Any] | None = None

    @property
    def seq(self) -> int:
        with self._lock:
            return self._seq

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # ── Publishing ──────────────────────────────────────────────

    def publish(
        self,
        event_type: str,
        *,
        key: str = "",
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Broadcast an event and return it with its ``seq``."""
        with self._lock:
            self._seq += 1
            event: dict[str, Any] = {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": key,
                "data": data or {},
            }
            if event_type == SESSION_EVENT:
                self._session = event["data"]
            if event_type != "sys:heartbeat":
                self._buffer.append(event)

            dead: list[queue.Queue[dict[str, Any]]] = []
            for q in self._subscribers:
                try:
                    q.put_nowait(event)
                except queue.Full:
                    dead.append(q)
            for q in dead:
                self._subscribers.remove(q)
                logger.info("Dropped unresponsive SSE subscriber (queue full)")

        if event_type != "sys:heartbeat":
            logger.debug("event %s key=%s", event_type, key or "-")
        return event

    # ── Subscribing ─────────────────────────────────────────────

    def subscribe(
        self,
        *,
        since: int = 0,
        heartbeat_interval: float = 15.0,
    ) -> Generator[dict[str, Any], None, None]:
        """Yield events for one client, blocking between them.

        Events with ``seq > since`` still in the buffer are replayed
        first. A fresh client (``since == 0``) gets the latest session
        snapshot instead.
        """
        q: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=self._subscriber_queue_size)
        with self._lock:
            if since > 0:
                for event in self._buffer:
                    if event["seq"] > since:
                        try:
                            q.put_nowait(event)
                        except queue.Full:
                            break
            session = self._session
            self._subscribers.append(q)
            count = len(self._subscribers)

        logger.info("SSE client connected (since=%d, subscribers=%d)", since, count)

        try:
            if since == 0 and session is not None:
                yield self._make_client_event(SESSION_EVENT, session)
            while True:
                try:
                    yield q.get(timeout=heartbeat_interval)
                except queue.Empty:
                    yield self.publish("sys:heartbeat")
        finally:
            with self._lock:
                if q in self._subscribers:
                    self._subscribers.remove(q)
            logger.info("SSE client disconnected")

    def latest_session(self) -> dict[str, Any] | None:
        with self._lock:
            return self._session

    def _make_client_event(self, event_type: str, data: dict[str, Any]) -> dict[str, Any]:
        """An event for one client only; takes a seq but skips the buffer."""
        with self._lock:
            self._seq += 1
            return {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": "",
                "data": data,
            }


# ── Module-level singleton ──────────────────────────────────────

bus = EventBus()
"""The process-wide event bus.

    from frida_manager.core.services.event_bus import bus
    bus.publish("flow:progress", key=flow.id, data=event.to_dict())
"""
