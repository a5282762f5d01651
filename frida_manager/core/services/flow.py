"""
Flow — one long-running operation on its own worker thread.

Every install, start, stop and release fetch is a Flow. The body runs
on a daemon thread and talks to the outside world only through a
FlowReporter; callers observe it three ways:

- ``subscribe(callback)``: called in order for every event (late
  subscribers get the history replayed first)
- ``events()``: blocking iterator that ends after the terminal event
- ``wait(timeout)``: returns the terminal event

Thread safety model
───────────────────
- ``_lock`` serialises emission: sequence numbers, history, queue and
  subscriber fan-out all happen under it, so every subscriber sees
  the same order.
- Exactly one terminal event (``success`` or ``error``) per flow.
  Later terminal attempts are dropped. Progress events may still
  arrive after it (a started server keeps printing output), they go
  to subscribers but not to ``events()``.
- Exceptions never leave the worker: ManagerError becomes an
  ``error`` event with its code, anything else is logged with a
  traceback and reported as ``unexpected_error``.
"""

from __future__ import annotations

import logging
import queue
import threading
import uuid
from collections import deque
from typing import Any, Callable, Generator, Iterable

from frida_manager.core.errors import ManagerError
from frida_manager.core.models.events import FlowEvent, FlowEventKind

logger = logging.getLogger(__name__)

FlowCallback = Callable[[FlowEvent], None]

_HISTORY_SIZE = 2000


class FlowReporter:
    """Handle given to a flow body for emitting events."""

    def __init__(self, flow: Flow) -> None:
        self._flow = flow

    @property
    def flow_id(self) -> str:
        return self._flow.id

    def progress(self, message: str) -> None:
        self._flow._emit(FlowEventKind.PROGRESS, message=message)

    def download(self, percent: int | None, downloaded: int, total: int) -> None:
        self._flow._emit(
            FlowEventKind.DOWNLOAD,
            percent=percent,
            downloaded=downloaded,
            total=total,
        )

    def success(self, message: str, **data: Any) -> None:
        self._flow._emit(FlowEventKind.SUCCESS, message=message, data=data)

    def error(self, message: str, code: str = "error") -> None:
        self._flow._emit(FlowEventKind.ERROR, message=message, code=code)


class Flow:
    """A single invocation of a long-running operation.

    Args:
        name: Flow family (``install``, ``start``, ``stop``, ``releases``).
        body: Callable doing the work; receives a FlowReporter and
            should end with ``reporter.success(...)``. Returning
            without a terminal event counts as success.
        subscribers: Callbacks registered before the worker starts.
    """

    def __init__(
        self,
        name: str,
        body: Callable[[FlowReporter], None],
        *,
        subscribers: Iterable[FlowCallback] = (),
    ) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.name = name
        self._body = body
        self._lock = threading.RLock()
        self._seq = 0
        self._queue: queue.Queue[FlowEvent] = queue.Queue()
        self._history: deque[FlowEvent] = deque(maxlen=_HISTORY_SIZE)
        self._subscribers: list[FlowCallback] = list(subscribers)
        self._terminal: FlowEvent | None = None
        self._done = threading.Event()
        self._thread: threading.Thread | None = None

    def __repr__(self) -> str:
        state = self._terminal.kind if self._terminal else "running"
        return f"<Flow {self.name} {self.id} {state}>"

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self) -> Flow:
        """Launch the worker thread. Returns self for chaining."""
        with self._lock:
            if self._thread is not None:
                return self
            self._thread = threading.Thread(
                target=self._run, name=f"flow-{self.name}-{self.id}", daemon=True,
            )
        logger.debug("Flow %s/%s started", self.name, self.id)
        self._thread.start()
        return self

    def _run(self) -> None:
        reporter = FlowReporter(self)
        try:
            self._body(reporter)
        except ManagerError as exc:
            logger.warning("Flow %s failed: %s", self.name, exc)
            reporter.error(str(exc), code=exc.code)
        except Exception as exc:
            logger.exception("Flow %s crashed", self.name)
            reporter.error(f"Unexpected error: {exc}", code="unexpected_error")
        else:
            if self._terminal is None:
                reporter.success("Done")

    # ── Emission ────────────────────────────────────────────────

    def _emit(self, kind: FlowEventKind, **fields: Any) -> FlowEvent | None:
        is_terminal = kind in (FlowEventKind.SUCCESS, FlowEventKind.ERROR)
        with self._lock:
            if is_terminal and self._terminal is not None:
                logger.debug("Flow %s: dropping second terminal event (%s)", self.id, kind)
                return None

            self._seq += 1
            event = FlowEvent(
                flow_id=self.id, flow=self.name, kind=kind, seq=self._seq, **fields,
            )
            self._history.append(event)

            if self._terminal is None:
                self._queue.put(event)
            if is_terminal:
                self._terminal = event

            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception:
                    logger.exception("Flow subscriber raised on %s event", kind)

        if is_terminal:
            self._done.set()
            logger.debug("Flow %s/%s finished: %s", self.name, self.id, kind)
        return event

    # ── Observation ─────────────────────────────────────────────

    def subscribe(self, callback: FlowCallback) -> None:
        """Register a callback; past events are replayed to it first."""
        with self._lock:
            for event in list(self._history):
                callback(event)
            self._subscribers.append(callback)

    def events(self, timeout: float | None = None) -> Generator[FlowEvent, None, None]:
        """Yield events in order until the terminal one.

        Meant for a single consumer. Stops early if no event arrives
        within ``timeout`` seconds.
        """
        while True:
            try:
                event = self._queue.get(timeout=timeout)
            except queue.Empty:
                return
            yield event
            if event.terminal:
                return

    def wait(self, timeout: float | None = None) -> FlowEvent | None:
        """Block until the flow ends; returns the terminal event (or None on timeout)."""
        self._done.wait(timeout)
        return self._terminal

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def result(self) -> FlowEvent | None:
        return self._terminal

    @property
    def ok(self) -> bool:
        return self._terminal is not None and self._terminal.kind == FlowEventKind.SUCCESS

    @property
    def history(self) -> list[FlowEvent]:
        with self._lock:
            return list(self._history)
