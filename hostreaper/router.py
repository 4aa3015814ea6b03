from __future__ import annotations

import queue
from concurrent.futures import ThreadPoolExecutor
from threading import BoundedSemaphore, Event, Thread
from typing import Any, Mapping, Sequence

from . import db
from .handlers import Handler
from .models import LifecycleEvent
from .state import SidecarState

_POLL_S = 0.5


class EventRouter:
    """Fans container lifecycle events out to handlers.

    Events enter through `listener` (a bounded queue fed by the live runtime
    stream and by `submit`). A dispatcher hands each event with registered
    handlers to the worker pool; the handlers for one event run one after
    another in list order, while different events run concurrently.
    """

    def __init__(
        self,
        worker_pool_size: int,
        listener_pool_size: int,
        runtime: Any,
        handlers: Mapping[str, Sequence[Handler]],
        state: SidecarState | None = None,
    ):
        self.runtime = runtime
        self.handlers = {status: list(hs) for status, hs in handlers.items()}
        self.state = state or SidecarState()
        self.listener: queue.Queue[LifecycleEvent] = queue.Queue(maxsize=max(1, listener_pool_size))
        self._workers = max(1, worker_pool_size)
        self._slots = BoundedSemaphore(self._workers)
        self._stop = Event()
        self._pool: ThreadPoolExecutor | None = None
        self._stream: Any = None
        self._pump: Thread | None = None

    def start(self) -> None:
        """Subscribe to the runtime event stream and start dispatching.

        Live events are buffered by the subscription until `listen()` is called.
        """
        if self._pool is not None:
            return
        self._stream = self.runtime.events()
        self._pool = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="event-worker")
        Thread(target=self._dispatch_loop, name="event-dispatch", daemon=True).start()

    def listen(self) -> None:
        if self._stream is None:
            raise RuntimeError("Router is not started.")
        if self._pump and self._pump.is_alive():
            return
        self._pump = Thread(target=self._pump_loop, name="event-pump", daemon=True)
        self._pump.start()

    def submit(self, event: LifecycleEvent) -> None:
        while not self._stop.is_set():
            try:
                self.listener.put(event, timeout=_POLL_S)
                return
            except queue.Full:
                continue

    def stop(self) -> None:
        self._stop.set()
        if self._stream is not None:
            self._stream.close()
        if self._pool is not None:
            self._pool.shutdown(wait=False)

    def _pump_loop(self) -> None:
        try:
            for event in self._stream:
                if self._stop.is_set():
                    break
                self.submit(event)
        except Exception as e:
            if not self._stop.is_set():
                db.log_event("ERROR", f"Event stream failed: {type(e).__name__}: {e}", component="events")

    def _dispatch_loop(self) -> None:
        while not self._stop.is_set():
            try:
                event = self.listener.get(timeout=_POLL_S)
            except queue.Empty:
                continue
            handlers = self.handlers.get(event.status)
            if not handlers:
                continue
            while not self._slots.acquire(timeout=_POLL_S):
                if self._stop.is_set():
                    return
            try:
                self._pool.submit(self._run, event, handlers)
            except RuntimeError:
                # Pool shut down by stop().
                self._slots.release()
                return

    def _run(self, event: LifecycleEvent, handlers: list[Handler]) -> None:
        try:
            self.dispatch(event, handlers)
        finally:
            self._slots.release()

    def dispatch(self, event: LifecycleEvent, handlers: list[Handler] | None = None) -> None:
        for handler in handlers if handlers is not None else self.handlers.get(event.status, []):
            try:
                handler.handle(event)
            except Exception as e:
                self.state.incr("handler_failures")
                db.log_event(
                    "ERROR",
                    f"{type(handler).__name__} failed on {event.status}: {type(e).__name__}: {e}",
                    component="events",
                    container_id=event.id,
                )
        self.state.incr("events_dispatched")
