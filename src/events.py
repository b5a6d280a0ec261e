"""In-process event bus for SystemEvents.

Workflow services publish events; subscribers registered at startup (the
audit logger, anything else that wants to react) consume them from a queue
drained by one background worker, so an HTTP handler never waits on them.

Usage:
    from src.events import emit

    await emit(SystemEvent(
        event_type=EventType.DSR_CREATED,
        user_id=request.user_id,
        data={"request_id": request.id},
    ))

    # At startup:
    from src.events import subscribe

    subscribe(my_handler)  # async def my_handler(event: SystemEvent) -> None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]


class EventBus:
    """Queue-backed publisher with global and per-event-type subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[EventHandler] = []
        self._type_subscribers: dict[EventType, list[EventHandler]] = {}
        self._queue: asyncio.Queue[SystemEvent] | None = None
        self._worker: asyncio.Task[None] | None = None

    def subscribe(self, handler: EventHandler, event_types: list[EventType] | None = None) -> None:
        """Register an async handler.

        Args:
            handler: Async function that accepts a SystemEvent.
            event_types: Only deliver these types. None delivers every event.
        """
        if event_types is None:
            self._subscribers.append(handler)
            logger.info("Registered global event subscriber: %s", handler.__name__)
            return

        for event_type in event_types:
            self._type_subscribers.setdefault(event_type, []).append(handler)
        logger.info(
            "Registered event subscriber %s for types: %s",
            handler.__name__,
            [t.value for t in event_types],
        )

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self._subscribers:
            self._subscribers.remove(handler)
        for handlers in self._type_subscribers.values():
            if handler in handlers:
                handlers.remove(handler)

    async def emit(self, event: SystemEvent) -> None:
        """Queue an event for delivery; starts the worker on first use."""
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._ensure_worker()

        await self._queue.put(event)
        logger.debug("Event emitted: %s (user=%s)", event.event_type.value, event.user_id)

    async def dispatch(self, event: SystemEvent) -> None:
        """Deliver one event to every matching handler concurrently.

        A failing handler is logged and does not affect the others.
        """
        handlers = [*self._subscribers, *self._type_subscribers.get(event.event_type, [])]
        if not handlers:
            return

        results = await asyncio.gather(
            *[handler(event) for handler in handlers],
            return_exceptions=True,
        )
        for handler, result in zip(handlers, results, strict=True):
            if isinstance(result, Exception):
                logger.error(
                    "Handler %s failed for event %s",
                    handler.__name__,
                    event.event_type.value,
                    exc_info=result,
                )

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        """Create the queue and worker. Call during FastAPI lifespan startup."""
        self._queue = asyncio.Queue()
        self._ensure_worker()
        logger.info(
            "Event system started with %d global + %d typed subscribers",
            len(self._subscribers),
            sum(len(v) for v in self._type_subscribers.values()),
        )

    async def stop(self) -> None:
        """Deliver everything already queued, then stop the worker."""
        if self._queue is not None:
            await self._queue.join()

        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass

        self._worker = None
        self._queue = None
        logger.info("Event system stopped")

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain())
            logger.info("Event worker started")

    async def _drain(self) -> None:
        queue = self._queue
        if queue is None:
            return

        while True:
            event = await queue.get()
            try:
                await self.dispatch(event)
            except Exception:
                logger.exception("Error in event worker")
            finally:
                queue.task_done()


# Process-wide bus and its module-level shortcuts
bus = EventBus()

subscribe = bus.subscribe
unsubscribe = bus.unsubscribe
emit = bus.emit
start_event_system = bus.start
stop_event_system = bus.stop
