"""In-process event bus for feedback lifecycle events.

The wizard, backend client and review handoff publish SystemEvents with
``emit``; the audit logger subscribes at startup. While the app is running,
events are queued and handed to subscribers by a background worker. Before
``start_event_system`` (scripts, tests) they are delivered inline.

    from src.events.bus import emit, subscribe

    subscribe(audit_on_event)                              # every event
    subscribe(on_completed, [EventType.SESSION_COMPLETED])  # one type

    await emit(SystemEvent(event_type=EventType.SESSION_STARTED, session_id=wizard.session_id))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]

# None keys the handlers that receive every event
_handlers: dict[EventType | None, list[EventHandler]] = {}
_queue: asyncio.Queue[SystemEvent | None] | None = None
_worker_task: asyncio.Task[None] | None = None


def subscribe(handler: EventHandler, event_types: list[EventType] | None = None) -> None:
    """Register ``handler`` for ``event_types``, or for every event when omitted."""
    for key in event_types or [None]:
        _handlers.setdefault(key, []).append(handler)
    logger.info(
        "Event subscriber %s registered for %s",
        handler.__name__,
        "all events" if event_types is None else [t.value for t in event_types],
    )


def unsubscribe(handler: EventHandler) -> None:
    for handlers in _handlers.values():
        while handler in handlers:
            handlers.remove(handler)


async def emit(event: SystemEvent) -> None:
    """Publish an event. Never raises because of a subscriber."""
    if _queue is not None and _worker_task is not None and not _worker_task.done():
        _queue.put_nowait(event)
        logger.debug("Event queued: %s (session=%s)", event.event_type.value, event.session_id)
        return
    await _deliver(event)


async def _deliver(event: SystemEvent) -> None:
    for handler in [*_handlers.get(None, []), *_handlers.get(event.event_type, [])]:
        try:
            await handler(event)
        except Exception:
            logger.exception("Subscriber %s failed on %s", handler.__name__, event.event_type.value)


async def _drain(queue: asyncio.Queue[SystemEvent | None]) -> None:
    while True:
        event = await queue.get()
        if event is None:
            break
        await _deliver(event)


# ── Lifecycle ────────────────────────────────────────────────────────


async def start_event_system() -> None:
    """Start queued delivery. Called from the FastAPI lifespan."""
    global _queue, _worker_task
    if _worker_task is not None and not _worker_task.done():
        return
    _queue = asyncio.Queue()
    _worker_task = asyncio.create_task(_drain(_queue))
    logger.info("Event system started (%d subscriptions)", sum(len(h) for h in _handlers.values()))


async def stop_event_system() -> None:
    """Deliver everything already queued, then stop the worker."""
    global _queue, _worker_task
    if _queue is not None and _worker_task is not None and not _worker_task.done():
        _queue.put_nowait(None)
        await _worker_task
    _queue = None
    _worker_task = None
    logger.info("Event system stopped")
