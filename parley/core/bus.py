"""Async pub/sub event bus keyed by hook name."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Coroutine

from parley.utils.logging import get_logger

log = get_logger(__name__)


def settings_hook(group: str, key: str) -> str:
    """Hook fired after setting ``key`` of settings group ``group`` changed."""
    return f"hook:{group}:{key}"


def chatbot_hook(event_type: str) -> str:
    """Hook name under which canonical events of ``event_type`` are published."""
    return f"hook:chatbot:{event_type}"


Handler = Callable[[Any], Coroutine[Any, Any, None]]


class EventBus:
    def __init__(self, max_queue_size: int = 256) -> None:
        self._subscribers: dict[str, list[tuple[Handler, asyncio.Queue[Any]]]] = {}
        self._max_queue_size = max_queue_size
        self._running = False
        self._tasks: list[asyncio.Task[None]] = []

    def subscribe(self, hook: str, handler: Handler) -> None:
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.setdefault(hook, []).append((handler, queue))
        if self._running:
            self._start_consumer(hook, handler, queue)

    async def publish(self, hook: str, event: Any) -> None:
        handlers = self._subscribers.get(hook, [])
        if not handlers:
            log.debug("event_without_subscribers", hook=hook)
        for handler, queue in handlers:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                log.warning(
                    "event_queue_full",
                    hook=hook,
                    handler=handler.__qualname__,
                )

    async def start(self) -> None:
        self._running = True
        for hook, handler_list in self._subscribers.items():
            for handler, queue in handler_list:
                self._start_consumer(hook, handler, queue)

    def _start_consumer(self, hook: str, handler: Handler, queue: asyncio.Queue[Any]) -> None:
        task = asyncio.create_task(
            self._consumer(handler, queue, hook),
            name=f"bus-{hook}-{handler.__qualname__}",
        )
        self._tasks.append(task)

    async def _consumer(self, handler: Handler, queue: asyncio.Queue[Any], hook: str) -> None:
        while self._running:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            try:
                await handler(event)
            except Exception:
                log.exception("handler_error", hook=hook)

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
