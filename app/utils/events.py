from typing import Dict, List, Callable, Any
import asyncio
import logging

logger = logging.getLogger(__name__)

class EventBus:
    """In-process publish/subscribe; handler failures are logged, never raised to the publisher."""

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, handler: Callable):
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, event_type: str, handler: Callable):
        if event_type in self._handlers and handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    async def publish(self, event_type: str, data: Dict[str, Any]) -> int:
        handlers = list(self._handlers.get(event_type, []))
        if not handlers:
            return 0

        tasks = []
        for handler in handlers:
            if asyncio.iscoroutinefunction(handler):
                tasks.append(handler(data))
            else:
                tasks.append(asyncio.to_thread(handler, data))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        failures = 0
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                failures += 1
                logger.error(f"Error in event handler {handler.__name__} for {event_type}: {result}")
        return failures

event_bus = EventBus()
