import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedEvent:
    """ Canonical, platform independent event published on the EventBus """
    name: str
    channel: str = ""
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def __getitem__(self, key):
        return self.payload[key]

    def as_dict(self):
        return {"name": self.name, "channel": self.channel, **self.payload}


def error_event(message, err=None):
    return NormalizedEvent("error", payload={"message": message, "err": err})


class EventBus:
    """
    Process wide publish point for normalized events.

    Publishing is fire-and-forget: sync listeners run inline, coroutine
    listeners are scheduled as tasks. A failing listener is logged and never
    reaches the publisher.
    """
    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._tasks = set()

    def on(self, name: str, listener: Callable):
        self._listeners.setdefault(name, []).append(listener)
        logger.debug(f"Listener added: {name} -> {getattr(listener, '__name__', listener)}")
        return listener

    def off(self, name: str, listener: Callable):
        try:
            self._listeners.get(name, []).remove(listener)
        except ValueError:
            logger.debug(f"Listener not registered for {name}: {listener}")

    def listener(self, name: str):
        """ Decorator for registering listeners """
        def decorator(func):
            return self.on(name, func)
        return decorator

    def listener_count(self, name: str):
        return len(self._listeners.get(name, []))

    def emit(self, event: NormalizedEvent):
        listeners = list(self._listeners.get(event.name, []))
        if not listeners:
            logger.debug(f"No listeners for event: {event.name}")
            return
        for listener in listeners:
            try:
                result = listener(event)
            except Exception:
                logger.exception(f"Error in listener {getattr(listener, '__name__', listener)} for {event.name}")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(self._safe_handle(result, listener, event.name))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def _safe_handle(self, awaitable, listener, name):
        try:
            await awaitable
        except Exception:
            logger.exception(f"Error in listener {getattr(listener, '__name__', listener)} for {name}")

    async def wait_all(self):
        """ Waits for every pending listener task """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
