"""Event emitter implementation using Observer Pattern."""
import inspect
from typing import Dict, List, Callable, Optional

from ...logging import get_logger


class EventEmitter:
    """
    Event emitter using Observer Pattern.

    Callbacks may be plain functions or coroutine functions. A failing
    callback is logged and never interrupts the emitter or other callbacks.
    """

    def __init__(self, logger_name: str = 'zalopy.events'):
        """Initializes event emitter."""
        self._events: Dict[str, List[Callable]] = {}
        self._logger = get_logger(logger_name)

    def on(self, event: str, callback: Callable) -> 'EventEmitter':
        """Registers an event handler."""
        self._events.setdefault(event, []).append(callback)
        return self

    def off(self, event: str, callback: Optional[Callable] = None) -> 'EventEmitter':
        """Removes an event handler."""
        if event not in self._events:
            return self

        if callback is None:
            del self._events[event]
        else:
            self._events[event] = [cb for cb in self._events[event] if cb != callback]

        return self

    def listener_count(self, event: str) -> int:
        return len(self._events.get(event, []))

    async def emit(self, event: str, *args, **kwargs) -> None:
        """Emits an event, awaiting coroutine callbacks in registration order."""
        for callback in list(self._events.get(event, [])):
            try:
                result = callback(*args, **kwargs)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._logger.error(f"'{event}' handler {callback!r} failed: {e}", exc_info=True)
