from dataclasses import dataclass
from typing import Callable, Dict, List
import asyncio
import inspect
import logging
logger = logging.getLogger(__name__)

TASK_PROGRESS = "task_progress"
TASK_COMPLETE = "task_complete"
TASK_FAIL = "task_fail"


@dataclass
class TransferProgress:
    """Progress information for a single background upload."""
    task_id: int
    filename: str
    bytes_sent: int = 0
    total_bytes: int = 0

    @property
    def percent(self) -> float:
        if not self.total_bytes:
            return 0.0
        return self.bytes_sent * 100.0 / self.total_bytes


class EventEmitter:
    """Simple event emitter for background upload events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        listeners = self._listeners.setdefault(event_name, [])
        if callback not in listeners:
            listeners.append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        listeners = self._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners. Listener errors are logged, not raised."""
        if event_name not in self._listeners:
            return

        async with self._lock:
            for callback in self._listeners[event_name][:]:  # listeners may unsubscribe while we iterate
                try:
                    result = callback(*args, **kwargs)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"Error in event listener for {event_name}: {e}")
