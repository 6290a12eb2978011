from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
import inspect
import logging
logger = logging.getLogger(__name__)


@dataclass
class FileProgress:
    """Progress information for a single file."""
    filename: str
    file_path: Path
    bytes_uploaded: int = 0
    total_bytes: int = 0
    percent: int = 0
    status: str = "pending"  # pending, requesting-url, uploading, confirming, complete, failed
    position: Optional[int] = None  # 1-based place in a queue
    queue_size: Optional[int] = None


async def invoke(callback: Optional[Callable], *args, **kwargs) -> Any:
    """Call a sync or async callback and return its result."""
    if callback is None:
        return None
    result = callback(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result


class EventEmitter:
    """Simple event emitter for upload events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

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
        """Emit an event to all listeners; a failing listener never stops an upload."""
        if event_name not in self._listeners:
            return

        for callback in self._listeners[event_name][:]:
            try:
                await invoke(callback, *args, **kwargs)
            except Exception as e:
                logger.error("Error in event listener for %s: %s", event_name, e)
