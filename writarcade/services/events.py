"""
Event System for Session Lifecycle Updates

Broadcasts panel lifecycle events (started, ready, failed, story complete)
to in-process listeners and per-session queues. The client-facing SSE
stream carries GameplayEvents. The API keeps one queue per session and
serves it at /api/sessions/{id}/events.
"""

from typing import Dict, Callable, Any, List, Optional
from asyncio import Queue
import asyncio
import logging
from datetime import datetime

logger = logging.getLogger(__name__)


# ==================== Event Type Constants ====================
EVENT_PANEL_STARTED = "panel_started"
EVENT_PANEL_READY = "panel_ready"
EVENT_PANEL_FAILED = "panel_failed"
EVENT_STORY_COMPLETE = "story_complete"


class SessionEvent:
    """Represents a session lifecycle event"""
    def __init__(self, event_type: str, session_id: str, data: Dict[str, Any]):
        self.event_type = event_type
        self.session_id = session_id
        self.data = data
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type,
            "session_id": self.session_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat()
        }


class EventEmitter:
    """
    Event emitter for session lifecycle events.

    - panel_started: A panel began streaming
    - panel_ready: Text and image are both in place
    - panel_failed: Narrative generation failed, panel rolled back
    - story_complete: The story reached its end
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._session_queues: Dict[str, Queue] = {}

    def on(self, event_type: str, callback: Callable):
        """Register event listener"""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        self._listeners[event_type].append(callback)

    def off(self, event_type: str, callback: Callable):
        """Remove event listener"""
        if event_type in self._listeners:
            self._listeners[event_type].remove(callback)

    async def emit(self, event_type: str, session_id: str, data: Dict[str, Any]):
        """Emit event to all registered listeners"""
        event = SessionEvent(event_type, session_id, data)

        for callback in list(self._listeners.get(event_type, [])):
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(event)
                else:
                    callback(event)
            except Exception as e:
                # A broken observer must not break the story
                logger.error(f"Error in event listener for {event_type}: {e}")

        if session_id in self._session_queues:
            await self._session_queues[session_id].put(event)

    def create_session_queue(self, session_id: str) -> Queue:
        """Create event queue for a specific session"""
        queue = Queue()
        self._session_queues[session_id] = queue
        return queue

    def get_session_queue(self, session_id: str) -> Optional[Queue]:
        return self._session_queues.get(session_id)

    def remove_session_queue(self, session_id: str):
        self._session_queues.pop(session_id, None)


# Global event emitter instance
session_events = EventEmitter()
