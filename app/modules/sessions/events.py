"""In-process publish/subscribe channel for deployment record changes, one channel per session."""
import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Set

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def serialize_event(event: Dict[str, Any]) -> str:
    return json.dumps(event, default=_json_default)


class DeploymentEventBus:
    def __init__(self):
        self._subscribers: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, session_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers[session_id].add(queue)
        return queue

    def unsubscribe(self, session_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(session_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            self._subscribers.pop(session_id, None)

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))

    def publish(self, session_id: str, event: Dict[str, Any]) -> int:
        """Deliver ``event`` to current subscribers; returns how many received it."""
        delivered = 0
        for queue in list(self._subscribers.get(session_id, ())):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Dropping deployment event for slow subscriber on session {session_id}")
        return delivered

    async def stream(self, session_id: str) -> AsyncIterator[str]:
        """Server-sent event lines for one session until the client disconnects."""
        queue = self.subscribe(session_id)
        try:
            while True:
                event = await queue.get()
                yield f"event: {event.get('type', 'message')}\ndata: {serialize_event(event)}\n\n"
        finally:
            self.unsubscribe(session_id, queue)


event_bus = DeploymentEventBus()


def get_event_bus() -> DeploymentEventBus:
    return event_bus
